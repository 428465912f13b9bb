"""
Settings tipados e injetáveis do Atlas DeployFlow.

`PipelineSettings` é o objeto de configuração passado explicitamente ao
Engine na construção. Ele substitui o ambiente compartilhado de um
servidor de CI (variáveis globais, credential store): nada é lido do
ambiente do processo aqui; segredos chegam por um mapeamento `secrets`
fornecido pelo chamador (ex.: snapshot de `os.environ` no bootstrap).

Chaves reconhecidas (todas opcionais, exceto quando indicado):

    pipeline:
      name: str
      workspace: str
    engine:
      manifest_dir: str | null
    sonarqube:
      host_url: str
      token_env: str            # nome do segredo com o token
      verify_tls: bool
      request_timeout_s: float
    notify:
      recipients: [str]
      sender: str
      subject_prefix: str
      attachments: [str]        # nomes de artefatos
      smtp: {host, port, use_tls, username_env, password_env, timeout_s}
    env: {NOME: valor}
    pass_env: [NOME]            # segredos repassados aos comandos externos
    stages:
      <stage_id>: {enabled: bool}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidSettingError


def _section(config: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = config.get(key) if isinstance(config, Mapping) else None
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidSettingError(f"Config section '{key}' must be a mapping, got {type(value).__name__}")
    return value


def _str_tuple(value: Any, *, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise InvalidSettingError(f"Config key '{key}' must be a list of strings")
    return tuple(str(v) for v in value)


def _secret(secrets: Mapping[str, str], name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return secrets.get(str(name))


@dataclass(frozen=True)
class SmtpSettings:
    host: str = "localhost"
    port: int = 25
    use_tls: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    timeout_s: float = 30.0


@dataclass(frozen=True)
class NotifySettings:
    recipients: Tuple[str, ...] = ()
    sender: str = "atlas-deployflow@localhost"
    subject_prefix: str = "[atlas-deployflow]"
    attachments: Tuple[str, ...] = ()
    smtp: SmtpSettings = field(default_factory=SmtpSettings)


@dataclass(frozen=True)
class SonarQubeSettings:
    host_url: Optional[str] = None
    token: Optional[str] = None
    verify_tls: bool = True
    request_timeout_s: float = 10.0


@dataclass(frozen=True)
class PipelineSettings:
    """Configuração efetiva e segredos resolvidos de um pipeline."""

    name: str = "pipeline"
    workspace: Path = Path("workspace")
    manifest_dir: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict, hash=False)
    sonarqube: SonarQubeSettings = field(default_factory=SonarQubeSettings)
    notify: NotifySettings = field(default_factory=NotifySettings)
    stage_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict, hash=False)
    raw: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False, repr=False)

    def is_stage_enabled(self, stage_id: str) -> bool:
        stage_cfg = self.stage_overrides.get(stage_id, {}) or {}
        return bool(stage_cfg.get("enabled", True))

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        *,
        secrets: Optional[Mapping[str, str]] = None,
    ) -> "PipelineSettings":
        """
        Constrói settings a partir da configuração resolvida.

        Args:
            config: configuração efetiva (resultado de `load_config`).
            secrets: mapeamento de segredos (nome -> valor). Nunca persistido.

        Raises:
            InvalidSettingError: Se alguma seção tiver tipo inválido.
        """
        if not isinstance(config, dict):
            raise InvalidSettingError(f"Config must be a dict, got {type(config).__name__}")
        secrets = dict(secrets or {})

        pipeline_cfg = _section(config, "pipeline")
        engine_cfg = _section(config, "engine")
        sonar_cfg = _section(config, "sonarqube")
        notify_cfg = _section(config, "notify")
        smtp_cfg = _section(notify_cfg, "smtp")
        env_cfg = _section(config, "env")
        stages_cfg = _section(config, "stages")

        env = {str(k): str(v) for k, v in env_cfg.items()}
        for name in _str_tuple(config.get("pass_env"), key="pass_env"):
            if name in secrets:
                env[name] = secrets[name]

        manifest_dir = engine_cfg.get("manifest_dir")

        try:
            smtp = SmtpSettings(
                host=str(smtp_cfg.get("host", "localhost")),
                port=int(smtp_cfg.get("port", 25)),
                use_tls=bool(smtp_cfg.get("use_tls", False)),
                username=_secret(secrets, smtp_cfg.get("username_env")),
                password=_secret(secrets, smtp_cfg.get("password_env")),
                timeout_s=float(smtp_cfg.get("timeout_s", 30.0)),
            )
            sonarqube = SonarQubeSettings(
                host_url=sonar_cfg.get("host_url"),
                token=_secret(secrets, sonar_cfg.get("token_env")),
                verify_tls=bool(sonar_cfg.get("verify_tls", True)),
                request_timeout_s=float(sonar_cfg.get("request_timeout_s", 10.0)),
            )
        except (TypeError, ValueError) as e:
            raise InvalidSettingError(f"Invalid setting value: {e}") from e

        notify = NotifySettings(
            recipients=_str_tuple(notify_cfg.get("recipients"), key="notify.recipients"),
            sender=str(notify_cfg.get("sender", NotifySettings.sender)),
            subject_prefix=str(notify_cfg.get("subject_prefix", NotifySettings.subject_prefix)),
            attachments=_str_tuple(notify_cfg.get("attachments"), key="notify.attachments"),
            smtp=smtp,
        )

        overrides: Dict[str, Dict[str, Any]] = {}
        for stage_id, stage_cfg in stages_cfg.items():
            if stage_cfg is None:
                continue
            if not isinstance(stage_cfg, dict):
                raise InvalidSettingError(f"Config 'stages.{stage_id}' must be a mapping")
            overrides[str(stage_id)] = dict(stage_cfg)

        return cls(
            name=str(pipeline_cfg.get("name", "pipeline")),
            workspace=Path(str(pipeline_cfg.get("workspace", "workspace"))),
            manifest_dir=Path(str(manifest_dir)) if manifest_dir else None,
            env=env,
            sonarqube=sonarqube,
            notify=notify,
            stage_overrides=overrides,
            raw=config,
        )
