"""
Definição canônica de Stage do Atlas DeployFlow.

Um Stage é a menor unidade executável do pipeline: uma invocação opaca
de ferramenta externa (git, sonar-scanner, dependency-check, trivy,
docker, kubectl) descrita de forma declarativa e imutável.

Responsabilidades do módulo:
    - Definir `StageDefinition` (imutável após a definição do pipeline)
    - Definir `GateSpec`, a marcação de Stages que consultam quality gate
    - Construir definições a partir de dicionários (YAML/JSON)

Princípios fundamentais:
    - Stages não conhecem o Engine nem o StageRunner
    - Stages não controlam a ordem de execução (ordem = ordem declarada)
    - Entradas e saídas são declaradas explicitamente (`requires`/`produces`)

Limites explícitos:
    - Não executa comandos
    - Não valida a existência de artefatos em runtime
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .types import GatePolicy, StageKind


DEFAULT_GATE_TIMEOUT_S = 300.0
DEFAULT_GATE_POLL_INTERVAL_S = 5.0


def _flag(data: Mapping[str, Any], key: str, default: bool, owner: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{owner}: {key} must be a boolean, got {type(value).__name__}")
    return value


def _names(data: Mapping[str, Any], key: str, owner: str) -> FrozenSet[str]:
    value = data.get(key)
    if value is None:
        return frozenset()
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{owner}: {key} must be a list of artifact names, got {type(value).__name__}")
    return frozenset(str(v) for v in value)


def _seconds(value: Any, key: str, owner: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{owner}: {key} must be a number, got bool")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{owner}: {key} must be a number, got {value!r}") from e



@dataclass(frozen=True)
class GateSpec:
    """
    Marca um Stage como gate de qualidade.

    Campos:
        - signal_artifact: artefato cujo valor identifica a submissão
          (ex.: `sonar.task_id`) consultada no serviço externo
        - policy: `abort` interrompe a run; `report_only` apenas registra
        - timeout_s: limite de espera pelo veredito
        - poll_interval_s: intervalo entre consultas
        - timeout_as_pass: trata timeout como aprovação
    """
    signal_artifact: str = "sonar.task_id"
    policy: GatePolicy = GatePolicy.ABORT
    timeout_s: float = DEFAULT_GATE_TIMEOUT_S
    poll_interval_s: float = DEFAULT_GATE_POLL_INTERVAL_S
    timeout_as_pass: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GateSpec":
        if not isinstance(data, Mapping):
            raise ValueError("gate must be a mapping")
        policy_raw = data.get("policy")
        if policy_raw is None:
            # atalho compatível com `abortPipeline: true|false`
            abort = _flag(data, "abort", True, "gate")
            policy = GatePolicy.ABORT if abort else GatePolicy.REPORT_ONLY
        else:
            policy = GatePolicy(str(policy_raw))

        timeout_s = _seconds(data.get("timeout_s", DEFAULT_GATE_TIMEOUT_S), "timeout_s", "gate")
        poll_interval_s = _seconds(data.get("poll_interval_s", DEFAULT_GATE_POLL_INTERVAL_S), "poll_interval_s", "gate")
        if timeout_s < 0 or poll_interval_s <= 0:
            raise ValueError("gate.timeout_s must be >= 0 and gate.poll_interval_s > 0")

        return cls(
            signal_artifact=str(data.get("signal_artifact", "sonar.task_id")),
            policy=policy,
            timeout_s=timeout_s,
            poll_interval_s=poll_interval_s,
            timeout_as_pass=_flag(data, "timeout_as_pass", False, "gate"),
        )


@dataclass(frozen=True)
class StageDefinition:
    """
    Descrição imutável de um Stage do pipeline.

    Atributos:
        - id: identificador único e estável do Stage
        - kind: capacidade invocada (`StageKind`)
        - command: argv explícito; quando presente substitui a capacidade padrão
        - params: parâmetros da capacidade (repo_url, image, manifests, ...)
        - continue_on_failure: falha do Stage é apenas consultiva
        - produces: artefatos que devem existir após a execução
        - requires: artefatos que devem existir antes da execução
        - capture_output: nome do artefato onde stdout/stderr são persistidos
        - timeout_s: limite de tempo por comando
        - gate: marcação de quality gate (None para Stages comuns)
    """
    id: str
    kind: StageKind
    command: Tuple[str, ...] = ()
    params: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    continue_on_failure: bool = False
    produces: FrozenSet[str] = frozenset()
    requires: FrozenSet[str] = frozenset()
    capture_output: Optional[str] = None
    timeout_s: Optional[float] = None
    gate: Optional[GateSpec] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("stage.id must be a non-empty string")
        if not isinstance(self.kind, StageKind):
            object.__setattr__(self, "kind", StageKind(self.kind))
        object.__setattr__(self, "command", tuple(str(a) for a in self.command))
        object.__setattr__(self, "produces", frozenset(self.produces))
        object.__setattr__(self, "requires", frozenset(self.requires))
        object.__setattr__(self, "params", dict(self.params or {}))
        if self.kind == StageKind.GATE and self.gate is None:
            object.__setattr__(self, "gate", GateSpec())

    @property
    def name(self) -> str:
        return self.id

    @property
    def is_gate(self) -> bool:
        return self.gate is not None

    @property
    def verdict_artifact(self) -> Optional[str]:
        """Artefato `<id>.verdict` publicado pelo Engine após avaliar o gate."""
        return f"{self.id}.verdict" if self.gate is not None else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StageDefinition":
        """Constrói um Stage a partir da forma declarativa (YAML/JSON)."""
        if not isinstance(data, Mapping):
            raise ValueError(f"stage definition must be a mapping, got {type(data).__name__}")

        stage_id = data.get("id") or data.get("name")
        kind_raw = data.get("kind")
        if kind_raw is None:
            raise ValueError(f"stage '{stage_id}' is missing required key: kind")

        command = data.get("command") or ()
        if isinstance(command, str):
            raise ValueError(f"stage '{stage_id}': command must be a list of arguments, not a shell string")

        gate_raw = data.get("gate")
        gate: Optional[GateSpec]
        if gate_raw is None or gate_raw is False:
            gate = None
        elif gate_raw is True:
            gate = GateSpec()
        else:
            gate = GateSpec.from_dict(gate_raw)

        timeout = data.get("timeout_s")
        params = data.get("params") or {}
        if not isinstance(params, Mapping):
            raise ValueError(f"stage '{stage_id}': params must be a mapping, got {type(params).__name__}")
        owner = f"stage '{stage_id}'"

        return cls(
            id=str(stage_id) if stage_id is not None else "",
            kind=StageKind(str(kind_raw)),
            command=tuple(command),
            params=dict(params),
            continue_on_failure=_flag(data, "continue_on_failure", False, owner),
            produces=_names(data, "produces", owner),
            requires=_names(data, "requires", owner),
            capture_output=data.get("capture_output"),
            timeout_s=_seconds(timeout, "timeout_s", owner) if timeout is not None else None,
            gate=gate,
        )
