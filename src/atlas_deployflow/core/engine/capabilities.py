"""
Tabela de capacidades do Atlas DeployFlow.

Cada `StageKind` é despachado por uma entrada explícita desta tabela,
sem reflexão nem resolução dinâmica de plugins. Um handler recebe o
Stage, o contexto e um `CommandInvoker`, executa um ou mais comandos
externos e devolve um `CapabilityOutcome`. Handlers não levantam erro
por exit code não zero: eles indicam a classe de erro adequada e o
StageRunner decide (após persistir a saída capturada).

Capacidades padrão:
    - checkout         → git clone
    - static_analysis  → sonar-scanner (publica `sonar.task_id`)
    - gate             → nenhum comando; o veredito é obtido pelo GateEvaluator
    - dependency_scan  → OWASP dependency-check (publica o relatório)
    - image_scan       → trivy fs|image (publica o relatório)
    - build            → docker login/build/push (publica `image.ref`)
    - deploy           → kubectl apply (publica `deploy.applied`)

Parâmetros de caminho aceitam a forma `<chave>_from: <artefato>` para ler
o valor de um artefato produzido por um Stage anterior.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from atlas_deployflow.core.config.settings import SonarQubeSettings
from atlas_deployflow.core.exceptions import (
    ArtifactMissingError,
    BuildError,
    CheckoutError,
    CommandError,
    DeployError,
    EngineConfigurationError,
    PushError,
)
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import StageKind

from .invoker import CommandInvoker, CommandOutcome


@dataclass
class CapabilityOutcome:
    """Resultado agregado de uma capacidade (um ou mais comandos)."""

    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    artifacts: Dict[str, Any] = field(default_factory=dict)
    commands: List[CommandOutcome] = field(default_factory=list)
    error_cls: Type[CommandError] = CommandError
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def record(self, outcome: CommandOutcome) -> CommandOutcome:
        self.commands.append(outcome)
        self.exit_code = outcome.exit_code
        if outcome.stdout:
            self.stdout += outcome.stdout
        if outcome.stderr:
            self.stderr += outcome.stderr
        return outcome

    def fail(self, error_cls: Type[CommandError], message: str) -> "CapabilityOutcome":
        self.error_cls = error_cls
        self.error_message = message
        return self


Handler = Callable[[StageDefinition, ExecutionContext, CommandInvoker], CapabilityOutcome]


# ---------------------------------------------------------------------------
# Helpers de parâmetros
# ---------------------------------------------------------------------------

def _required(stage: StageDefinition, key: str) -> Any:
    value = stage.params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise EngineConfigurationError(
            message=f"Stage '{stage.id}' is missing required param: {key}",
            details={"stage": stage.id, "kind": stage.kind.value, "param": key},
            hint=f"Declare params.{key} na definição do Stage.",
        )
    return value


def _resolve(ctx: ExecutionContext, stage: StageDefinition, key: str, default: Any = None) -> Any:
    artifact_key = stage.params.get(f"{key}_from")
    if artifact_key:
        if not ctx.has_artifact(artifact_key):
            raise ArtifactMissingError(
                message=f"Stage '{stage.id}' param '{key}_from' references missing artifact '{artifact_key}'",
                details={"stage": stage.id, "missing": [artifact_key], "phase": "before"},
            )
        return ctx.get_artifact(artifact_key)
    if key in stage.params and stage.params[key] is not None:
        return stage.params[key]
    return default


def _default_source(ctx: ExecutionContext) -> Path:
    if ctx.has_artifact("source"):
        return Path(str(ctx.get_artifact("source")))
    return ctx.workspace


def _in_workspace(ctx: ExecutionContext, value: Any) -> Path:
    p = Path(str(value))
    return p if p.is_absolute() else ctx.workspace / p


def _run(
    invoke: CommandInvoker,
    stage: StageDefinition,
    ctx: ExecutionContext,
    argv: Sequence[Any],
    *,
    cwd: Optional[Path] = None,
    extra_env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
) -> CommandOutcome:
    env = dict(ctx.env)
    env.update(extra_env or {})
    return invoke(
        [str(a) for a in argv],
        cwd=cwd if cwd is not None else ctx.workspace,
        env=env,
        timeout=stage.timeout_s,
        input_text=input_text,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def run_explicit_command(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    """Executa `stage.command` como está; publica `params.outputs` existentes no disco."""
    out = CapabilityOutcome()
    cwd = _in_workspace(ctx, _resolve(ctx, stage, "cwd", ctx.workspace))
    out.record(_run(invoke, stage, ctx, stage.command, cwd=cwd))
    if not out.ok:
        return out.fail(CommandError, f"Command failed for stage '{stage.id}'")

    outputs = stage.params.get("outputs") or {}
    for name, rel_path in outputs.items():
        path = _in_workspace(ctx, rel_path)
        if path.exists():
            out.artifacts[name] = str(path)
    return out


def checkout(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    out = CapabilityOutcome()
    repo_url = _required(stage, "repo_url")
    branch = str(stage.params.get("branch", "main"))
    depth = stage.params.get("depth", 1)
    target = _in_workspace(ctx, stage.params.get("directory", "source"))

    argv: List[Any] = ["git", "clone", "--branch", branch]
    if depth:
        argv += ["--depth", int(depth)]
    argv += [repo_url, target]

    ctx.workspace.mkdir(parents=True, exist_ok=True)
    out.record(_run(invoke, stage, ctx, argv))
    if not out.ok:
        return out.fail(CheckoutError, f"Checkout of {repo_url}@{branch} failed")

    out.artifacts[stage.params.get("artifact", "source")] = str(target)
    return out


_SONAR_TASK_RE = re.compile(r"api/ce/task\?id=([A-Za-z0-9_\-]+)")


def _read_report_task(path: Path) -> Dict[str, str]:
    if not path.is_file():
        return {}
    values: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        if "=" in line:
            key, _, value = line.partition("=")
            values[key.strip()] = value.strip()
    return values


def static_analysis(
    stage: StageDefinition,
    ctx: ExecutionContext,
    invoke: CommandInvoker,
    *,
    sonarqube: SonarQubeSettings,
) -> CapabilityOutcome:
    out = CapabilityOutcome()
    project_key = _required(stage, "project_key")
    project_name = stage.params.get("project_name", project_key)
    base_dir = Path(str(_resolve(ctx, stage, "base_dir", _default_source(ctx))))
    sources = stage.params.get("sources", ".")
    host_url = stage.params.get("host_url") or sonarqube.host_url

    argv: List[Any] = [
        stage.params.get("executable", "sonar-scanner"),
        f"-Dsonar.projectKey={project_key}",
        f"-Dsonar.projectName={project_name}",
        f"-Dsonar.sources={sources}",
    ]
    if host_url:
        argv.append(f"-Dsonar.host.url={host_url}")
    for key, value in sorted((stage.params.get("properties") or {}).items()):
        argv.append(f"-D{key}={value}")

    extra_env = {"SONAR_TOKEN": sonarqube.token} if sonarqube.token else None
    out.record(_run(invoke, stage, ctx, argv, cwd=base_dir, extra_env=extra_env))
    if not out.ok:
        return out.fail(CommandError, f"Static analysis submission failed for {project_key}")

    report = _read_report_task(base_dir / ".scannerwork" / "report-task.txt")
    task_id = report.get("ceTaskId")
    if not task_id:
        match = _SONAR_TASK_RE.search(out.stdout)
        task_id = match.group(1) if match else None

    if task_id:
        out.artifacts[stage.params.get("artifact", "sonar.task_id")] = task_id
    if report.get("dashboardUrl"):
        out.artifacts["sonar.dashboard_url"] = report["dashboardUrl"]
    return out


def gate(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    return CapabilityOutcome()


_DC_EXTENSIONS = {"XML": "xml", "JSON": "json", "HTML": "html", "CSV": "csv", "SARIF": "sarif", "ALL": "xml"}


def dependency_scan(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    out = CapabilityOutcome()
    scan_path = _resolve(ctx, stage, "scan", _default_source(ctx))
    out_dir = _in_workspace(ctx, stage.params.get("out", "reports/dependency-check"))
    fmt = str(stage.params.get("format", "XML")).upper()

    argv: List[Any] = [
        stage.params.get("executable", "dependency-check.sh"),
        "--project",
        stage.params.get("project", stage.id),
        "--scan",
        scan_path,
        "--format",
        fmt,
        "--out",
        out_dir,
    ]
    argv += list(stage.params.get("args") or [])

    out_dir.mkdir(parents=True, exist_ok=True)
    out.record(_run(invoke, stage, ctx, argv))
    if not out.ok:
        return out.fail(CommandError, "Dependency-Check scan failed")

    report = out_dir / f"dependency-check-report.{_DC_EXTENSIONS.get(fmt, fmt.lower())}"
    if report.is_file():
        out.artifacts[stage.params.get("artifact", "dependency_check.report")] = str(report)
    return out


def image_scan(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    out = CapabilityOutcome()
    mode = str(stage.params.get("mode", "fs"))
    if mode not in {"fs", "image"}:
        raise EngineConfigurationError(
            message=f"Stage '{stage.id}' has invalid image_scan mode: {mode}",
            details={"stage": stage.id, "mode": mode, "allowed": ["fs", "image"]},
        )

    if mode == "image":
        target = _resolve(ctx, stage, "target")
        if target is None:
            if not ctx.has_artifact("image.ref"):
                raise ArtifactMissingError(
                    message=f"Stage '{stage.id}' needs an image reference to scan",
                    details={"stage": stage.id, "missing": ["image.ref"], "phase": "before"},
                )
            target = ctx.get_artifact("image.ref")
    else:
        target = _resolve(ctx, stage, "target", _default_source(ctx))

    report = _in_workspace(ctx, stage.params.get("output", f"reports/trivy-{stage.id}.txt"))
    argv: List[Any] = ["trivy", mode, "--format", stage.params.get("format", "table"), "--output", report]
    severity = stage.params.get("severity")
    if severity:
        argv += ["--severity", ",".join(severity) if isinstance(severity, list) else severity]
    argv += list(stage.params.get("args") or [])
    argv.append(target)

    report.parent.mkdir(parents=True, exist_ok=True)
    out.record(_run(invoke, stage, ctx, argv))
    if not out.ok:
        return out.fail(CommandError, f"Trivy {mode} scan failed")

    if report.is_file():
        out.artifacts[stage.params.get("artifact", "trivy.report")] = str(report)
    return out


def build(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    out = CapabilityOutcome()
    image = _required(stage, "image")
    tag = str(stage.params.get("tag") or ctx.run_id)
    ref = f"{image}:{tag}"
    context_dir = _resolve(ctx, stage, "context", _default_source(ctx))

    username = ctx.env.get(str(stage.params.get("username_env", "")), None)
    password = ctx.env.get(str(stage.params.get("password_env", "")), None)
    if username and password:
        login_argv: List[Any] = ["docker", "login", "--username", username, "--password-stdin"]
        registry = stage.params.get("registry")
        if registry:
            login_argv.append(registry)
        out.record(_run(invoke, stage, ctx, login_argv, input_text=password))
        if not out.ok:
            return out.fail(PushError, "Registry login failed")

    build_argv: List[Any] = ["docker", "build", "-t", ref]
    dockerfile = stage.params.get("dockerfile")
    if dockerfile:
        build_argv += ["-f", dockerfile]
    for key, value in sorted((stage.params.get("build_args") or {}).items()):
        build_argv += ["--build-arg", f"{key}={value}"]
    build_argv.append(context_dir)

    out.record(_run(invoke, stage, ctx, build_argv))
    if not out.ok:
        return out.fail(BuildError, f"docker build failed for {ref}")

    if stage.params.get("push", True):
        out.record(_run(invoke, stage, ctx, ["docker", "push", ref]))
        if not out.ok:
            return out.fail(PushError, f"docker push failed for {ref}")

    out.artifacts[stage.params.get("artifact", "image.ref")] = ref
    return out


def deploy(stage: StageDefinition, ctx: ExecutionContext, invoke: CommandInvoker) -> CapabilityOutcome:
    out = CapabilityOutcome()
    manifests = _required(stage, "manifests")
    if isinstance(manifests, str):
        manifests = [manifests]
    base_dir = Path(str(_resolve(ctx, stage, "base_dir", _default_source(ctx))))

    extra_env: Dict[str, str] = {}
    kubeconfig_env = stage.params.get("kubeconfig_env")
    if kubeconfig_env and kubeconfig_env in ctx.env:
        extra_env["KUBECONFIG"] = ctx.env[kubeconfig_env]
    elif stage.params.get("kubeconfig"):
        extra_env["KUBECONFIG"] = str(stage.params["kubeconfig"])

    applied: List[str] = []
    for manifest in manifests:
        path = Path(str(manifest))
        if not path.is_absolute():
            path = base_dir / path
        argv: List[Any] = ["kubectl", "apply", "-f", path]
        if stage.params.get("context"):
            argv += ["--context", stage.params["context"]]
        if stage.params.get("namespace"):
            argv += ["--namespace", stage.params["namespace"]]
        out.record(_run(invoke, stage, ctx, argv, extra_env=extra_env))
        if not out.ok:
            return out.fail(DeployError, f"kubectl apply failed for {path}")
        applied.append(str(path))

    out.artifacts[stage.params.get("artifact", "deploy.applied")] = applied
    return out


# ---------------------------------------------------------------------------
# Tabela
# ---------------------------------------------------------------------------

class CapabilityTable:
    """Despacho explícito `StageKind` → handler."""

    def __init__(self, handlers: Optional[Mapping[StageKind, Handler]] = None):
        self._handlers: Dict[StageKind, Handler] = dict(handlers or {})

    def register(self, kind: StageKind, handler: Handler) -> None:
        if kind == StageKind.NOTIFY:
            raise EngineConfigurationError(
                message="notify is dispatched by the engine finalizer and cannot be registered",
                details={"kind": kind.value},
            )
        self._handlers[StageKind(kind)] = handler

    def kinds(self) -> List[StageKind]:
        return sorted(self._handlers, key=lambda k: k.value)

    def resolve(self, stage: StageDefinition) -> Handler:
        if stage.command:
            return run_explicit_command
        if stage.kind == StageKind.NOTIFY:
            raise EngineConfigurationError(
                message=f"Stage '{stage.id}' is a notify stage and is not executable",
                details={"stage": stage.id},
                hint="Declare o Stage notify como último Stage do pipeline.",
            )
        handler = self._handlers.get(stage.kind)
        if handler is None:
            raise EngineConfigurationError(
                message=f"No capability registered for kind '{stage.kind.value}'",
                details={"stage": stage.id, "kind": stage.kind.value},
            )
        return handler


def default_capabilities(*, sonarqube: Optional[SonarQubeSettings] = None) -> CapabilityTable:
    return CapabilityTable(
        {
            StageKind.CHECKOUT: checkout,
            StageKind.STATIC_ANALYSIS: functools.partial(
                static_analysis, sonarqube=sonarqube or SonarQubeSettings()
            ),
            StageKind.GATE: gate,
            StageKind.DEPENDENCY_SCAN: dependency_scan,
            StageKind.IMAGE_SCAN: image_scan,
            StageKind.BUILD: build,
            StageKind.DEPLOY: deploy,
        }
    )
