"""
StageRunner — execução de um único Stage.

Contrato:
    - verifica `requires` antes de qualquer comando (ArtifactMissingError,
      sem execução)
    - resolve a capacidade na `CapabilityTable` e a executa
    - persiste stdout/stderr como artefato quando `capture_output` é declarado,
      inclusive em caso de falha (diagnóstico anexável à notificação)
    - levanta a classe de erro indicada pela capacidade (CommandError e
      subclasses) quando o exit code é diferente de zero
    - publica os artefatos produzidos e valida `produces` ao final

Cada Stage roda no máximo uma vez por run; não há retry nem paralelismo.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict

from atlas_deployflow.core.exceptions import ArtifactMissingError
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import StageResult, StageStatus

from .capabilities import CapabilityOutcome, CapabilityTable
from .invoker import CommandInvoker


OUTPUTS_DIR = Path(".atlas") / "outputs"
_STDERR_TAIL_CHARS = 2000


def _as_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def _safe_name(stage_id: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in stage_id)


class StageRunner:
    """Executa um `StageDefinition` contra um `ExecutionContext`."""

    def __init__(
        self,
        *,
        capabilities: CapabilityTable,
        invoker: CommandInvoker,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capabilities = capabilities
        self.invoker = invoker
        self.clock = clock

    def run(self, stage: StageDefinition, ctx: ExecutionContext) -> StageResult:
        missing = sorted(a for a in stage.requires if not ctx.has_artifact(a))
        if missing:
            raise ArtifactMissingError(
                message=f"Stage '{stage.id}' requires missing artifacts: {', '.join(missing)}",
                details={"stage": stage.id, "missing": missing, "phase": "before"},
                hint="Verifique se o Stage produtor falhou ou foi desabilitado.",
            )

        handler = self.capabilities.resolve(stage)

        started = self.clock()
        outcome = handler(stage, ctx, self.invoker)
        duration_ms = max(0, int((self.clock() - started) * 1000))

        published: Dict[str, str] = {}
        if stage.capture_output:
            log_path = self._persist_output(stage, ctx, outcome)
            ctx.set_artifact(stage.capture_output, str(log_path))
            published[stage.capture_output] = str(log_path)

        if not outcome.ok:
            last = outcome.commands[-1] if outcome.commands else None
            raise outcome.error_cls(
                message=outcome.error_message or f"Stage '{stage.id}' exited with code {outcome.exit_code}",
                details={
                    "stage": stage.id,
                    "kind": stage.kind.value,
                    "exit_code": outcome.exit_code,
                    "argv": list(last.argv) if last is not None else [],
                    "stderr_tail": outcome.stderr[-_STDERR_TAIL_CHARS:],
                    "duration_ms": duration_ms,
                },
            )

        for name, value in outcome.artifacts.items():
            ctx.set_artifact(name, value)
            published[name] = _as_text(value)

        # o veredito só existe após a avaliação do gate pelo Engine
        missing_outputs = sorted(
            a for a in stage.produces if a != stage.verdict_artifact and not ctx.has_artifact(a)
        )
        if missing_outputs:
            raise ArtifactMissingError(
                message=f"Stage '{stage.id}' did not produce declared artifacts: {', '.join(missing_outputs)}",
                details={"stage": stage.id, "missing": missing_outputs, "phase": "after"},
                hint="Confira os parâmetros do Stage e a saída da ferramenta externa.",
            )

        ctx.log(
            step_id=stage.id,
            level="info",
            message="stage succeeded",
            exit_code=outcome.exit_code,
            duration_ms=duration_ms,
            artifacts=sorted(published),
        )

        return StageResult(
            stage_id=stage.id,
            kind=stage.kind,
            status=StageStatus.SUCCESS,
            summary=f"{len(outcome.commands)} command(s) succeeded" if outcome.commands else "no command executed",
            exit_code=outcome.exit_code if outcome.commands else None,
            duration_ms=duration_ms,
            artifacts=published,
            warnings=list(ctx.warnings.get(stage.id, [])),
        )

    def _persist_output(self, stage: StageDefinition, ctx: ExecutionContext, outcome: CapabilityOutcome) -> Path:
        path = ctx.workspace / OUTPUTS_DIR / f"{_safe_name(stage.id)}.log"
        path.parent.mkdir(parents=True, exist_ok=True)
        chunks = []
        for command in outcome.commands:
            chunks.append(f"$ {' '.join(command.argv)}\n")
            if command.stdout:
                chunks.append(command.stdout if command.stdout.endswith("\n") else command.stdout + "\n")
            if command.stderr:
                chunks.append(command.stderr if command.stderr.endswith("\n") else command.stderr + "\n")
            chunks.append(f"[exit {command.exit_code}]\n")
        path.write_text("".join(chunks), encoding="utf-8")
        return path
