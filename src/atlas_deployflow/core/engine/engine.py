"""
PipelineEngine — orquestração de uma run do Atlas DeployFlow.

O Engine executa os Stages na ordem declarada, aplica as políticas de
falha e de quality gate e garante, por meio de um finalizador, que a
notificação terminal seja enviada exatamente uma vez por run.

Políticas:
    - Stage com sucesso → próximo Stage
    - Stage com falha e `continue_on_failure=False` → run FAILED, nada mais executa
    - Stage com falha e `continue_on_failure=True` → resultado FAILED + warning,
      a run continua (e pode terminar SUCCEEDED)
    - Gate reprovado sob `abort` → run ABORTED com o motivo do veredito
    - Gate reprovado sob `report_only` → veredito registrado + warning, a run continua
    - Cancelamento (verificado entre Stages) → run ABORTED com motivo `cancelled`
    - Stage desabilitado por configuração → SKIPPED
    - Stages não alcançados → SKIPPED com o motivo

Conversão de erros:
    - `AtlasException` → `AtlasErrorPayload` via `to_payload()`
    - Qualquer outra exceção → `ENGINE_EXECUTION_ERROR` (sem stack trace)
    - O payload é gravado em `StageResult.payload["error"]`

Limites explícitos:
    - Não reexecuta Stages (sem retry)
    - Não executa Stages em paralelo
    - `NotificationDeliveryError` nunca altera o status da run
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from atlas_deployflow import __version__
from atlas_deployflow.core.config.hashing import compute_config_hash, compute_pipeline_hash
from atlas_deployflow.core.config.settings import PipelineSettings
from atlas_deployflow.core.errors import AtlasErrorPayload, engine_execution_error, run_cancelled
from atlas_deployflow.core.exceptions import (
    ArtifactMissingError,
    AtlasException,
    EngineConfigurationError,
    GateFailure,
)
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import (
    GatePolicy,
    GateVerdict,
    RunStatus,
    StageResult,
    StageStatus,
)
from atlas_deployflow.core.traceability.manifest import (
    DeployManifest,
    add_event,
    create_manifest,
    run_finished,
    save_manifest,
    stage_failed,
    stage_finished,
    stage_skipped,
    stage_started,
)
from atlas_deployflow.notify.dispatcher import NotificationDispatcher, NotificationReport

from .gate import GateEvaluator
from .planner import plan_stages
from .runner import StageRunner


REASON_CANCELLED = "cancelled"
REASON_ENGINE_ERROR = "engine-error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunResult:
    """Resultado agregado de uma run."""

    run_id: str
    status: RunStatus
    reason: Optional[str] = None
    stages: Dict[str, StageResult] = field(default_factory=dict)
    verdicts: Dict[str, GateVerdict] = field(default_factory=dict)
    notification: Optional[NotificationReport] = None
    manifest: Optional[DeployManifest] = field(default=None, compare=False, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED


class PipelineEngine:
    """Engine canônico do Atlas DeployFlow (planner + executor + finalizador)."""

    def __init__(
        self,
        *,
        stages: Sequence[StageDefinition],
        settings: PipelineSettings,
        runner: StageRunner,
        dispatcher: NotificationDispatcher,
        gate_evaluator: Optional[GateEvaluator] = None,
        cancel_event: Optional[threading.Event] = None,
        seeded_artifacts: Iterable[str] = (),
        now: Callable[[], datetime] = _utcnow,
    ):
        self.stages: List[StageDefinition] = list(stages)
        self.plan = plan_stages(self.stages, seeded_artifacts=seeded_artifacts)
        self.settings = settings
        self.runner = runner
        self.dispatcher = dispatcher
        self.gate_evaluator = gate_evaluator
        self.cancel_event = cancel_event
        self.now = now

        gated = [s.id for s in self.plan.stages if s.gate is not None]
        if gated and gate_evaluator is None:
            raise EngineConfigurationError(
                message="Pipeline declares gate stages but no GateEvaluator was provided",
                details={"stages": gated},
                hint="Configure sonarqube.host_url ou injete um GateEvaluator.",
            )

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    # ------------------------------------------------------------------
    # Resultados
    # ------------------------------------------------------------------

    def _skipped(self, manifest: DeployManifest, stage: StageDefinition, reason: str) -> StageResult:
        stage_skipped(manifest, stage_id=stage.id, kind=stage.kind.value, ts=self.now(), reason=reason)
        return StageResult(
            stage_id=stage.id,
            kind=stage.kind,
            status=StageStatus.SKIPPED,
            summary=reason,
        )

    def _failed(
        self,
        ctx: ExecutionContext,
        manifest: DeployManifest,
        stage: StageDefinition,
        error: AtlasErrorPayload,
        *,
        extra_payload: Optional[Dict[str, Any]] = None,
    ) -> StageResult:
        payload: Dict[str, Any] = {"error": error.to_dict()}
        payload.update(extra_payload or {})
        stage_failed(manifest, stage_id=stage.id, ts=self.now(), error=error.to_dict())
        ctx.log(step_id=stage.id, level="error", message=error.message, error_type=error.type)
        details = error.details or {}
        return StageResult(
            stage_id=stage.id,
            kind=stage.kind,
            status=StageStatus.FAILED,
            summary=error.message,
            exit_code=details.get("exit_code"),
            duration_ms=int(details.get("duration_ms", 0) or 0),
            warnings=list(ctx.warnings.get(stage.id, [])),
            payload=payload,
        )

    # ------------------------------------------------------------------
    # Quality gate
    # ------------------------------------------------------------------

    def _evaluate_gate(
        self,
        stage: StageDefinition,
        ctx: ExecutionContext,
        manifest: DeployManifest,
        result: StageResult,
    ) -> StageResult:
        gate_spec = stage.gate
        if gate_spec is None or self.gate_evaluator is None:
            raise EngineConfigurationError(
                message=f"Gate stage '{stage.id}' cannot be evaluated without a GateEvaluator",
                details={"stage": stage.id},
                hint="Configure sonarqube.host_url ou injete um GateEvaluator.",
            )

        if not ctx.has_artifact(gate_spec.signal_artifact):
            raise ArtifactMissingError(
                message=f"Gate stage '{stage.id}' has no signal artifact '{gate_spec.signal_artifact}'",
                details={"stage": stage.id, "missing": [gate_spec.signal_artifact], "phase": "gate"},
                hint="O Stage de análise estática precisa publicar o id da submissão.",
            )
        submission_id = str(ctx.get_artifact(gate_spec.signal_artifact))

        verdict = self.gate_evaluator.evaluate(
            submission_id,
            timeout_s=gate_spec.timeout_s,
            poll_interval_s=gate_spec.poll_interval_s,
            timeout_as_pass=gate_spec.timeout_as_pass,
        )
        ctx.record_verdict(stage_id=stage.id, verdict=verdict)
        ctx.set_artifact(stage.verdict_artifact, verdict.to_dict())
        add_event(
            manifest,
            event_type="gate_evaluated",
            ts=self.now(),
            stage_id=stage.id,
            payload={"policy": gate_spec.policy.value, **verdict.to_dict()},
        )
        ctx.log(
            step_id=stage.id,
            level="info" if verdict.passed else "warning",
            message="quality gate evaluated",
            passed=verdict.passed,
            reason=verdict.reason,
            policy=gate_spec.policy.value,
        )

        if not verdict.passed:
            if gate_spec.policy == GatePolicy.ABORT:
                raise GateFailure(
                    message=f"Quality gate failed for stage '{stage.id}': {verdict.reason}",
                    details={"stage": stage.id, "reason": verdict.reason, "verdict": verdict.to_dict()},
                    hint="Corrija os problemas apontados pela análise estática ou ajuste a política do gate.",
                )
            ctx.add_warning(
                step_id=stage.id,
                message=f"quality gate failed ({verdict.reason}); continuing under report_only policy",
            )

        return replace(
            result,
            artifacts={**result.artifacts, stage.verdict_artifact: verdict.reason},
            warnings=list(ctx.warnings.get(stage.id, [])),
            payload={**result.payload, "gate": verdict.to_dict()},
        )

    # ------------------------------------------------------------------
    # Finalizador
    # ------------------------------------------------------------------

    def _notify(self, ctx: ExecutionContext, manifest: DeployManifest, results: Dict[str, StageResult]) -> NotificationReport:
        notify_stage = self.plan.notify
        params = notify_stage.params if notify_stage is not None else {}

        report = self.dispatcher.dispatch(
            ctx,
            pipeline=self.settings.name,
            results=list(results.values()),
            recipients=params.get("recipients"),
            attachments=params.get("attachments"),
        )
        ctx.mark_notified()
        if report.sent:
            event_type = "notification_sent"
        elif report.skipped:
            event_type = "notification_skipped"
        else:
            event_type = "notification_failed"
        add_event(
            manifest,
            event_type=event_type,
            ts=self.now(),
            stage_id=notify_stage.id if notify_stage is not None else None,
            payload=report.to_dict(),
        )
        return report

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------

    def run(self, ctx: ExecutionContext) -> RunResult:
        ctx.transition(RunStatus.RUNNING)
        manifest = create_manifest(
            run_id=ctx.run_id,
            pipeline=self.settings.name,
            started_at=self.now(),
            tool_version=__version__,
            config_hash=compute_config_hash(dict(ctx.config or {})),
            pipeline_hash=compute_pipeline_hash(self.stages),
        )
        ctx.meta["manifest"] = manifest
        add_event(manifest, event_type="run_started", ts=self.now(), payload={"stages": self.plan.stage_ids})

        results: Dict[str, StageResult] = {}
        status = RunStatus.SUCCEEDED
        reason: Optional[str] = None
        completed = False
        report: Optional[NotificationReport] = None

        try:
            stages = self.plan.stages
            for index, stage in enumerate(stages):
                if self._cancelled():
                    error = run_cancelled(next_stage=stage.id)
                    ctx.log(step_id=stage.id, level="warning", message=error.message, error_type=error.type)
                    status, reason = RunStatus.ABORTED, REASON_CANCELLED
                    for pending in stages[index:]:
                        results[pending.id] = self._skipped(manifest, pending, "run cancelled")
                    break

                if not self.settings.is_stage_enabled(stage.id):
                    results[stage.id] = self._skipped(manifest, stage, "skipped by config")
                    continue

                stage_started(manifest, stage_id=stage.id, kind=stage.kind.value, ts=self.now())
                try:
                    result = self.runner.run(stage, ctx)
                    if stage.gate is not None:
                        result = self._evaluate_gate(stage, ctx, manifest, result)
                except Exception as e:
                    if isinstance(e, AtlasException):
                        error = e.to_payload()
                    else:
                        error = engine_execution_error(
                            stage=stage.id,
                            exc_type=e.__class__.__name__,
                            exc_message=str(e),
                        )

                    gate_payload: Optional[Dict[str, Any]] = None
                    if isinstance(e, GateFailure):
                        gate_payload = {"gate": e.details.get("verdict")}
                    results[stage.id] = self._failed(ctx, manifest, stage, error, extra_payload=gate_payload)

                    if isinstance(e, GateFailure):
                        status, reason = RunStatus.ABORTED, str(e.details.get("reason"))
                    elif stage.continue_on_failure:
                        ctx.add_warning(
                            step_id=stage.id,
                            message=f"stage failed ({error.type}); continuing because continue_on_failure is set",
                        )
                        continue
                    else:
                        status, reason = RunStatus.FAILED, f"stage '{stage.id}' failed: {error.type}"

                    for pending in stages[index + 1:]:
                        results[pending.id] = self._skipped(manifest, pending, f"not reached after '{stage.id}'")
                    break

                results[stage.id] = result
                stage_finished(manifest, stage_id=stage.id, ts=self.now(), result=result.to_dict())

            completed = True
        finally:
            if not completed:
                status, reason = RunStatus.FAILED, REASON_ENGINE_ERROR
            ctx.transition(status, reason=reason)
            run_finished(manifest, status=status.value, ts=self.now(), reason=reason)
            report = self._notify(ctx, manifest, results)
            if self.settings.manifest_dir is not None:
                save_manifest(manifest, Path(self.settings.manifest_dir) / f"{ctx.run_id}.json")

        return RunResult(
            run_id=ctx.run_id,
            status=ctx.status,
            reason=ctx.reason,
            stages=results,
            verdicts=dict(ctx.verdicts),
            notification=report,
            manifest=manifest,
        )
