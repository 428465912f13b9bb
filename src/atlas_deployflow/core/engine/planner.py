"""
Planejamento estrutural do pipeline.

O pipeline do Atlas DeployFlow é linear: a ordem de execução é a ordem
declarada. O planner não reordena Stages; ele valida a definição antes
de qualquer execução, para que erros estruturais nunca iniciem uma run:

    - ids únicos e não vazios (via `StageRegistry`)
    - no máximo um Stage `notify`, obrigatoriamente o último
    - todo artefato em `requires` foi declarado em `produces` por um Stage
      anterior ou semeado no contexto inicial
    - o sinal de cada gate foi declarado até o próprio Stage, inclusive

A verificação em runtime (o artefato existe de fato?) é responsabilidade
do StageRunner; aqui validamos apenas a coerência da declaração.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from atlas_deployflow.core.pipeline.registry import StageRegistry
from atlas_deployflow.core.pipeline.stage import StageDefinition
from atlas_deployflow.core.pipeline.types import StageKind


class PlanError(ValueError):
    """Definição de pipeline estruturalmente inválida."""


class UndeclaredArtifactError(PlanError):
    """
    Um Stage consome um artefato que nenhum Stage anterior declara produzir.

    Pipelines nessa condição falhariam sempre com `ArtifactMissingError`;
    o erro é antecipado para o momento da definição.
    """


@dataclass(frozen=True)
class ExecutionPlan:
    """Stages executáveis em ordem e o Stage notify opcional (finalizador)."""

    stages: Tuple[StageDefinition, ...]
    notify: Optional[StageDefinition] = None

    @property
    def stage_ids(self) -> List[str]:
        return [s.id for s in self.stages]


def plan_stages(
    stages: Iterable[StageDefinition],
    *,
    seeded_artifacts: Iterable[str] = (),
) -> ExecutionPlan:
    """
    Valida a definição e produz o plano de execução.

    Args:
        stages: Stages na ordem declarada.
        seeded_artifacts: artefatos já presentes no contexto antes da run.

    Returns:
        ExecutionPlan: Stages executáveis (sem o notify) e o notify, se houver.

    Raises:
        DuplicateStageIdError: Se houver `stage.id` repetido.
        PlanError: Se o Stage notify estiver mal posicionado ou repetido.
        UndeclaredArtifactError: Se um artefato consumido não tiver produtor anterior.
    """
    ordered = StageRegistry.from_stages(stages).list()

    notify_positions = [i for i, s in enumerate(ordered) if s.kind == StageKind.NOTIFY]
    if len(notify_positions) > 1:
        raise PlanError("At most one notify stage may be declared")
    notify: Optional[StageDefinition] = None
    if notify_positions:
        if notify_positions[0] != len(ordered) - 1:
            raise PlanError(f"Notify stage '{ordered[notify_positions[0]].id}' must be the last stage")
        notify = ordered.pop()

    available: Set[str] = set(seeded_artifacts)
    for stage in ordered:
        missing = sorted(a for a in stage.requires if a not in available)
        if missing:
            raise UndeclaredArtifactError(
                f"Stage '{stage.id}' consumes artifacts not produced by any earlier stage: {missing}"
            )
        available |= stage.produces
        if stage.capture_output:
            available.add(stage.capture_output)
        # o sinal do gate pode vir do próprio Stage (ex.: sonar-scanner + gate)
        if stage.gate is not None and stage.gate.signal_artifact not in available:
            raise UndeclaredArtifactError(
                f"Gate stage '{stage.id}' reads signal '{stage.gate.signal_artifact}' "
                "which no stage declares in produces"
            )
        if stage.verdict_artifact is not None:
            available.add(stage.verdict_artifact)

    return ExecutionPlan(stages=tuple(ordered), notify=notify)
