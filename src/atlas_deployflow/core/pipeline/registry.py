"""
Registro estrutural de Stages do pipeline.

Este módulo define o `StageRegistry`, responsável por registrar Stages
e validar a integridade estrutural do pipeline antes de qualquer
planejamento ou execução.

Responsabilidades do módulo:
    - Validar unicidade de `stage.id`
    - Preservar a ordem de declaração dos Stages
    - Expor acesso controlado aos Stages registrados

Invariantes:
    - Cada Stage registrado possui um `stage.id` único
    - A lista de Stages reflete exatamente a ordem de registro

Limites explícitos:
    - Não executa pipeline
    - Não valida artefatos (responsabilidade do planner)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .stage import StageDefinition


class DuplicateStageIdError(ValueError):
    """
    Exceção levantada quando dois Stages compartilham o mesmo `stage.id`.

    A duplicidade é tratada como erro fatal de definição, detectado no
    momento do registro e antes de qualquer execução.
    """


@dataclass
class StageRegistry:
    """Registro canônico de Stages, em ordem de declaração."""

    _stages: Dict[str, StageDefinition] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def from_stages(cls, stages: Iterable[StageDefinition]) -> "StageRegistry":
        registry = cls()
        for stage in stages:
            registry.add(stage)
        return registry

    def add(self, stage: StageDefinition) -> None:
        stage_id = getattr(stage, "id", None)
        if not isinstance(stage_id, str) or not stage_id.strip():
            raise ValueError("stage.id must be a non-empty string")

        if stage_id in self._stages:
            raise DuplicateStageIdError(f"Duplicate stage id: {stage_id}")

        self._stages[stage_id] = stage
        self._order.append(stage_id)

    def get(self, stage_id: str) -> StageDefinition:
        return self._stages[stage_id]

    def list(self) -> List[StageDefinition]:
        return [self._stages[sid] for sid in self._order]

    def __len__(self) -> int:
        return len(self._order)
