"""
# Pipeline Core — Atlas DeployFlow

Este pacote define os **contratos canônicos** e as **estruturas fundamentais**
que compõem um pipeline de CI/CD no Atlas DeployFlow.

Um pipeline é uma **sequência linear de Stages**, onde:
- cada Stage declara identidade, capacidade invocada e artefatos de entrada/saída
- a execução é coordenada exclusivamente pelo Engine
- o estado compartilhado é mediado pelo `ExecutionContext`

## Componentes

- **types**: `StageKind`, `StageStatus`, `RunStatus`, `GatePolicy`,
  `GateVerdict`, `StageResult`
- **stage**: `StageDefinition`, `GateSpec`
- **context**: `ExecutionContext` (artefatos, status monotônico, logs, warnings)
- **registry**: `StageRegistry` (unicidade de `stage.id`)
- **definition**: carregamento de pipelines declarados em YAML/JSON

## Invariantes

- Cada Stage possui um `stage.id` único
- Stages executam estritamente em sequência, na ordem declarada
- O status da run nunca sai de um estado terminal
"""

from .context import ExecutionContext
from .definition import PipelineDefinition, load_pipeline_definition, parse_pipeline_definition
from .registry import DuplicateStageIdError, StageRegistry
from .stage import GateSpec, StageDefinition
from .types import (
    GatePolicy,
    GateVerdict,
    RunStatus,
    StageKind,
    StageResult,
    StageStatus,
    TERMINAL_RUN_STATUSES,
)

__all__ = [
    "ExecutionContext",
    "PipelineDefinition",
    "load_pipeline_definition",
    "parse_pipeline_definition",
    "DuplicateStageIdError",
    "StageRegistry",
    "GateSpec",
    "StageDefinition",
    "GatePolicy",
    "GateVerdict",
    "RunStatus",
    "StageKind",
    "StageResult",
    "StageStatus",
    "TERMINAL_RUN_STATUSES",
]
