"""
Engine do Atlas DeployFlow.

Este pacote contém a implementação responsável por **validar** e
**executar** pipelines de CI/CD de forma sequencial e auditável.

Componentes principais:
    - planner      → validações estruturais (ids, notify, artefatos declarados)
    - invoker      → execução de comandos externos (`SubprocessInvoker`)
    - capabilities → despacho explícito `StageKind` → handler
    - runner       → execução de um único Stage (`StageRunner`)
    - gate         → espera limitada por veredito de quality gate (`GateEvaluator`)
    - engine       → orquestração da run e finalizador de notificação

Invariantes:
    - Stages executam na ordem declarada, no máximo uma vez por run
    - A notificação terminal é enviada exatamente uma vez por run
    - O status da run é monotônico

Limites explícitos:
    - Não há retry, paralelismo nem retomada de runs
"""

from .capabilities import CapabilityOutcome, CapabilityTable, default_capabilities
from .engine import PipelineEngine, RunResult
from .gate import GateEvaluator, QualityGateClient
from .invoker import CommandInvoker, CommandOutcome, SubprocessInvoker
from .planner import ExecutionPlan, PlanError, UndeclaredArtifactError, plan_stages
from .runner import StageRunner

__all__ = [
    "CapabilityOutcome",
    "CapabilityTable",
    "default_capabilities",
    "PipelineEngine",
    "RunResult",
    "GateEvaluator",
    "QualityGateClient",
    "CommandInvoker",
    "CommandOutcome",
    "SubprocessInvoker",
    "ExecutionPlan",
    "PlanError",
    "UndeclaredArtifactError",
    "plan_stages",
    "StageRunner",
]
