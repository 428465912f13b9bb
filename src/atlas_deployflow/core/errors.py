"""
Atlas DeployFlow — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas DeployFlow.
Erros são artefatos operacionais da run e fazem parte do contrato do
sistema, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

O status terminal da run e os artefatos de diagnóstico anexados à
notificação são o único sinal de falha visível ao operador.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtlasErrorPayload:
    """
    Payload canônico de erro do Atlas DeployFlow.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    - decision_required: indica se a run está bloqueada aguardando decisão humana
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Comandos externos
CHECKOUT_ERROR = "CHECKOUT_ERROR"
COMMAND_ERROR = "COMMAND_ERROR"
BUILD_ERROR = "BUILD_ERROR"
PUSH_ERROR = "PUSH_ERROR"
DEPLOY_ERROR = "DEPLOY_ERROR"

# Artefatos
ARTIFACT_MISSING = "ARTIFACT_MISSING"

# Quality gate
GATE_FAILURE = "GATE_FAILURE"
QUALITY_GATE_UNAVAILABLE = "QUALITY_GATE_UNAVAILABLE"

# Notificação (nunca fatal)
NOTIFICATION_DELIVERY_ERROR = "NOTIFICATION_DELIVERY_ERROR"

# Engine / Execução
RUN_CANCELLED = "RUN_CANCELLED"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def artifact_missing(
    *,
    missing: List[str],
    stage: Optional[str] = None,
    phase: str = "before",
    hint: str = "Garanta que um Stage anterior produza o artefato ou remova a dependência declarada.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ARTIFACT_MISSING,
        message="Artefato obrigatório ausente",
        details={
            "missing": list(missing),
            "stage": stage,
            "phase": phase,
        },
        hint=hint,
        decision_required=False,
    )


def run_cancelled(
    *,
    next_stage: Optional[str] = None,
    hint: str = "A run foi cancelada externamente; reexecute o pipeline quando apropriado.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=RUN_CANCELLED,
        message="Execução cancelada entre Stages",
        details={"next_stage": next_stage},
        hint=hint,
        decision_required=False,
    )


def engine_execution_error(
    *,
    stage: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique o Event Log e os artefatos da run para diagnosticar a falha. Nenhum retry é aplicado.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante a execução do pipeline",
        details={
            "stage": stage,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        decision_required=False,
    )


def engine_configuration_error(
    *,
    message: str = "Configuração inválida para execução do pipeline",
    details: Optional[Dict[str, Any]] = None,
    hint: str = "Revise a definição de Stages e a configuração antes de reexecutar.",
) -> AtlasErrorPayload:
    return AtlasErrorPayload(
        type=ENGINE_CONFIGURATION_ERROR,
        message=message,
        details=details or {},
        hint=hint,
        decision_required=False,
    )
