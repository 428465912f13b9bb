"""
Atlas DeployFlow — Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas DeployFlow.

Objetivo:
- Permitir que Stages/Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para AtlasErrorPayload
- Evitar ValueError/RuntimeError genéricos em falhas de ferramentas externas

Regras:
- Cada exceção declara seu código estável em `error_type`.
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- `NotificationDeliveryError` é a única exceção nunca fatal para a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from . import errors


@dataclass(eq=False)
class AtlasException(Exception):
    """Base class para exceções internas do Atlas.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    error_type: ClassVar[str] = errors.ENGINE_EXECUTION_ERROR

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def __str__(self) -> str:  # pragma: no cover
        return self.message

    def to_payload(self) -> errors.AtlasErrorPayload:
        return errors.AtlasErrorPayload(
            type=self.error_type,
            message=self.message or "Erro de execução",
            details=dict(self.details or {}),
            hint=self.hint,
            decision_required=bool(self.decision_required),
        )


# ---------------------------------------------------------------------------
# Comandos externos
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class CommandError(AtlasException):
    """Comando de um Stage terminou com exit code diferente de zero."""

    error_type: ClassVar[str] = errors.COMMAND_ERROR


@dataclass(eq=False)
class CheckoutError(CommandError):
    """Checkout do repositório falhou (clone/branch inexistente)."""

    error_type: ClassVar[str] = errors.CHECKOUT_ERROR


@dataclass(eq=False)
class BuildError(CommandError):
    """Build da imagem de container falhou."""

    error_type: ClassVar[str] = errors.BUILD_ERROR


@dataclass(eq=False)
class PushError(CommandError):
    """Login ou push da imagem para o registry falhou."""

    error_type: ClassVar[str] = errors.PUSH_ERROR


@dataclass(eq=False)
class DeployError(CommandError):
    """Aplicação de manifests no cluster falhou."""

    error_type: ClassVar[str] = errors.DEPLOY_ERROR


# ---------------------------------------------------------------------------
# Artefatos
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ArtifactMissingError(AtlasException):
    """Artefato requerido (ou declarado como produzido) não existe no contexto."""

    error_type: ClassVar[str] = errors.ARTIFACT_MISSING


# ---------------------------------------------------------------------------
# Quality gate
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class GateFailure(AtlasException):
    """Veredito de quality gate negativo sob política `abort`."""

    error_type: ClassVar[str] = errors.GATE_FAILURE


@dataclass(eq=False)
class QualityGateUnavailable(AtlasException):
    """Serviço de análise estática não respondeu de forma utilizável."""

    error_type: ClassVar[str] = errors.QUALITY_GATE_UNAVAILABLE


# ---------------------------------------------------------------------------
# Notificação
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class NotificationDeliveryError(AtlasException):
    """Transporte de e-mail falhou. Registrado no log, nunca propagado pela run."""

    error_type: ClassVar[str] = errors.NOTIFICATION_DELIVERY_ERROR


# ---------------------------------------------------------------------------
# Engine / Configuração
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class EngineConfigurationError(AtlasException):
    """Configuração inválida ou inconsistente para execução."""

    error_type: ClassVar[str] = errors.ENGINE_CONFIGURATION_ERROR


@dataclass(eq=False)
class EngineExecutionError(AtlasException):
    """Erro inesperado durante execução do Engine (encapsulado)."""

    error_type: ClassVar[str] = errors.ENGINE_EXECUTION_ERROR


class InvalidStatusTransition(RuntimeError):
    """Transição de status da run viola a monotonicidade do ciclo de vida."""
