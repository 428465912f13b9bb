"""
NotificationDispatcher — envio único da notificação terminal de uma run.

Decisões arquiteturais:
    - O dispatcher é chamado pelo finalizador do Engine, exatamente uma vez
      por run, qualquer que seja o status terminal
    - Falhas de entrega nunca são propagadas: são registradas como evento
      estruturado de nível `error` e devolvidas no `NotificationReport`
    - O status da run nunca é alterado pela notificação

Invariantes:
    - No máximo uma mensagem é enviada por chamada
    - Anexos são resolvidos por nome de artefato; valores que não apontam
      para arquivos existentes são ignorados com warning

Limites explícitos:
    - Não conhece SMTP (o transporte é injetado)
    - Não decide quando notificar
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from atlas_deployflow.core.errors import AtlasErrorPayload, NOTIFICATION_DELIVERY_ERROR
from atlas_deployflow.core.exceptions import NotificationDeliveryError
from atlas_deployflow.core.pipeline.context import ExecutionContext
from atlas_deployflow.core.pipeline.types import StageResult

from .summary import build_body, build_subject


NOTIFY_STEP_ID = "notify"


@dataclass(frozen=True)
class MailMessage:
    sender: str
    recipients: Tuple[str, ...]
    subject: str
    body: str
    attachments: Tuple[Path, ...] = ()


class MailTransport(Protocol):
    def send(self, message: MailMessage) -> None:
        """Entrega a mensagem ou levanta `NotificationDeliveryError`."""
        ...


@dataclass(frozen=True)
class NotificationReport:
    """Resultado observável de uma tentativa de notificação."""

    sent: bool
    skipped: bool = False
    recipients: Tuple[str, ...] = ()
    attachments: Tuple[str, ...] = ()
    skipped_attachments: Tuple[str, ...] = ()
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sent": self.sent,
            "skipped": self.skipped,
            "recipients": list(self.recipients),
            "attachments": list(self.attachments),
            "skipped_attachments": list(self.skipped_attachments),
            "error": self.error,
        }


def _as_paths(value: Any) -> List[Path]:
    if isinstance(value, (list, tuple)):
        return [Path(str(v)) for v in value]
    return [Path(str(value))]


class NotificationDispatcher:
    """Compõe e envia a notificação terminal por meio de um `MailTransport`."""

    def __init__(
        self,
        transport: MailTransport,
        *,
        recipients: Sequence[str] = (),
        attachments: Sequence[str] = (),
        sender: str = "atlas-deployflow@localhost",
        subject_prefix: str = "[atlas-deployflow]",
    ):
        self.transport = transport
        self.recipients = tuple(recipients)
        self.attachments = tuple(attachments)
        self.sender = sender
        self.subject_prefix = subject_prefix

    def _resolve_attachments(self, ctx: ExecutionContext, names: Sequence[str]) -> Tuple[List[Path], List[str], List[str]]:
        paths: List[Path] = []
        used: List[str] = []
        skipped: List[str] = []
        for name in names:
            if not ctx.has_artifact(name):
                skipped.append(name)
                ctx.add_warning(step_id=NOTIFY_STEP_ID, message=f"attachment '{name}' not produced by this run")
                continue
            files = [p for p in _as_paths(ctx.get_artifact(name)) if p.is_file()]
            if not files:
                skipped.append(name)
                ctx.add_warning(step_id=NOTIFY_STEP_ID, message=f"attachment '{name}' does not resolve to a file")
                continue
            paths.extend(files)
            used.append(name)
        return paths, used, skipped

    def dispatch(
        self,
        ctx: ExecutionContext,
        *,
        pipeline: str,
        results: Sequence[StageResult] = (),
        recipients: Optional[Sequence[str]] = None,
        attachments: Optional[Sequence[str]] = None,
    ) -> NotificationReport:
        """
        Envia a notificação do estado final de `ctx`.

        `recipients`/`attachments` sobrescrevem os valores configurados
        (ex.: parâmetros do Stage notify). Nunca levanta exceção.
        """
        to = tuple(recipients) if recipients is not None else self.recipients
        names = tuple(attachments) if attachments is not None else self.attachments

        if not to:
            ctx.log(step_id=NOTIFY_STEP_ID, level="warning", message="no recipients configured; notification not sent")
            return NotificationReport(sent=False, skipped=True)

        try:
            paths, used, skipped = self._resolve_attachments(ctx, names)
            message = MailMessage(
                sender=self.sender,
                recipients=to,
                subject=build_subject(ctx, pipeline=pipeline, prefix=self.subject_prefix),
                body=build_body(ctx, pipeline=pipeline, results=results, attachments=used),
                attachments=tuple(paths),
            )
            self.transport.send(message)
        except NotificationDeliveryError as e:
            payload = e.to_payload().to_dict()
        except Exception as e:
            payload = AtlasErrorPayload(
                type=NOTIFICATION_DELIVERY_ERROR,
                message=str(e) or "Falha ao compor ou enviar a notificação",
                details={"exception_class": e.__class__.__name__},
                hint="Verifique a configuração de notificação (notify.smtp).",
            ).to_dict()
        else:
            ctx.log(
                step_id=NOTIFY_STEP_ID,
                level="info",
                message="notification sent",
                recipients=list(to),
                attachments=used,
            )
            return NotificationReport(
                sent=True,
                recipients=to,
                attachments=tuple(used),
                skipped_attachments=tuple(skipped),
            )

        ctx.log(step_id=NOTIFY_STEP_ID, level="error", message="notification delivery failed", error=payload)
        return NotificationReport(sent=False, recipients=to, error=payload)
