"""
Transporte SMTP para a notificação terminal.

Usa `smtplib`/`email` da biblioteca padrão. Erros de conexão, TLS,
autenticação ou envio são convertidos em `NotificationDeliveryError`.
Credenciais chegam por `SmtpSettings` e nunca são registradas.
"""

from __future__ import annotations

import mimetypes
import smtplib
from email.message import EmailMessage
from typing import Callable

from atlas_deployflow.core.config.settings import SmtpSettings
from atlas_deployflow.core.exceptions import NotificationDeliveryError

from .dispatcher import MailMessage


def build_email(message: MailMessage) -> EmailMessage:
    email = EmailMessage()
    email["From"] = message.sender
    email["To"] = ", ".join(message.recipients)
    email["Subject"] = message.subject
    email.set_content(message.body)

    for path in message.attachments:
        ctype, encoding = mimetypes.guess_type(str(path))
        if ctype is None or encoding is not None:
            ctype = "application/octet-stream"
        maintype, subtype = ctype.split("/", 1)
        email.add_attachment(path.read_bytes(), maintype=maintype, subtype=subtype, filename=path.name)
    return email


class SmtpMailTransport:
    def __init__(self, settings: SmtpSettings, *, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.settings = settings
        self.smtp_factory = smtp_factory

    def send(self, message: MailMessage) -> None:
        s = self.settings
        try:
            email = build_email(message)
            with self.smtp_factory(s.host, s.port, timeout=s.timeout_s) as client:
                if s.use_tls:
                    client.starttls()
                if s.username:
                    client.login(s.username, s.password or "")
                client.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryError(
                message=f"SMTP delivery failed: {e}",
                details={
                    "host": s.host,
                    "port": s.port,
                    "recipients": list(message.recipients),
                    "exception_class": e.__class__.__name__,
                },
                hint="Verifique notify.smtp (host, porta, TLS e credenciais).",
            ) from e
