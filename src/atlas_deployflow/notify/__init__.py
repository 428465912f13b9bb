"""
Notificação terminal do Atlas DeployFlow.

    - dispatcher → `NotificationDispatcher`, `MailMessage`, `NotificationReport`
    - smtp       → `SmtpMailTransport` (smtplib)
    - summary    → assunto e corpo derivados do estado final da run
"""

from .dispatcher import MailMessage, MailTransport, NotificationDispatcher, NotificationReport
from .smtp import SmtpMailTransport

__all__ = [
    "MailMessage",
    "MailTransport",
    "NotificationDispatcher",
    "NotificationReport",
    "SmtpMailTransport",
]
