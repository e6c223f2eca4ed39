# Pipeline Agents
# ===============
# Gateway and notification collaborators used by the orchestrator

from .payment_gateway import (
    SignatureVerifier,
    RazorpayGateway,
    to_paise,
)
from .notification_dispatcher import (
    NotificationDispatcher,
    NotificationKind,
    TemplateRenderer,
    MailMessage,
    IMailTransport,
    SmtpMailTransport,
    InMemoryMailTransport,
)

__all__ = [
    # Payment gateway
    "SignatureVerifier",
    "RazorpayGateway",
    "to_paise",
    # Notifications
    "NotificationDispatcher",
    "NotificationKind",
    "TemplateRenderer",
    "MailMessage",
    "IMailTransport",
    "SmtpMailTransport",
    "InMemoryMailTransport",
]
