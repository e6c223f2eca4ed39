"""
Notification Dispatcher
=======================
Transactional email for the submission pipelines:
- PAYMENT_CONFIRMATION: to the payer, blind copy to the admin
- CONTACT_ALERT / ABOUT_ALERT: to the admin

Rendering (TemplateRenderer) is separate from delivery (IMailTransport).
SmtpMailTransport runs smtplib in a worker thread so callers await a single
call; InMemoryMailTransport records messages for tests and local runs.
A failed send raises NotificationError. Nothing is retried.

pip install structlog
"""

import asyncio
import html
import smtplib
import ssl
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from enum import Enum
from typing import List, Optional

import structlog

from config import settings
from pipeline.errors import NotificationError
from storage.export_mirror import format_local_timestamp

logger = structlog.get_logger().bind(component="notification_dispatcher")


# =============================================================================
# MODELS
# =============================================================================

class NotificationKind(str, Enum):
    PAYMENT_CONFIRMATION = "payment_confirmation"
    CONTACT_ALERT = "contact_alert"
    ABOUT_ALERT = "about_alert"


@dataclass
class MailMessage:
    sender: str
    to: List[str]
    subject: str
    html: str
    bcc: List[str] = field(default_factory=list)
    message_id: str = field(default_factory=make_msgid)

    def to_email_message(self) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = self.subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(self.to)
        if self.bcc:
            msg["Bcc"] = ", ".join(self.bcc)
        msg["Message-ID"] = self.message_id
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(self.html, subtype="html")
        return msg


# =============================================================================
# TEMPLATES
# =============================================================================

_FRAME_STYLE = (
    "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; "
    "padding: 20px; border: 1px solid #ddd; border-radius: 5px;"
)
_PANEL_STYLE = "background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin: 15px 0;"
_HEADING_STYLE = "color: #4b0082; text-align: center;"


def _e(value) -> str:
    return html.escape("" if value is None else str(value))


class TemplateRenderer:
    """Subject lines and HTML bodies, with every interpolated value escaped."""

    def payment_confirmation(self, student) -> tuple:
        subject = "Course Registration Confirmation - ASTA Education Academy"
        body = f"""
        <div style="{_FRAME_STYLE}">
          <h2 style="{_HEADING_STYLE}">Registration Confirmation</h2>
          <p>Dear {_e(student.name)},</p>
          <p>Thank you for registering with ASTA Education Academy. Your payment has been successfully processed.</p>
          <div style="{_PANEL_STYLE}">
            <h3 style="margin-top: 0; color: #4b0082;">Registration Details:</h3>
            <p><strong>Course:</strong> {_e(student.course)}</p>
            <p><strong>Amount Paid:</strong> &#8377;{_e(student.amount)}</p>
            <p><strong>Payment ID:</strong> {_e(student.payment_id)}</p>
            <p><strong>Registration Date:</strong> {_e(format_local_timestamp(student.registration_date))}</p>
          </div>
          <p>We look forward to providing you with a great learning experience.</p>
          <p>If you have any questions, please don't hesitate to contact us.</p>
          <p>Best regards,<br>ASTA Education Academy Team</p>
        </div>
        """
        return subject, body

    def contact_alert(self, message) -> tuple:
        subject = f"New Contact Form Submission: {message.subject}"
        body = f"""
        <div style="{_FRAME_STYLE}">
          <h2 style="{_HEADING_STYLE}">New Contact Form Submission</h2>
          <div style="{_PANEL_STYLE}">
            <p><strong>Name:</strong> {_e(message.name)}</p>
            <p><strong>Email:</strong> {_e(message.email)}</p>
            <p><strong>Phone:</strong> {_e(message.phone or "Not provided")}</p>
            <p><strong>Subject:</strong> {_e(message.subject)}</p>
            <p><strong>Message:</strong> {_e(message.message)}</p>
            <p><strong>Submission Date:</strong> {_e(format_local_timestamp(message.submission_date))}</p>
          </div>
        </div>
        """
        return subject, body

    def about_alert(self, inquiry) -> tuple:
        subject = f"New About Page Inquiry: {inquiry.subject}"
        body = f"""
        <div style="{_FRAME_STYLE}">
          <h2 style="{_HEADING_STYLE}">New About Page Inquiry</h2>
          <div style="{_PANEL_STYLE}">
            <p><strong>Name:</strong> {_e(inquiry.name)}</p>
            <p><strong>Email:</strong> {_e(inquiry.email)}</p>
            <p><strong>Subject:</strong> {_e(inquiry.subject)}</p>
            <p><strong>Message:</strong> {_e(inquiry.message)}</p>
            <p><strong>Submission Date:</strong> {_e(format_local_timestamp(inquiry.submission_date))}</p>
          </div>
        </div>
        """
        return subject, body


# =============================================================================
# TRANSPORTS
# =============================================================================

class IMailTransport(ABC):

    @abstractmethod
    async def send(self, message: MailMessage) -> str:
        """Deliver one message; return its message id."""


class SmtpMailTransport(IMailTransport):
    """STARTTLS SMTP delivery (Gmail by default)."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.EMAIL_USER
        self.password = password if password is not None else settings.EMAIL_PASSWORD
        self.timeout_seconds = timeout_seconds or settings.SMTP_TIMEOUT_SECONDS

    def _send_sync(self, message: MailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message.to_email_message())

    async def send(self, message: MailMessage) -> str:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_sync, message)
        return message.message_id


class InMemoryMailTransport(IMailTransport):
    """Records sent messages. Set fail_with to make every send raise it."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.sent: List[MailMessage] = []
        self.fail_with = fail_with

    async def send(self, message: MailMessage) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return message.message_id


# =============================================================================
# DISPATCHER
# =============================================================================

class NotificationDispatcher:
    """
    Renders and sends one email per call.

    Example:
        dispatcher = NotificationDispatcher(SmtpMailTransport())
        message_id = await dispatcher.send(NotificationKind.CONTACT_ALERT, contact_message)
    """

    def __init__(
        self,
        transport: IMailTransport,
        renderer: Optional[TemplateRenderer] = None,
        sender: Optional[str] = None,
        admin_email: Optional[str] = None,
    ):
        self.transport = transport
        self.renderer = renderer or TemplateRenderer()
        self.sender = sender or settings.EMAIL_USER
        self.admin_email = admin_email or settings.ADMIN_EMAIL

    def build(self, kind: NotificationKind, record) -> MailMessage:
        if kind == NotificationKind.PAYMENT_CONFIRMATION:
            subject, body = self.renderer.payment_confirmation(record)
            return MailMessage(
                sender=self.sender,
                to=[record.email],
                bcc=[self.admin_email],
                subject=subject,
                html=body,
            )
        if kind == NotificationKind.CONTACT_ALERT:
            subject, body = self.renderer.contact_alert(record)
        elif kind == NotificationKind.ABOUT_ALERT:
            subject, body = self.renderer.about_alert(record)
        else:
            raise ValueError(f"Unknown notification kind: {kind}")
        return MailMessage(sender=self.sender, to=[self.admin_email], subject=subject, html=body)

    async def send(self, kind: NotificationKind, record, correlation_id: Optional[str] = None) -> str:
        log = logger.bind(correlation_id=correlation_id or str(uuid.uuid4()), kind=kind.value)
        message = self.build(kind, record)
        try:
            message_id = await self.transport.send(message)
        except Exception as e:
            log.error("notification_failed", error=str(e), error_type=type(e).__name__)
            raise NotificationError(f"{kind.value} email failed: {e}", cause=e) from e

        log.info("notification_sent", message_id=message_id, recipients=len(message.to) + len(message.bcc))
        return message_id
