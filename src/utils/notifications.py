"""Email delivery.

Unified interface for transactional email providers:
- SMTP (self-hosted / production)
- In-memory (development and tests)

Template rendering is left to the provider; messages carry a template id and
its data, plus a plain-text fallback body.
"""

import logging
import smtplib
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.text import MIMEText
from email.utils import formataddr
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import pytz

import config
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

INVITE_TEMPLATE = "staff_invite"
PASSWORD_RESET_TEMPLATE = "staff_password_reset"


class DeliveryStatus(str, Enum):
    """Email delivery status."""

    SENT = "sent"
    FAILED = "failed"


@dataclass
class EmailMessage:
    """Email message to be sent."""

    to: str
    subject: str
    template_id: str
    template_data: Dict[str, Any] = field(default_factory=dict)
    body_text: Optional[str] = None

    def validate(self) -> None:
        if not self.to:
            raise ValueError("Recipient email (to) is required")
        if not self.subject:
            raise ValueError("Subject is required")


@dataclass
class DeliveryResult:
    """Result of email delivery attempt."""

    success: bool
    status: DeliveryStatus
    provider: str
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(pytz.utc))


class EmailProvider(ABC):
    """Abstract base class for email providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return provider name for logging."""

    @abstractmethod
    def send(self, message: EmailMessage) -> DeliveryResult:
        """Send an email message.

        Providers report failures in the returned DeliveryResult instead of
        raising.
        """


class SMTPProvider(EmailProvider):
    """SMTP email provider with STARTTLS and a bounded network timeout."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = config.SMTP_USE_TLS,
        timeout: float = config.SMTP_TIMEOUT_SECONDS,
        from_email: str = config.SMTP_FROM_EMAIL,
        from_name: str = config.SMTP_FROM_NAME,
    ):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username or config.SMTP_USERNAME
        self.password = password or config.SMTP_PASSWORD
        self.use_tls = use_tls
        self.timeout = timeout
        self.from_email = from_email
        self.from_name = from_name
        if not self.host:
            raise ConfigurationError("SMTP_HOST must be set to use the SMTP provider")

    @property
    def provider_name(self) -> str:
        return "smtp"

    def _build(self, message: EmailMessage) -> MIMEText:
        mime = MIMEText(message.body_text or "", "plain", "utf-8")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.from_name, self.from_email))
        mime["To"] = message.to
        mime["X-Template-Id"] = message.template_id
        return mime

    def send(self, message: EmailMessage) -> DeliveryResult:
        try:
            message.validate()
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [message.to], self._build(message).as_string())
        except socket.timeout as e:
            logger.error("SMTP timeout sending %s to %s: %s", message.template_id, message.to, e)
            return DeliveryResult(
                success=False,
                status=DeliveryStatus.FAILED,
                provider=self.provider_name,
                error_message=str(e) or "timed out",
                error_code="timeout",
            )
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.error("SMTP error sending %s to %s: %s", message.template_id, message.to, e)
            return DeliveryResult(
                success=False,
                status=DeliveryStatus.FAILED,
                provider=self.provider_name,
                error_message=str(e),
                error_code=type(e).__name__,
            )

        return DeliveryResult(
            success=True,
            status=DeliveryStatus.SENT,
            provider=self.provider_name,
            message_id=f"smtp-{datetime.now(pytz.utc).timestamp()}",
        )


class InMemoryEmailProvider(EmailProvider):
    """Keeps sent messages in a list. For development and tests."""

    def __init__(self, fail_with: Optional[str] = None):
        self.outbox: List[EmailMessage] = []
        self.fail_with = fail_with

    @property
    def provider_name(self) -> str:
        return "memory"

    def send(self, message: EmailMessage) -> DeliveryResult:
        if self.fail_with:
            return DeliveryResult(
                success=False,
                status=DeliveryStatus.FAILED,
                provider=self.provider_name,
                error_message=self.fail_with,
            )
        self.outbox.append(message)
        return DeliveryResult(
            success=True,
            status=DeliveryStatus.SENT,
            provider=self.provider_name,
            message_id=f"memory-{len(self.outbox)}",
        )


def get_email_provider(name: str = config.EMAIL_PROVIDER) -> EmailProvider:
    """Build the configured email provider.

    Raises:
        ConfigurationError: If the provider name is unknown or misconfigured.
    """
    if name == "smtp":
        return SMTPProvider()
    if name == "memory":
        logger.warning("Using in-memory email provider, emails are not delivered")
        return InMemoryEmailProvider()
    raise ConfigurationError(f"Unknown email provider: {name}")


def _link(path: str, **params: str) -> str:
    return f"{config.ADMIN_BASE_URL}{path}?{urlencode(params)}"


def invite_message(email: str, code: str, role: str, expires_at: datetime) -> EmailMessage:
    link = _link("/accept-invite", email=email, code=code)
    return EmailMessage(
        to=email,
        subject="You have been invited to join the team",
        template_id=INVITE_TEMPLATE,
        template_data={
            "code": code,
            "role": role,
            "link": link,
            "expires_at": expires_at.isoformat(),
        },
        body_text=(
            f"You have been invited as {role}.\n"
            f"Accept your invite before {expires_at.isoformat()}:\n{link}\n"
        ),
    )


def password_reset_message(email: str, token: str, expires_at: datetime) -> EmailMessage:
    link = _link("/reset-password", email=email, token=token)
    return EmailMessage(
        to=email,
        subject="Reset your password",
        template_id=PASSWORD_RESET_TEMPLATE,
        template_data={
            "token": token,
            "link": link,
            "expires_at": expires_at.isoformat(),
        },
        body_text=(
            "A password reset was requested for your account.\n"
            f"Use this link before {expires_at.isoformat()}:\n{link}\n"
            "If you did not request it, ignore this email.\n"
        ),
    )
