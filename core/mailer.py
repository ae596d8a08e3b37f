"""
core/mailer.py -- Notification sender for verification and reset emails.

Two transports share one interface (send(message) -> None):

  SmtpMailer: plain-text mail over smtplib. STARTTLS when smtp_use_tls is set,
      implicit TLS (SMTP_SSL) otherwise. Any SMTP or socket failure is raised
      as DeliveryError -- callers decide how a failed delivery is reported.
      There are no retries.

  LogMailer: writes the message to the "authflow.mailer" log instead of a
      network transport. Selected by build_mailer() when SMTP_HOST is empty so
      local development works without a mail server.

Both are constructed with explicit values; neither reads Settings itself.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authflow.mailer")


class DeliveryError(Exception):
    """Raised when a message could not be handed to the mail transport."""


@dataclass(frozen=True)
class MailMessage:
    sender: str
    to: str
    subject: str
    body: str


class Mailer(Protocol):
    def send(self, message: MailMessage) -> None: ...


def _redact(address: str) -> str:
    """Redact an address for logging to avoid PII leakage."""
    if "@" not in address:
        return "redacted"
    local, domain = address.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpMailer:
    """Deliver MailMessage objects through an SMTP relay.

    Usage:
        mailer = SmtpMailer("smtp.example.com", 587, username="u", password="p")
        mailer.send(MailMessage(sender="noreply@example.com", to="a@x.com", subject="Hi", body="..."))
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        if not host:
            raise ValueError("host is required")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, message: MailMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = message.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.body)
        return msg

    def send(self, message: MailMessage) -> None:
        """Send one message. Raises DeliveryError on any transport failure."""
        msg = self._build(message)
        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.username and self.password:
                        server.login(self.username, self.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "Mail delivery to %s via %s:%d failed: %s: %s",
                _redact(message.to),
                self.host,
                self.port,
                type(exc).__name__,
                exc,
            )
            raise DeliveryError(f"Could not deliver email: {exc}") from exc
        logger.info("Mail sent to %s: %s", _redact(message.to), message.subject)


class LogMailer:
    """Development transport -- logs the full message instead of sending it.

    The body is logged verbatim (it contains the verification/reset link) so a
    developer can follow the link from the console. Never select this in
    production; build_mailer() only does so when SMTP_HOST is empty.
    """

    def send(self, message: MailMessage) -> None:
        logger.info(
            "Mail (not sent, no SMTP_HOST) from=%s to=%s subject=%r\n%s",
            message.sender,
            message.to,
            message.subject,
            message.body,
        )


def build_mailer(settings: Settings) -> Mailer:
    """Pick the SMTP transport when SMTP_HOST is configured, the log transport otherwise."""
    if settings.smtp_host:
        return SmtpMailer(
            settings.smtp_host,
            settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )
    logger.warning("SMTP_HOST is not set -- emails will be written to the log instead of sent")
    return LogMailer()
