"""Outgoing email adapters."""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

from lumo.config import EmailSettings


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail server."""


class MailSender(Protocol):
    """Contract for email delivery adapters."""

    async def send(self, to_email: str, subject: str, body: str) -> None:
        """Deliver one plaintext email or raise MailDeliveryError."""


@dataclass(frozen=True)
class SMTPMailSender:
    """SMTP sender running the blocking client in a worker thread."""

    host: str
    port: int
    email_from: str
    username: str | None = None
    password: str | None = None
    use_starttls: bool = False
    timeout_seconds: float = 10.0

    async def send(self, to_email: str, subject: str, body: str) -> None:
        """Send a plaintext email through SMTP."""
        try:
            await asyncio.to_thread(self._send_blocking, to_email, subject, body)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"SMTP delivery to {self.host}:{self.port} failed.") from exc

    def _send_blocking(self, to_email: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.email_from
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            if self.use_starttls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


def build_mail_sender(settings: EmailSettings) -> SMTPMailSender:
    """Create the SMTP sender described by settings."""
    return SMTPMailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        email_from=settings.email_from,
        username=settings.smtp_username,
        password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
        use_starttls=settings.use_starttls,
        timeout_seconds=settings.timeout_seconds,
    )
