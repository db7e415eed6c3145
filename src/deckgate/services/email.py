"""Email service for delivering verification codes."""

import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib
import httpx

from deckgate.config import settings
from deckgate.services.resilience import (
    CircuitOpenError,
    TransientDeliveryError,
    email_circuit,
    with_resilience,
)

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            text: Plain text alternative

        Returns:
            True if the provider accepted the message
        """
        pass


class ConsoleEmailBackend(EmailBackend):
    """Logs emails instead of sending them (development)."""

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        logger.info(
            f"\n{'=' * 60}\n"
            f"EMAIL (console backend - not sent)\n"
            f"To: {to}\n"
            f"Subject: {subject}\n"
            f"{'-' * 60}\n"
            f"{text or html}\n"
            f"{'=' * 60}"
        )
        return True


class SMTPEmailBackend(EmailBackend):
    """Email backend using SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.timeout = timeout

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        message = MIMEMultipart("alternative")
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        if text:
            message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via SMTP to {to}: {e}")
            return False
        logger.info(f"Email sent via SMTP to {to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Email backend using the Resend HTTP API."""

    def __init__(self, api_key: str, from_address: str, timeout: float = 10.0):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout

    @with_resilience(circuit_breaker=email_circuit)
    async def _post(self, payload: dict) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
            )
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientDeliveryError(f"Resend returned {response.status_code}")
        response.raise_for_status()

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        try:
            await self._post(payload)
        except CircuitOpenError:
            logger.error(f"Resend circuit open, email to {to} not sent")
            return False
        except httpx.HTTPStatusError as e:
            logger.error(f"Resend API error: {e.response.status_code} - {e.response.text}")
            return False
        except (httpx.HTTPError, TransientDeliveryError) as e:
            logger.error(f"Failed to send email via Resend to {to}: {e}")
            return False
        logger.info(f"Email sent via Resend to {to}")
        return True


def get_email_backend() -> EmailBackend:
    """Get the configured email backend."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    elif settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )
    elif settings.email_backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown email backend: {settings.email_backend}")


class EmailService:
    """Application emails on top of a pluggable backend."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification_code(self, to: str, code: str) -> bool:
        """Send a one-time access code for a shared deck.

        Args:
            to: Recipient email address
            code: The numeric one-time code

        Returns:
            True if sent successfully
        """
        minutes = settings.otp_expiration_minutes
        subject = f"Your verification code: {code}"

        html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #f9fafb; border-radius: 8px; padding: 30px;">
        <h2 style="margin-top: 0; color: #1a1a1a;">Your access code</h2>
        <p>Someone shared a deck with you. Enter this code to open it:</p>
        <div style="text-align: center; margin: 30px 0;">
            <span style="font-size: 32px; font-weight: 700; letter-spacing: 8px; font-family: monospace;">{code}</span>
        </div>
        <p style="color: #666; font-size: 14px;">
            The code expires in {minutes} minutes and can be used once.
            If you didn't request it, you can safely ignore this email.
        </p>
    </div>
</body>
</html>
"""

        text = f"""
Your access code: {code}

Enter this code to open the deck shared with you.
It expires in {minutes} minutes and can be used once.

If you didn't request it, you can safely ignore this email.
"""

        return await self.backend.send(to=to, subject=subject, html=html, text=text)


# Global email service instance
email_service = EmailService()
