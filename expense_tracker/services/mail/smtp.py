"""
SMTP Mail Delivery

Sends one-time passcodes by email over SMTP with STARTTLS.

DESIGN DECISION: Every send is bounded by a timeout.
smtplib blocks, so the send runs in a worker thread; the socket timeout
bounds each network operation and asyncio.wait_for bounds the whole
send. Any failure surfaces as MailDeliveryError so the caller can
discard the code it was about to hand out.
"""

import asyncio
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import structlog

from expense_tracker.config import MailSettings, get_settings


logger = structlog.get_logger(__name__)


class MailDeliveryError(Exception):
    """Outbound email could not be delivered."""
    pass


class MailerInterface(ABC):
    """Anything that can deliver a passcode to an email address."""

    @abstractmethod
    async def send_otp(self, email: str, code: str, expires_in_seconds: float) -> None:
        """
        Deliver a passcode.

        Raises:
            MailDeliveryError: if the message could not be sent
        """
        pass


def build_otp_message(
    sender: str,
    sender_name: str,
    recipient: str,
    code: str,
    expires_in_seconds: float,
) -> EmailMessage:
    """Plain-text passcode email."""
    minutes = max(1, round(expires_in_seconds / 60))
    unit = "minute" if minutes == 1 else "minutes"

    message = EmailMessage()
    message["From"] = formataddr((sender_name, sender))
    message["To"] = recipient
    message["Subject"] = "Your OTP Code"
    message.set_content(f"Your OTP is {code}. It expires in {minutes} {unit}.")
    return message


class SmtpMailer(MailerInterface):
    """Mailer backed by an SMTP server (Gmail by default)."""

    def __init__(self, settings: Optional[MailSettings] = None):
        self._settings = settings or get_settings().mail

    def _send(self, message: EmailMessage) -> None:
        settings = self._settings
        context = ssl.create_default_context()
        with smtplib.SMTP(
            settings.host,
            settings.port,
            timeout=settings.timeout_seconds,
        ) as smtp:
            smtp.starttls(context=context)
            smtp.login(settings.user, settings.password)
            smtp.send_message(message)

    async def send_otp(self, email: str, code: str, expires_in_seconds: float) -> None:
        message = build_otp_message(
            sender=self._settings.user,
            sender_name=self._settings.sender_name,
            recipient=email,
            code=code,
            expires_in_seconds=expires_in_seconds,
        )
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._send, message),
                timeout=self._settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise MailDeliveryError(
                f"Timed out after {self._settings.timeout_seconds}s sending OTP email"
            )
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Failed to send OTP email: {e}")

        logger.info("otp_email_sent", email=email)

    async def check_connection(self) -> bool:
        """Log in without sending anything. Used at startup."""
        def _handshake() -> None:
            with smtplib.SMTP(
                self._settings.host,
                self._settings.port,
                timeout=self._settings.timeout_seconds,
            ) as smtp:
                smtp.starttls(context=ssl.create_default_context())
                smtp.login(self._settings.user, self._settings.password)

        try:
            await asyncio.wait_for(
                asyncio.to_thread(_handshake),
                timeout=self._settings.timeout_seconds,
            )
        except (asyncio.TimeoutError, smtplib.SMTPException, OSError) as e:
            logger.error("mail_transport_unavailable", error=str(e))
            return False

        logger.info("mail_transport_ready", host=self._settings.host)
        return True


class UnconfiguredMailer(MailerInterface):
    """Stand-in used when no SMTP credentials are configured."""

    def __init__(self, reason: str = "Mail transport is not configured"):
        self._reason = reason

    async def send_otp(self, email: str, code: str, expires_in_seconds: float) -> None:
        raise MailDeliveryError(self._reason)
