"""Outbound mail package."""

from expense_tracker.services.mail.smtp import (
    MailDeliveryError,
    MailerInterface,
    SmtpMailer,
    UnconfiguredMailer,
    build_otp_message,
)

__all__ = [
    "MailDeliveryError",
    "MailerInterface",
    "SmtpMailer",
    "UnconfiguredMailer",
    "build_otp_message",
]
