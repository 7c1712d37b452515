"""One-time passcode package."""

from expense_tracker.services.otp.gate import (
    EmailNotAllowed,
    OtpError,
    OtpExpired,
    OtpGate,
    OtpMismatch,
    OtpNotFound,
    OtpRecord,
    generate_otp,
)

__all__ = [
    "EmailNotAllowed",
    "OtpError",
    "OtpExpired",
    "OtpGate",
    "OtpMismatch",
    "OtpNotFound",
    "OtpRecord",
    "generate_otp",
]
