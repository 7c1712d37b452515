"""
One-Time Passcode Gate

Issues six-digit codes by email and verifies them.

DESIGN DECISION: Expiry is checked lazily.
Each record stores its own expiry timestamp and is judged at
verification time. There are no background timers to fail or leak.

CONCURRENCY: issue and verify-and-consume hold a per-email lock, so a
code can never be verified twice or replaced halfway through a check.
A lock lives only while some call is using its key.

A code is stored only after the email carrying it was sent. A failed
send leaves nothing behind for that address.
"""

import asyncio
import secrets
import time
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.services.mail import MailDeliveryError, MailerInterface


logger = structlog.get_logger(__name__)

DEFAULT_EXPIRE_MS = 120000


class OtpError(Exception):
    """Base exception for passcode verification failures."""
    reason = "invalid"


class OtpNotFound(OtpError):
    """No passcode is pending for this email."""
    reason = "not_found"


class OtpExpired(OtpError):
    """The pending passcode has expired and was discarded."""
    reason = "expired"


class OtpMismatch(OtpError):
    """The submitted passcode does not match the pending one."""
    reason = "mismatch"


class EmailNotAllowed(Exception):
    """The email address is not on the configured allow-list."""
    pass


@dataclass(frozen=True)
class OtpRecord:
    """A pending passcode for one email."""
    code: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


def generate_otp() -> str:
    """Six random digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


def normalize_email(email: str) -> str:
    return email.strip().lower()


class OtpGate:
    """
    Process-wide passcode store behind issue/verify.

    Args:
        mailer: Delivers codes
        expire_ms: Lifetime of an issued code
        allowed_emails: Allow-list; empty or None allows every address
        clock: Monotonic seconds, injectable for tests
        code_factory: Code generator, injectable for tests
        audit_logger: Optional audit trail
    """

    def __init__(
        self,
        mailer: MailerInterface,
        expire_ms: int = DEFAULT_EXPIRE_MS,
        allowed_emails: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.monotonic,
        code_factory: Callable[[], str] = generate_otp,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._mailer = mailer
        self._ttl_seconds = expire_ms / 1000
        self._allowed = {normalize_email(e) for e in allowed_emails or [] if e.strip()}
        self._clock = clock
        self._code_factory = code_factory
        self._audit_logger = audit_logger
        self._records: dict[str, OtpRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    @asynccontextmanager
    async def _hold(self, key: str) -> AsyncIterator[None]:
        """Serialize calls for one key; the lock is dropped with its last user."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def is_allowed(self, email: str) -> bool:
        """Empty allow-list means every address may request a code."""
        return not self._allowed or normalize_email(email) in self._allowed

    def has_pending(self, email: str) -> bool:
        return normalize_email(email) in self._records

    async def issue(self, email: str) -> str:
        """
        Generate a code, email it, and remember it.

        Any code still pending for the address is discarded first.

        Returns:
            The issued code (never sent back to the HTTP client)

        Raises:
            EmailNotAllowed: if the address is not allow-listed
            MailDeliveryError: if sending failed; no code is stored
        """
        key = normalize_email(email)
        if not self.is_allowed(key):
            logger.warning("otp_email_not_allowed", email=key)
            if self._audit_logger:
                await self._audit_logger.log_otp_email_rejected(key)
            raise EmailNotAllowed(f"{key} is not allowed to request an OTP")

        self.purge_expired()

        async with self._hold(key):
            self._records.pop(key, None)
            code = self._code_factory()
            try:
                await self._mailer.send_otp(key, code, self._ttl_seconds)
            except MailDeliveryError as e:
                logger.error("otp_send_failed", email=key, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_otp_send_failed(key, str(e))
                raise
            self._records[key] = OtpRecord(
                code=code,
                expires_at=self._clock() + self._ttl_seconds,
            )

        logger.info("otp_issued", email=key)
        if self._audit_logger:
            await self._audit_logger.log_otp_issued(key)
        return code

    async def verify(self, email: str, code: str) -> bool:
        """
        Check a submitted code and consume it on success.

        A wrong code leaves the pending code in place. An expired code
        is removed, so it fails the same way on every later attempt.

        Returns:
            True when the code matched

        Raises:
            OtpNotFound, OtpExpired, OtpMismatch
        """
        key = normalize_email(email)
        submitted = str(code).strip()

        try:
            async with self._hold(key):
                record = self._records.get(key)
                if record is None:
                    raise OtpNotFound("OTP expired or not found")
                if record.is_expired(self._clock()):
                    del self._records[key]
                    raise OtpExpired("OTP has expired")
                if not secrets.compare_digest(record.code.encode(), submitted.encode()):
                    raise OtpMismatch("Invalid OTP")
                del self._records[key]
        except OtpError as e:
            logger.info("otp_verification_failed", email=key, reason=e.reason)
            if self._audit_logger:
                await self._audit_logger.log_otp_verification_failed(key, e.reason)
            raise

        logger.info("otp_verified", email=key)
        if self._audit_logger:
            await self._audit_logger.log_otp_verified(key)
        return True

    def purge_expired(self) -> int:
        """Drop expired records; returns how many were removed."""
        now = self._clock()
        removed = 0
        for key, record in list(self._records.items()):
            # Keys mid-issue or mid-verify are left to their lock holder
            if record.is_expired(now) and key not in self._lock_users:
                del self._records[key]
                removed += 1
        return removed
