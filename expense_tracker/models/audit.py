"""
Audit Models for Expense Tracker

Every access attempt and every ledger write is recorded as an audit event.
This provides:
1. A trail of who requested and used one-time passcodes
2. A record of every transaction accepted or rejected
3. Debugging information when the store or mail server fails

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Access
    OTP_ISSUED = "otp_issued"
    OTP_SEND_FAILED = "otp_send_failed"
    OTP_EMAIL_REJECTED = "otp_email_rejected"
    OTP_VERIFIED = "otp_verified"
    OTP_VERIFICATION_FAILED = "otp_verification_failed"

    # Ledger writes
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_REJECTED = "transaction_rejected"
    SAVE_FAILED = "save_failed"

    # Reads and exports
    STATEMENTS_COMPUTED = "statements_computed"
    EXPORT_COMPLETED = "export_completed"
    EXPORT_FAILED = "export_failed"

    # Backend failures
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'otp', 'export')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (transaction id, email address, ...)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.otp_issued(email)
        event = AuditEventBuilder.transaction_recorded(txn_id, person, kind, amount)
    """

    @staticmethod
    def otp_issued(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_ISSUED,
            entity_type="otp",
            entity_id=email,
            description=f"OTP sent to {email}",
            is_user_action=True,
        )

    @staticmethod
    def otp_send_failed(email: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_SEND_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="otp",
            entity_id=email,
            description=f"Could not deliver OTP to {email}",
            error_message=error_message,
        )

    @staticmethod
    def otp_email_rejected(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_EMAIL_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="otp",
            entity_id=email,
            description=f"OTP requested for address not on the allow-list: {email}",
            is_user_action=True,
        )

    @staticmethod
    def otp_verified(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_VERIFIED,
            entity_type="otp",
            entity_id=email,
            description=f"OTP verified for {email}",
            is_user_action=True,
        )

    @staticmethod
    def otp_verification_failed(email: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OTP_VERIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="otp",
            entity_id=email,
            description=f"OTP verification failed for {email}",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        person: str,
        kind: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{kind.capitalize()} of {amount} recorded for {person}",
            details={
                "person": person,
                "type": kind,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            description=f"Transaction rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def save_failed(person: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            description=f"Could not store transaction for {person}",
            error_message=error_message,
        )

    @staticmethod
    def statements_computed(
        person_count: int,
        statement_count: int,
        person: Optional[str],
        month: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATEMENTS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="statement",
            description=(
                f"Computed {statement_count} monthly statements "
                f"for {person_count} persons"
            ),
            details={"person": person, "month": month},
        )

    @staticmethod
    def export_completed(spreadsheet_id: str, sheet_titles: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="export",
            entity_id=spreadsheet_id,
            description=f"Exported {len(sheet_titles)} sheets",
            details={"sheets": sheet_titles},
            is_user_action=True,
        )

    @staticmethod
    def export_failed(spreadsheet_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="export",
            entity_id=spreadsheet_id,
            description="Statement export failed",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(service: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
