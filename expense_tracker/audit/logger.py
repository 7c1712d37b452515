"""
Audit Logger

DESIGN DECISION: Every access attempt and every ledger write is logged.
This provides:
1. Traceability of who asked for a passcode and who used it
2. A record of rejected and failed writes
3. Debugging capability when the store or mail server misbehaves

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
"""

from typing import Optional

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage, when one is attached
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_otp_issued(self, email: str) -> None:
        await self.log(AuditEventBuilder.otp_issued(email))

    async def log_otp_send_failed(self, email: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.otp_send_failed(email, error_message))

    async def log_otp_email_rejected(self, email: str) -> None:
        await self.log(AuditEventBuilder.otp_email_rejected(email))

    async def log_otp_verified(self, email: str) -> None:
        await self.log(AuditEventBuilder.otp_verified(email))

    async def log_otp_verification_failed(self, email: str, reason: str) -> None:
        await self.log(AuditEventBuilder.otp_verification_failed(email, reason))

    async def log_transaction_recorded(
        self,
        transaction_id: str,
        person: str,
        kind: str,
        amount: str,
    ) -> None:
        """Log a stored transaction."""
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            person=person,
            kind=kind,
            amount=amount,
        )
        await self.log(event)

    async def log_transaction_rejected(self, issues: list[dict]) -> None:
        """Log a transaction that failed input validation."""
        await self.log(AuditEventBuilder.transaction_rejected(issues))

    async def log_save_failed(self, person: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.save_failed(person, error_message))

    async def log_statements_computed(
        self,
        person_count: int,
        statement_count: int,
        person: Optional[str] = None,
        month: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.statements_computed(
            person_count=person_count,
            statement_count=statement_count,
            person=person,
            month=month,
        )
        await self.log(event)

    async def log_export_completed(
        self,
        spreadsheet_id: str,
        sheet_titles: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.export_completed(spreadsheet_id, sheet_titles))

    async def log_export_failed(self, spreadsheet_id: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.export_failed(spreadsheet_id, error_message))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(service, error_message))
