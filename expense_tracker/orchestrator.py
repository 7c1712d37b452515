"""
Component Wiring for Expense Tracker

Builds the ledger service, the OTP gate and the exporter from settings.
Both the HTTP API and the Streamlit client get their components here,
so they always share the same storage and passcode rules.

DESIGN DECISION: Missing configuration degrades, it does not crash.
- No Google Sheets credentials: the ledger reports StoreUnavailable
- No SMTP credentials: issuing a passcode reports MailDeliveryError
The process still starts and /health still answers.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.config import get_settings
from expense_tracker.export import GoogleSheetsExporter
from expense_tracker.ledger import LedgerService
from expense_tracker.services.mail import MailerInterface, SmtpMailer, UnconfiguredMailer
from expense_tracker.services.otp import OtpGate
from expense_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Everything a client of the ledger needs."""
    ledger_service: LedgerService
    otp_gate: OtpGate
    audit_logger: AuditLogger
    exporter: Optional[GoogleSheetsExporter] = None
    sheets_client: Optional[GoogleSheetsClient] = None


def create_mailer() -> MailerInterface:
    """SMTP mailer when credentials are configured."""
    try:
        return SmtpMailer(get_settings().mail)
    except Exception as e:
        logger.warning("mail_not_configured", error=str(e))
        return UnconfiguredMailer()


def create_app_components(
    use_storage: bool = True,
    transaction_storage: Optional[TransactionStorageInterface] = None,
    mailer: Optional[MailerInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    False uses a process-local in-memory store.
        transaction_storage: Explicit store, overrides use_storage
        mailer: Explicit mailer, overrides the SMTP configuration

    Returns:
        AppComponents
    """
    sheets_client = None
    exporter = None
    audit_logger = AuditLogger()  # Local-only logging until storage is up

    if transaction_storage is None and use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            exporter = GoogleSheetsExporter(sheets_client, audit_logger=audit_logger)
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            transaction_storage = None
            exporter = None
    elif transaction_storage is None:
        transaction_storage = InMemoryTransactionStorage()

    otp_settings = get_settings().otp
    otp_gate = OtpGate(
        mailer=mailer or create_mailer(),
        expire_ms=otp_settings.expire_ms,
        allowed_emails=otp_settings.allowed_emails_list,
        audit_logger=audit_logger,
    )

    ledger_service = LedgerService(
        storage=transaction_storage,
        audit_logger=audit_logger,
    )

    return AppComponents(
        ledger_service=ledger_service,
        otp_gate=otp_gate,
        audit_logger=audit_logger,
        exporter=exporter,
        sheets_client=sheets_client,
    )
