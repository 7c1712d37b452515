"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The household can read the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No multi-row transactions (every insert is a single append_row)
- Limited query capabilities (we sort and filter in Python)

gspread is synchronous, so every call runs in a worker thread to keep
the event loop of the API server free.
"""

import asyncio
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError as PydanticValidationError
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.transaction import MalformedTransactionError, Transaction
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    PersistenceError,
    StorageError,
    StoreUnavailable,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "person",
    "type",
    "category",
    "amount",
    "date",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication. A missing
        credentials file fails at once; only the authorization call is
        retried.
        """
        if self._client is None:
            if not Path(self._settings.credentials_path).is_file():
                raise StoreUnavailable(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            self._client = self._authorize()

        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _authorize(self) -> gspread.Client:
        try:
            credentials = Credentials.from_service_account_file(
                self._settings.credentials_path,
                scopes=SCOPES,
            )
            return gspread.authorize(credentials)
        except Exception as e:
            raise StoreUnavailable(f"Failed to connect to Google Sheets: {e}")

    def get_spreadsheet(self, spreadsheet_id: Optional[str] = None) -> gspread.Spreadsheet:
        """Get a spreadsheet by key, the ledger spreadsheet by default."""
        key = spreadsheet_id or self._settings.spreadsheet_id
        if key not in self._spreadsheets:
            client = self.connect()
            try:
                self._spreadsheets[key] = client.open_by_key(key)
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailable(f"Spreadsheet not found: {key}")
        return self._spreadsheets[key]

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row. The id is a uuid4 hex string generated
    before the append, so the row is complete in a single API call.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction_id: str, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction_id,
            transaction.person,
            transaction.kind.value,
            transaction.category,
            str(transaction.amount),
            transaction.date.isoformat(),
            datetime.now(timezone.utc).isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        if not safe_get(0):
            raise ValueError("row has no transaction id")

        return Transaction(
            id=safe_get(0),
            person=safe_get(1),
            kind=safe_get(2),
            category=safe_get(3),
            amount=Decimal(safe_get(4, "NaN")),
            date=date.fromisoformat(safe_get(5)),
        )

    async def insert_transaction(self, transaction: Transaction) -> str:
        """
        Append a transaction row.

        Not retried: an append that timed out may still have landed,
        and there is no idempotency key to detect the duplicate.
        """
        transaction_id = uuid4().hex
        row = self._transaction_to_row(transaction_id, transaction)
        try:
            sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
            await asyncio.to_thread(sheet.append_row, row, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save transaction: {e}")
        return transaction_id

    # Connection failures were already retried by the client
    @retry(
        retry=retry_if_not_exception_type(StorageError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch_rows(self) -> list[list[str]]:
        sheet = await asyncio.to_thread(self._client.get_transactions_sheet)
        return (await asyncio.to_thread(sheet.get_all_values))[1:]  # Skip header

    async def list_transactions(self) -> list[Transaction]:
        """
        List every transaction, oldest first.

        Raises:
            StoreUnavailable: if the sheet cannot be read
            MalformedTransactionError: if any row cannot be read as a
                transaction; positions are sheet row numbers
        """
        try:
            all_rows = await self._fetch_rows()
        except StorageError:
            raise
        except Exception as e:
            raise StoreUnavailable(f"Failed to list transactions: {e}")

        transactions = []
        problems = []
        for row_number, row in enumerate(all_rows, start=2):
            if not any(cell.strip() for cell in row):  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except (PydanticValidationError, ArithmeticError, ValueError) as e:
                problems.append((row_number, str(e)))

        if problems:
            logger.error(
                "malformed_transaction_rows",
                row_numbers=[row_number for row_number, _ in problems],
            )
            raise MalformedTransactionError(problems)

        # Stable sort keeps sheet order for same-day entries
        transactions.sort(key=lambda t: t.date)
        return transactions


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            description=safe_get(6),
            details=json.loads(safe_get(7)) if safe_get(7) else {},
            error_message=safe_get(8) or None,
            is_user_action=safe_get(9).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            await asyncio.to_thread(
                sheet.append_row, event.to_sheets_row(), value_input_option="RAW"
            )
            return True
        except Exception as e:
            # Audit persistence must not break the main flow
            logger.warning(
                "audit_event_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = await asyncio.to_thread(self._client.get_audit_sheet)
            all_rows = (await asyncio.to_thread(sheet.get_all_values))[1:]
        except Exception as e:
            raise StoreUnavailable(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except (PydanticValidationError, ValueError):
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
