"""
Shared fixtures.

No test touches the network: storage is in memory, mail goes to a
recording fake and OTP expiry runs on a hand-driven clock.
"""

from datetime import date
from decimal import Decimal

import gspread
import pytest

from expense_tracker.audit import AuditLogger
from expense_tracker.models import Transaction, TransactionKind
from expense_tracker.services.mail import MailDeliveryError, MailerInterface
from expense_tracker.services.otp import OtpGate
from expense_tracker.services.storage import InMemoryAuditStorage, InMemoryTransactionStorage


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailer(MailerInterface):
    """Keeps every sent code instead of emailing it."""

    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str, float]] = []
        self.fail = fail

    async def send_otp(self, email: str, code: str, expires_in_seconds: float) -> None:
        if self.fail:
            raise MailDeliveryError("SMTP server refused the connection")
        self.sent.append((email, code, expires_in_seconds))

    def last_code(self) -> str:
        return self.sent[-1][1]


class FakeWorksheet:
    """The worksheet calls the exporter makes."""

    def __init__(self, title, rows, cols):
        self.title = title
        self.size = (rows, cols)
        self.values = []

    def clear(self):
        self.values = []

    def resize(self, rows=None, cols=None):
        self.size = (rows, cols)

    def update(self, values=None, range_name=None, value_input_option=None):
        assert range_name == "A1"
        self.values = values


class FakeSpreadsheet:
    def __init__(self):
        self.worksheets = {}

    def worksheet(self, title):
        if title not in self.worksheets:
            raise gspread.WorksheetNotFound(title)
        return self.worksheets[title]

    def add_worksheet(self, title, rows, cols):
        sheet = self.worksheets[title] = FakeWorksheet(title, rows, cols)
        return sheet


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient."""

    def __init__(self, spreadsheet=None, error=None):
        self.spreadsheet = spreadsheet or FakeSpreadsheet()
        self.error = error
        self.requested = []

    def get_spreadsheet(self, spreadsheet_id=None):
        self.requested.append(spreadsheet_id)
        if self.error:
            raise self.error
        return self.spreadsheet


def make_transaction(person, kind, amount, on, category=None, id=None) -> Transaction:
    """Terse Transaction builder for tests."""
    kind = TransactionKind(kind)
    if category is None:
        category = "general" if kind == TransactionKind.EXPENSE else "N/A"
    return Transaction(
        id=id,
        person=person,
        kind=kind,
        category=category,
        amount=Decimal(str(amount)),
        date=on if isinstance(on, date) else date.fromisoformat(on),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def otp_gate(mailer, clock, audit_logger) -> OtpGate:
    return OtpGate(
        mailer=mailer,
        expire_ms=120000,
        clock=clock,
        audit_logger=audit_logger,
    )


@pytest.fixture
def transaction_storage() -> InMemoryTransactionStorage:
    return InMemoryTransactionStorage()


@pytest.fixture
def scenario_a_transactions() -> list[Transaction]:
    """Person A: two January entries and one February deposit."""
    return [
        make_transaction("A", "deposit", 100, "2024-01-05"),
        make_transaction("A", "expense", 30, "2024-01-20", category="food"),
        make_transaction("A", "deposit", 50, "2024-02-01"),
    ]
