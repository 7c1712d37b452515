"""
Tests for input validation and the ledger service.
"""

from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.ledger import LedgerService, ValidationError, validate_transaction_input
from expense_tracker.models import AuditEventType, StatementFilter, TransactionKind
from expense_tracker.services.storage import (
    InMemoryTransactionStorage,
    PersistenceError,
    StoreUnavailable,
    TransactionStorageInterface,
)

from conftest import make_transaction


class FailingStorage(TransactionStorageInterface):
    """Store whose every call fails."""

    def __init__(self):
        self.insert_calls = 0

    async def insert_transaction(self, transaction):
        self.insert_calls += 1
        raise PersistenceError("sheet is read-only")

    async def list_transactions(self):
        raise StoreUnavailable("sheet unreachable")


def valid_payload(**overrides):
    payload = {
        "person": "  alice ",
        "type": "Expense",
        "category": "food",
        "amount": "12.50",
        "date": "2024-03-09",
    }
    payload.update(overrides)
    return payload


class TestValidateTransactionInput:
    """Normalization and field-level rejection of client input."""

    def test_normalizes_person_and_type(self):
        t = validate_transaction_input(valid_payload())
        assert t.person == "ALICE"
        assert t.kind == TransactionKind.EXPENSE
        assert t.amount == Decimal("12.50")
        assert t.date == date(2024, 3, 9)
        assert t.id is None

    def test_deposit_category_is_na(self):
        t = validate_transaction_input(valid_payload(type="DEPOSIT", category="salary"))
        assert t.category == "N/A"

    def test_deposit_without_category_is_fine(self):
        payload = valid_payload(type="deposit")
        del payload["category"]
        assert validate_transaction_input(payload).category == "N/A"

    def test_expense_without_category_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(category=" "))
        assert [i.field for i in exc_info.value.issues] == ["category"]

    def test_expense_with_na_category_rejected(self):
        with pytest.raises(ValidationError):
            validate_transaction_input(valid_payload(category="N/A"))

    def test_zero_amount_accepted(self):
        assert validate_transaction_input(valid_payload(amount=0)).amount == Decimal("0")

    def test_float_amount_keeps_its_digits(self):
        assert validate_transaction_input(valid_payload(amount=0.1)).amount == Decimal("0.1")

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity", True])
    def test_unreadable_amount_rejected(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(amount=amount))
        assert exc_info.value.issues[0].issue_type == "invalid_format"

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(amount="-1"))
        assert exc_info.value.issues[0].issue_type == "invalid_value"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(type="transfer"))
        assert exc_info.value.issues[0].field == "type"

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(date="2024-02-30"))
        assert exc_info.value.issues[0].field == "date"

    @pytest.mark.parametrize("raw", ["20240105", "2024-W01-1", "2024-1-5"])
    def test_date_must_be_dashed_calendar_form(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(date=raw))
        assert exc_info.value.issues[0].field == "date"
        assert exc_info.value.issues[0].issue_type == "invalid_format"

    def test_collects_every_missing_field(self):
        """All problems are reported at once."""
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input({})
        fields = [i.field for i in exc_info.value.issues]
        assert fields == ["person", "type", "amount", "date"]
        assert "person" in str(exc_info.value)

    def test_overlong_person_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transaction_input(valid_payload(person="x" * 101))
        assert exc_info.value.issues[0].field == "person"


class TestLedgerService:
    """Reads and writes through the service."""

    @pytest.mark.asyncio
    async def test_record_returns_stored_record(self, transaction_storage, audit_logger, audit_storage):
        service = LedgerService(transaction_storage, audit_logger)

        stored = await service.record_transaction(valid_payload())

        assert stored.id
        assert stored.person == "ALICE"
        listed = await service.list_transactions()
        assert [t.id for t in listed] == [stored.id]

        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.TRANSACTION_RECORDED
        assert events[0].entity_id == stored.id

    @pytest.mark.asyncio
    async def test_record_then_aggregate(self, transaction_storage):
        service = LedgerService(transaction_storage)
        await service.record_transaction(valid_payload(type="deposit", amount=100, date="2024-01-05"))
        await service.record_transaction(valid_payload(amount=30, date="2024-01-20"))
        await service.record_transaction(valid_payload(type="deposit", amount=50, date="2024-02-01"))

        statements = await service.list_statements()

        assert [s.ending_balance for s in statements["ALICE"]] == [Decimal("70"), Decimal("120")]

    @pytest.mark.asyncio
    async def test_rejected_input_is_audited_and_not_stored(self, transaction_storage, audit_logger, audit_storage):
        service = LedgerService(transaction_storage, audit_logger)

        with pytest.raises(ValidationError):
            await service.record_transaction(valid_payload(amount=""))

        assert await service.list_transactions() == []
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.TRANSACTION_REJECTED

    @pytest.mark.asyncio
    async def test_insert_failure_is_not_retried(self, audit_logger, audit_storage):
        storage = FailingStorage()
        service = LedgerService(storage, audit_logger)

        with pytest.raises(PersistenceError):
            await service.record_transaction(valid_payload())

        assert storage.insert_calls == 1
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.SAVE_FAILED

    @pytest.mark.asyncio
    async def test_without_storage_everything_is_unavailable(self):
        service = LedgerService()
        assert not service.is_connected
        with pytest.raises(StoreUnavailable):
            await service.list_transactions()
        with pytest.raises(StoreUnavailable):
            await service.record_transaction(valid_payload())

    @pytest.mark.asyncio
    async def test_validation_runs_before_storage_check(self):
        """Bad input is a 400, even when the store is down."""
        with pytest.raises(ValidationError):
            await LedgerService().record_transaction({})

    @pytest.mark.asyncio
    async def test_statements_and_totals_with_filter(self, scenario_a_transactions):
        storage = InMemoryTransactionStorage(scenario_a_transactions)
        service = LedgerService(storage)

        statements = await service.list_statements(
            StatementFilter(month="2024-02"),
            carry_prior_balance=True,
        )
        totals = await service.monthly_totals(StatementFilter(person="A"))

        assert statements["A"][0].starting_balance == Decimal("70")
        assert [t.month_key for t in totals] == ["2024-01", "2024-02"]

    @pytest.mark.asyncio
    async def test_same_day_inserts_keep_order(self, transaction_storage):
        service = LedgerService(transaction_storage)
        await service.record_transaction(valid_payload(type="deposit", amount=10, date="2024-05-02"))
        await service.record_transaction(valid_payload(amount=4, date="2024-05-02"))
        await service.record_transaction(valid_payload(type="deposit", amount=1, date="2024-05-01"))

        entries = (await service.list_statements())["ALICE"][0].entries

        assert [e.running_balance for e in entries] == [Decimal("1"), Decimal("11"), Decimal("7")]

    @pytest.mark.asyncio
    async def test_preloaded_storage_assigns_ids(self):
        storage = InMemoryTransactionStorage([make_transaction("A", "deposit", 1, "2024-01-01")])
        listed = await storage.list_transactions()
        assert listed[0].id

    @pytest.mark.asyncio
    async def test_unreachable_store_is_audited(self, audit_logger, audit_storage):
        service = LedgerService(FailingStorage(), audit_logger)

        with pytest.raises(StoreUnavailable):
            await service.list_statements()

        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert events[0].details == {"service": "FailingStorage"}
