"""
Ledger Service

Mediates between the transaction store and the aggregator.

FLOW:
- Read: fetch every stored transaction → aggregate → statements
- Write: validate client input → normalize → insert → stored record

DESIGN DECISION: The service owns no state beyond the current request.
It never retries a failed insert: there is no idempotency key, so a
blind retry can store the same transaction twice.
"""

import re
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from expense_tracker.audit import AuditLogger
from expense_tracker.ledger.aggregator import aggregate, monthly_totals
from expense_tracker.models.transaction import (
    NO_CATEGORY,
    MonthlyStatement,
    MonthlyTotals,
    StatementFilter,
    Transaction,
    TransactionKind,
    ValidationIssue,
)
from expense_tracker.services.storage import (
    StorageError,
    StoreUnavailable,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ValidationError(Exception):
    """Client input for a new transaction is missing or invalid."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        fields = ", ".join(issue.field for issue in issues)
        super().__init__(f"Missing or invalid fields: {fields}")

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


def _missing(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"{label} is required",
    )


def _parse_amount(raw: Any) -> Optional[Decimal]:
    """Read an amount from a number or numeric string; None if unreadable."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float):
        raw = repr(raw)
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def validate_transaction_input(payload: Mapping[str, Any]) -> Transaction:
    """
    Turn client input into a normalized Transaction.

    Normalization:
    - person is trimmed and upper-cased
    - type is case-insensitive
    - deposits always get the "N/A" category

    Raises:
        ValidationError: with one issue per missing or invalid field
    """
    issues: list[ValidationIssue] = []

    raw_person = payload.get("person")
    person = raw_person.strip().upper() if isinstance(raw_person, str) else ""
    if not person:
        issues.append(_missing("person", "Person"))

    raw_kind = payload.get("type", payload.get("kind"))
    kind: Optional[TransactionKind] = None
    if raw_kind is None or (isinstance(raw_kind, str) and not raw_kind.strip()):
        issues.append(_missing("type", "Type"))
    else:
        try:
            kind = TransactionKind(str(raw_kind).strip().lower())
        except ValueError:
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be 'deposit' or 'expense'",
            ))

    raw_category = payload.get("category")
    category = raw_category.strip() if isinstance(raw_category, str) else ""
    if kind == TransactionKind.DEPOSIT:
        category = NO_CATEGORY
    elif kind == TransactionKind.EXPENSE and (not category or category == NO_CATEGORY):
        issues.append(_missing("category", "Category for an expense"))

    raw_amount = payload.get("amount")
    amount: Optional[Decimal] = None
    if raw_amount is None or (isinstance(raw_amount, str) and not raw_amount.strip()):
        issues.append(_missing("amount", "Amount"))
    else:
        amount = _parse_amount(raw_amount)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a number",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
            ))

    raw_date = payload.get("date")
    parsed_date: Optional[date] = None
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        issues.append(_missing("date", "Date"))
    elif isinstance(raw_date, date):
        parsed_date = raw_date
    else:
        text = str(raw_date).strip()
        if ISO_DATE_PATTERN.match(text):
            try:
                parsed_date = date.fromisoformat(text)
            except ValueError:
                parsed_date = None  # 2024-02-30 and the like
        if parsed_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message="Date must be a calendar date in YYYY-MM-DD format",
            ))

    if issues:
        raise ValidationError(issues)

    try:
        return Transaction(
            person=person,
            kind=kind,
            category=category,
            amount=amount,
            date=parsed_date,
        )
    except PydanticValidationError as e:
        # Length limits and similar model constraints
        raise ValidationError([
            ValidationIssue(
                field=".".join(str(part) for part in error["loc"]) or "transaction",
                issue_type="invalid_value",
                message=error["msg"],
            )
            for error in e.errors()
        ])


class LedgerService:
    """
    Orchestrates reads and writes of the ledger.

    The store is optional so the service can be built before a
    backend is configured; every operation then fails with
    StoreUnavailable.
    """

    def __init__(
        self,
        storage: Optional[TransactionStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    @property
    def is_connected(self) -> bool:
        return self._storage is not None

    def _require_storage(self) -> TransactionStorageInterface:
        if self._storage is None:
            raise StoreUnavailable("Transaction store is not connected")
        return self._storage

    async def list_transactions(self) -> list[Transaction]:
        """Every stored transaction, oldest first."""
        storage = self._require_storage()
        try:
            return await storage.list_transactions()
        except StoreUnavailable as e:
            logger.error("transaction_store_unreachable", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    type(storage).__name__, str(e)
                )
            raise

    async def list_statements(
        self,
        statement_filter: Optional[StatementFilter] = None,
        carry_prior_balance: bool = False,
    ) -> dict[str, list[MonthlyStatement]]:
        """
        Fetch all transactions and aggregate them into monthly statements.

        Raises:
            StoreUnavailable: if the store is not connected or unreachable
            MalformedTransactionError: if the store returned bad records
        """
        statement_filter = statement_filter or StatementFilter()
        transactions = await self.list_transactions()
        statements = aggregate(
            transactions,
            statement_filter,
            carry_prior_balance=carry_prior_balance,
        )

        if self._audit_logger:
            await self._audit_logger.log_statements_computed(
                person_count=len(statements),
                statement_count=sum(len(months) for months in statements.values()),
                person=statement_filter.person,
                month=statement_filter.month,
            )

        return statements

    async def monthly_totals(
        self,
        statement_filter: Optional[StatementFilter] = None,
    ) -> list[MonthlyTotals]:
        """Deposits vs expenses per month over stored transactions."""
        transactions = await self.list_transactions()
        return monthly_totals(transactions, statement_filter)

    async def record_transaction(self, payload: Mapping[str, Any]) -> Transaction:
        """
        Validate and store a new transaction.

        Returns:
            The stored transaction, with the id assigned by the store.
            Re-aggregating afterwards is left to the caller.

        Raises:
            ValidationError: if input is missing or invalid
            StoreUnavailable / PersistenceError: if the store fails
        """
        try:
            transaction = validate_transaction_input(payload)
        except ValidationError as e:
            logger.info("transaction_rejected", issues=e.to_dicts())
            if self._audit_logger:
                await self._audit_logger.log_transaction_rejected(e.to_dicts())
            raise

        storage = self._require_storage()
        try:
            transaction_id = await storage.insert_transaction(transaction)
        except StorageError as e:
            logger.error("transaction_save_failed", person=transaction.person, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_save_failed(transaction.person, str(e))
            raise

        stored = transaction.model_copy(update={"id": transaction_id})

        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                transaction_id=transaction_id,
                person=stored.person,
                kind=stored.kind.value,
                amount=str(stored.amount),
            )

        return stored
