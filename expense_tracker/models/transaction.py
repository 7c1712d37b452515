"""
Core Data Models for Expense Tracker

These models define the strict schemas for all ledger data.

DESIGN DECISION: Stored transactions are immutable (frozen models).
Balances and monthly statements are derived values: they are rebuilt
from transactions on every aggregation and never written back.

Money is always Decimal. Float arithmetic would make two aggregations
of the same data disagree in the last digit.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# Category recorded for every deposit
NO_CATEGORY = "N/A"

# Person filter value meaning "every person"
ALL_PERSONS = "all"

MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class MalformedTransactionError(Exception):
    """
    One or more stored records could not be read as transactions.

    The whole read is rejected; ``problems`` lists (position, reason)
    for every bad record. Positions are input indexes for the
    aggregator and sheet row numbers for the Sheets store.
    """

    def __init__(self, problems: list[tuple[int, str]]):
        self.problems = problems
        positions = ", ".join(str(position) for position, _ in problems)
        super().__init__(
            f"{len(problems)} malformed transaction record(s) at position(s) {positions}"
        )


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a transaction. Serialized under the key ``type``."""
    DEPOSIT = "deposit"
    EXPENSE = "expense"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single deposit or expense of one person.

    Invariants enforced here:
    - amount is non-negative and finite
    - a deposit always carries the "N/A" category
    - an expense always carries a real category

    The person name is stored exactly as given. Callers upper-case it
    before insert (see LedgerService.record_transaction).
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: Optional[str] = Field(
        default=None,
        description="Opaque identifier assigned by the store on insert"
    )
    person: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Owner of the transaction"
    )
    kind: TransactionKind = Field(
        ...,
        alias="type",
        description="Deposit or expense"
    )
    category: str = Field(
        default=NO_CATEGORY,
        max_length=100,
        description="Expense category, 'N/A' for deposits"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in the ledger's single currency"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )

    @model_validator(mode="before")
    @classmethod
    def apply_deposit_category(cls, data: Any) -> Any:
        """Deposits never carry a category."""
        if isinstance(data, dict):
            kind = data.get("type", data.get("kind"))
            if isinstance(kind, TransactionKind):
                kind = kind.value
            if isinstance(kind, str) and kind.strip().lower() == TransactionKind.DEPOSIT.value:
                data = {**data, "category": NO_CATEGORY}
        return data

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def validate_expense_category(self) -> "Transaction":
        if self.kind == TransactionKind.EXPENSE:
            if not self.category or self.category == NO_CATEGORY:
                raise ValueError("An expense requires a category")
        return self

    @property
    def month_key(self) -> str:
        """The YYYY-MM month this transaction belongs to."""
        return self.date.isoformat()[:7]

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its person's balance."""
        if self.kind == TransactionKind.DEPOSIT:
            return self.amount
        return -self.amount

    def to_api_dict(self) -> dict:
        """Wire representation: ``type`` key, ISO date, amount as number."""
        return {
            "id": self.id,
            "person": self.person,
            "type": self.kind.value,
            "category": self.category,
            "amount": float(self.amount),
            "date": self.date.isoformat(),
        }


class TransactionWithBalance(Transaction):
    """A transaction plus its person's balance right after applying it."""

    running_balance: Decimal = Field(
        ...,
        description="Balance after this transaction"
    )

    def to_api_dict(self) -> dict:
        data = super().to_api_dict()
        data["runningBalance"] = float(self.running_balance)
        return data


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class MonthlyStatement(BaseModel):
    """
    One person's activity in one month.

    Chained per person: a statement's ending_balance is the next month's
    starting_balance.
    """
    model_config = ConfigDict(frozen=True)

    person: str
    month_key: str = Field(..., pattern=MONTH_KEY_PATTERN)
    starting_balance: Decimal
    total_deposits: Decimal
    total_expenses: Decimal
    ending_balance: Decimal
    entries: tuple[TransactionWithBalance, ...] = ()

    @property
    def net_change(self) -> Decimal:
        return self.total_deposits - self.total_expenses

    def to_api_dict(self) -> dict:
        return {
            "person": self.person,
            "month": self.month_key,
            "monthStartingBalance": float(self.starting_balance),
            "totalDeposits": float(self.total_deposits),
            "totalExpenses": float(self.total_expenses),
            "monthEndingBalance": float(self.ending_balance),
            "entries": [entry.to_api_dict() for entry in self.entries],
        }


class MonthlyTotals(BaseModel):
    """Deposits and expenses of one month, all selected persons combined."""
    model_config = ConfigDict(frozen=True)

    month_key: str = Field(..., pattern=MONTH_KEY_PATTERN)
    deposits: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    def to_api_dict(self) -> dict:
        return {
            "month": self.month_key,
            "deposit": float(self.deposits),
            "expense": float(self.expenses),
        }


class StatementFilter(BaseModel):
    """
    Optional restriction of an aggregation.

    person: person name (matched upper-cased, as stored), or None /
        "all" for everyone.
    month: YYYY-MM, or None for every month.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    person: Optional[str] = None
    month: Optional[str] = Field(default=None, pattern=MONTH_KEY_PATTERN)

    @field_validator("person", "month", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("person")
    @classmethod
    def normalize_person(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == ALL_PERSONS:
            return v
        return v.upper()

    @property
    def selected_person(self) -> Optional[str]:
        """The single person to report on, or None for all."""
        if self.person is None or self.person == ALL_PERSONS:
            return None
        return self.person

    def matches(self, transaction: Transaction) -> bool:
        person = self.selected_person
        if person is not None and transaction.person != person:
            return False
        if self.month is not None and transaction.month_key != self.month:
            return False
        return True


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in client input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
