"""
Running-Balance Aggregation

Turns an unordered collection of transactions into per-person, per-month
statements with starting, running and ending balances.

DESIGN DECISION: Aggregation is a pure function.
- No storage access, no clock, no shared state
- The same input always yields identical statements
- Safe to call concurrently from any number of requests

GUARANTEES (per person, months ascending):
- statement[n].ending_balance == statement[n + 1].starting_balance
- ending_balance == starting_balance + total_deposits - total_expenses
- every transaction of the person appears in exactly one month
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from expense_tracker.models.transaction import (
    MalformedTransactionError,
    MonthlyStatement,
    MonthlyTotals,
    StatementFilter,
    Transaction,
    TransactionKind,
    TransactionWithBalance,
)


TransactionRecord = Union[Transaction, Mapping[str, Any]]

ZERO = Decimal("0")


def coerce_transactions(records: Iterable[TransactionRecord]) -> list[Transaction]:
    """
    Validate raw records into Transaction models, keeping input order.

    Raises:
        MalformedTransactionError: if any record has an unparseable
            date or amount (or is otherwise invalid)
    """
    transactions = []
    problems = []
    for position, record in enumerate(records):
        if isinstance(record, Transaction):
            transactions.append(record)
            continue
        try:
            transactions.append(Transaction.model_validate(dict(record)))
        except (PydanticValidationError, TypeError, ValueError) as e:
            problems.append((position, str(e)))

    if problems:
        raise MalformedTransactionError(problems)
    return transactions


def aggregate(
    transactions: Iterable[TransactionRecord],
    statement_filter: Optional[StatementFilter] = None,
    *,
    carry_prior_balance: bool = False,
) -> dict[str, list[MonthlyStatement]]:
    """
    Build monthly statements for every selected person.

    Args:
        transactions: Transactions in any order (models or raw dicts)
        statement_filter: Optional person and/or month restriction
        carry_prior_balance: With a month filter, seed each person's
            balance with their net total over all earlier months
            instead of zero

    Returns:
        Mapping of person to statements in ascending month order.
        Persons are inserted in ascending name order. A filtered person
        without matching transactions is absent.
    """
    statement_filter = statement_filter or StatementFilter()
    all_transactions = coerce_transactions(transactions)

    visible = [t for t in all_transactions if statement_filter.matches(t)]

    selected = statement_filter.selected_person
    if selected is not None:
        persons = [selected]
    else:
        persons = sorted({t.person for t in visible})

    statements: dict[str, list[MonthlyStatement]] = {}
    for person in persons:
        # sorted() is stable: same-day entries keep their input order
        own = sorted(
            (t for t in visible if t.person == person),
            key=lambda t: t.date,
        )
        if not own:
            continue

        opening = ZERO
        if carry_prior_balance and statement_filter.month is not None:
            opening = balance_before(all_transactions, person, statement_filter.month)

        statements[person] = build_statements(person, own, opening)

    return statements


def build_statements(
    person: str,
    transactions: list[Transaction],
    opening_balance: Decimal = ZERO,
) -> list[MonthlyStatement]:
    """
    Chain monthly statements for one person's date-sorted transactions.

    The balance starts at ``opening_balance`` once and is carried
    across months, never reset.
    """
    month_groups: dict[str, list[Transaction]] = {}
    for transaction in transactions:
        month_groups.setdefault(transaction.month_key, []).append(transaction)

    balance = opening_balance
    statements = []
    for month_key in sorted(month_groups):
        starting_balance = balance
        total_deposits = ZERO
        total_expenses = ZERO
        entries = []

        for transaction in month_groups[month_key]:
            if transaction.kind == TransactionKind.DEPOSIT:
                balance += transaction.amount
                total_deposits += transaction.amount
            else:
                balance -= transaction.amount
                total_expenses += transaction.amount
            entries.append(
                TransactionWithBalance(
                    **transaction.model_dump(),
                    running_balance=balance,
                )
            )

        statements.append(
            MonthlyStatement(
                person=person,
                month_key=month_key,
                starting_balance=starting_balance,
                total_deposits=total_deposits,
                total_expenses=total_expenses,
                ending_balance=balance,
                entries=tuple(entries),
            )
        )

    return statements


def balance_before(
    transactions: Iterable[Transaction],
    person: str,
    month_key: str,
) -> Decimal:
    """Net balance of a person over every month strictly before month_key."""
    return sum(
        (
            t.signed_amount
            for t in transactions
            if t.person == person and t.month_key < month_key
        ),
        ZERO,
    )


def monthly_totals(
    transactions: Iterable[TransactionRecord],
    statement_filter: Optional[StatementFilter] = None,
) -> list[MonthlyTotals]:
    """
    Sum deposits and expenses per month over the filtered transactions.

    All selected persons are combined. Months are ascending.
    """
    statement_filter = statement_filter or StatementFilter()

    totals: dict[str, dict[str, Decimal]] = {}
    for transaction in coerce_transactions(transactions):
        if not statement_filter.matches(transaction):
            continue
        month = totals.setdefault(
            transaction.month_key,
            {"deposits": ZERO, "expenses": ZERO},
        )
        if transaction.kind == TransactionKind.DEPOSIT:
            month["deposits"] += transaction.amount
        else:
            month["expenses"] += transaction.amount

    return [
        MonthlyTotals(month_key=month_key, **sums)
        for month_key, sums in sorted(totals.items())
    ]
