"""Ledger package: balance aggregation and the ledger service."""

from expense_tracker.ledger.aggregator import (
    MalformedTransactionError,
    aggregate,
    build_statements,
    monthly_totals,
)
from expense_tracker.ledger.service import (
    LedgerService,
    ValidationError,
    validate_transaction_input,
)

__all__ = [
    "LedgerService",
    "MalformedTransactionError",
    "ValidationError",
    "aggregate",
    "build_statements",
    "monthly_totals",
    "validate_transaction_input",
]
