"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.transaction import (
    ALL_PERSONS,
    NO_CATEGORY,
    MalformedTransactionError,
    MonthlyStatement,
    MonthlyTotals,
    StatementFilter,
    Transaction,
    TransactionKind,
    TransactionWithBalance,
    ValidationIssue,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ALL_PERSONS",
    "NO_CATEGORY",
    "MalformedTransactionError",
    "MonthlyStatement",
    "MonthlyTotals",
    "StatementFilter",
    "Transaction",
    "TransactionKind",
    "TransactionWithBalance",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
