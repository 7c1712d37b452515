"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory backend serves tests
and credential-less local runs.
"""

from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    PersistenceError,
    StorageError,
    StoreUnavailable,
    TransactionStorageInterface,
)
from expense_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "PersistenceError",
    "StorageError",
    "StoreUnavailable",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStorage",
]
