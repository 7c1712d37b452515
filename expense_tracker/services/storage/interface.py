"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The transaction store is append-only: there is no update or delete.
"""

from abc import ABC, abstractmethod

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation (Google Sheets, in-memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> str:
        """
        Append a transaction to the store.

        The store assigns the id; any id already set on the
        transaction is ignored. A single insert is atomic.

        Args:
            transaction: The validated transaction to store

        Returns:
            The id assigned to the stored transaction

        Raises:
            StoreUnavailable: If the backend cannot be reached
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """
        List every stored transaction.

        Returns:
            All transactions ordered by date ascending. Transactions
            sharing a date keep their insertion order.

        Raises:
            StoreUnavailable: If the backend cannot be reached
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoreUnavailable(StorageError):
    """The storage backend is not connected or cannot be reached."""
    pass


class PersistenceError(StorageError):
    """A write to the storage backend failed."""
    pass
