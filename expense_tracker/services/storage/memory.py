"""
In-Memory Storage Implementation

Used by the test suite and when no Google Sheets credentials are
configured. Data lives only as long as the process.
"""

import asyncio
from typing import Optional
from uuid import uuid4

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.transaction import Transaction
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Append-only transaction list guarded by an asyncio lock."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: list[Transaction] = []
        self._lock = asyncio.Lock()
        for transaction in transactions or []:
            self._transactions.append(
                transaction.model_copy(update={"id": transaction.id or uuid4().hex})
            )

    async def insert_transaction(self, transaction: Transaction) -> str:
        transaction_id = uuid4().hex
        async with self._lock:
            self._transactions.append(
                transaction.model_copy(update={"id": transaction_id})
            )
        return transaction_id

    async def list_transactions(self) -> list[Transaction]:
        async with self._lock:
            snapshot = list(self._transactions)
        # sorted() is stable, so same-day entries keep insertion order
        return sorted(snapshot, key=lambda t: t.date)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list, newest last."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
