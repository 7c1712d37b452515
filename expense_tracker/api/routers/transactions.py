"""Transaction list and insert endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends

from expense_tracker.api.deps import get_ledger_service
from expense_tracker.api.schemas import TransactionCreatedResponse
from expense_tracker.ledger import LedgerService

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("")
async def list_transactions(
    ledger: LedgerService = Depends(get_ledger_service),
) -> list[dict]:
    transactions = await ledger.list_transactions()
    return [t.to_api_dict() for t in transactions]


@router.post("", response_model=TransactionCreatedResponse)
async def create_transaction(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerService = Depends(get_ledger_service),
) -> TransactionCreatedResponse:
    stored = await ledger.record_transaction(payload)
    return TransactionCreatedResponse(id=stored.id)
