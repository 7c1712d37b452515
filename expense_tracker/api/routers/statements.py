"""Monthly statement endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from expense_tracker.api.deps import build_statement_filter, get_ledger_service
from expense_tracker.ledger import LedgerService

router = APIRouter(prefix="/api/statements", tags=["statements"])


@router.get("")
async def list_statements(
    person: Optional[str] = None,
    month: Optional[str] = None,
    carry_prior_balance: bool = False,
    ledger: LedgerService = Depends(get_ledger_service),
) -> dict[str, list[dict]]:
    """Statements per person, months ascending."""
    statement_filter = build_statement_filter(person, month)
    statements = await ledger.list_statements(
        statement_filter,
        carry_prior_balance=carry_prior_balance,
    )
    return {
        name: [statement.to_api_dict() for statement in months]
        for name, months in statements.items()
    }


@router.get("/monthly-totals")
async def list_monthly_totals(
    person: Optional[str] = None,
    month: Optional[str] = None,
    ledger: LedgerService = Depends(get_ledger_service),
) -> list[dict]:
    statement_filter = build_statement_filter(person, month)
    totals = await ledger.monthly_totals(statement_filter)
    return [t.to_api_dict() for t in totals]
