"""Spreadsheet export endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends

from expense_tracker.api.deps import build_statement_filter, get_exporter, get_ledger_service
from expense_tracker.api.schemas import ExportRequest, ExportResponse
from expense_tracker.export import GoogleSheetsExporter, build_export_sheets
from expense_tracker.ledger import LedgerService

router = APIRouter(prefix="/api/export", tags=["export"])


@router.post("", response_model=ExportResponse)
async def export_statements(
    request: Optional[ExportRequest] = None,
    ledger: LedgerService = Depends(get_ledger_service),
    exporter: GoogleSheetsExporter = Depends(get_exporter),
) -> ExportResponse:
    request = request or ExportRequest()
    statement_filter = build_statement_filter(request.person, request.month)
    statements = await ledger.list_statements(statement_filter)
    titles = await exporter.export(build_export_sheets(statements))
    return ExportResponse(sheets=titles)
