"""
Statement Export

Flattens monthly statements into one sheet per person and month and
writes them to a Google spreadsheet, or into a zip of CSV files for
download.

DESIGN DECISION: No aggregation happens here.
build_export_sheets only reshapes what the aggregator produced, so the
exported running balances are exactly the ones shown in the client.
"""

import asyncio
import csv
import io
import zipfile
from collections.abc import Mapping, Sequence
from typing import Optional

import gspread
import structlog
from pydantic import BaseModel, Field

from expense_tracker.audit import AuditLogger
from expense_tracker.models.transaction import MonthlyStatement
from expense_tracker.services.storage import GoogleSheetsClient


logger = structlog.get_logger(__name__)

EXPORT_HEADER = ["Date", "Type", "Category", "Amount", "Running Balance"]

# Google Sheets rejects longer worksheet titles
MAX_SHEET_TITLE_LENGTH = 100


class ExportError(Exception):
    """Statements could not be written to the export spreadsheet."""
    pass


class ExportSheet(BaseModel):
    """One tabular sheet of the export."""

    title: str = Field(..., min_length=1, max_length=MAX_SHEET_TITLE_LENGTH)
    header: list[str] = Field(default_factory=lambda: list(EXPORT_HEADER))
    rows: list[list] = Field(default_factory=list)

    def to_values(self) -> list[list]:
        """Header plus data rows, ready for a worksheet update."""
        return [self.header, *self.rows]


def sheet_title(person: str, month_key: str) -> str:
    """Title of the sheet holding one person's month, e.g. ``ALICE_2024-01``."""
    suffix = f"_{month_key}"
    return person[: MAX_SHEET_TITLE_LENGTH - len(suffix)] + suffix


def build_export_sheets(
    statements: Mapping[str, Sequence[MonthlyStatement]],
) -> list[ExportSheet]:
    """
    One sheet per (person, month), in the order of the statements.

    Rows follow the month's chronological order. Amounts and balances
    are written as numbers so the spreadsheet can sum them.
    """
    sheets = []
    for person, months in statements.items():
        for statement in months:
            rows = [
                [
                    entry.date.isoformat(),
                    entry.kind.value,
                    entry.category,
                    float(entry.amount),
                    float(entry.running_balance),
                ]
                for entry in statement.entries
            ]
            sheets.append(ExportSheet(title=sheet_title(person, statement.month_key), rows=rows))
    return sheets


def build_export_archive(sheets: Sequence[ExportSheet]) -> bytes:
    """
    Zip archive with one ``<title>.csv`` per sheet.

    Used for downloads when no export spreadsheet is configured.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for sheet in sheets:
            text = io.StringIO()
            csv.writer(text).writerows(sheet.to_values())
            archive.writestr(f"{sheet.title}.csv", text.getvalue())
    return buffer.getvalue()


class GoogleSheetsExporter:
    """
    Writes export sheets as worksheets of a spreadsheet.

    An existing worksheet with the same title is cleared and rewritten,
    so exporting twice leaves a single up-to-date copy.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        spreadsheet_id: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._spreadsheet_id = spreadsheet_id or self._client.settings.export_target_id
        self._audit_logger = audit_logger

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def _write_sheet(self, spreadsheet: gspread.Spreadsheet, sheet: ExportSheet) -> None:
        values = sheet.to_values()
        try:
            worksheet = spreadsheet.worksheet(sheet.title)
            worksheet.clear()
            worksheet.resize(rows=max(len(values), 1), cols=len(sheet.header))
        except gspread.WorksheetNotFound:
            worksheet = spreadsheet.add_worksheet(
                title=sheet.title,
                rows=max(len(values), 1),
                cols=len(sheet.header),
            )
        worksheet.update(values=values, range_name="A1", value_input_option="RAW")

    def _write_all(self, sheets: list[ExportSheet]) -> None:
        spreadsheet = self._client.get_spreadsheet(self._spreadsheet_id)
        for sheet in sheets:
            self._write_sheet(spreadsheet, sheet)

    async def export(self, sheets: list[ExportSheet]) -> list[str]:
        """
        Write every sheet.

        Returns:
            Titles of the written sheets

        Raises:
            ExportError: if the spreadsheet cannot be reached or written
        """
        titles = [sheet.title for sheet in sheets]
        try:
            await asyncio.to_thread(self._write_all, sheets)
        except Exception as e:
            logger.error("export_failed", spreadsheet_id=self._spreadsheet_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_export_failed(self._spreadsheet_id, str(e))
            raise ExportError(f"Failed to export statements: {e}")

        logger.info("export_completed", spreadsheet_id=self._spreadsheet_id, sheets=len(titles))
        if self._audit_logger:
            await self._audit_logger.log_export_completed(self._spreadsheet_id, titles)
        return titles
