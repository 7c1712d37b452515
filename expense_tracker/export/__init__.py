"""Statement export package."""

from expense_tracker.export.sheets import (
    EXPORT_HEADER,
    ExportError,
    ExportSheet,
    GoogleSheetsExporter,
    build_export_archive,
    build_export_sheets,
    sheet_title,
)

__all__ = [
    "EXPORT_HEADER",
    "ExportError",
    "ExportSheet",
    "GoogleSheetsExporter",
    "build_export_archive",
    "build_export_sheets",
    "sheet_title",
]
