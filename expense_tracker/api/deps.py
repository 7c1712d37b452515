"""FastAPI dependencies shared by the routers."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError

from expense_tracker.export import ExportError, GoogleSheetsExporter
from expense_tracker.ledger import LedgerService, ValidationError
from expense_tracker.models import StatementFilter, ValidationIssue
from expense_tracker.orchestrator import AppComponents, create_app_components
from expense_tracker.services.otp import OtpGate


@lru_cache()
def get_components() -> AppComponents:
    """One set of components per process; the OTP store lives in it."""
    return create_app_components()


def reset_components_cache() -> None:
    get_components.cache_clear()


def get_ledger_service(components: AppComponents = Depends(get_components)) -> LedgerService:
    return components.ledger_service


def get_otp_gate(components: AppComponents = Depends(get_components)) -> OtpGate:
    return components.otp_gate


def get_exporter(components: AppComponents = Depends(get_components)) -> GoogleSheetsExporter:
    if components.exporter is None:
        raise ExportError("Export spreadsheet is not configured")
    return components.exporter


def build_statement_filter(person: Optional[str], month: Optional[str]) -> StatementFilter:
    """Filter from query or body values; bad values become a 400."""
    try:
        return StatementFilter(person=person, month=month)
    except PydanticValidationError as e:
        raise ValidationError([
            ValidationIssue(
                field=".".join(str(part) for part in error["loc"]) or "filter",
                issue_type="invalid_format",
                message="Month must be in YYYY-MM format" if "month" in error["loc"] else error["msg"],
            )
            for error in e.errors()
        ])
