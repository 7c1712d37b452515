"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    MailSettings,
    OtpSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "MailSettings",
    "OtpSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
