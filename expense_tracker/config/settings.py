"""
Configuration Management for Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The variable names (EMAIL_USER, EMAIL_PASS, ALLOWED_EMAILS, OTP_EXPIRE_MS,
PORT) are the ones existing deployments already set, so they are read
as-is rather than under a new prefix.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MailSettings(BaseSettings):
    """Outbound SMTP configuration used to deliver OTP codes."""

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = Field(
        ...,
        description="SMTP login, also used as the sender address"
    )
    password: str = Field(
        ...,
        validation_alias=AliasChoices("EMAIL_PASS", "EMAIL_PASSWORD"),
        description="SMTP password or app password"
    )
    host: str = Field(
        default="smtp.gmail.com",
        description="SMTP server host"
    )
    port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (STARTTLS)"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Upper bound for a single send, connect included"
    )
    sender_name: str = Field(
        default="Expense App",
        description="Display name on outgoing mail"
    )


class OtpSettings(BaseSettings):
    """One-time passcode configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    expire_ms: int = Field(
        default=120000,
        gt=0,
        description="How long an issued code stays valid, in milliseconds"
    )
    allowed_emails: str = Field(
        default="",
        validation_alias=AliasChoices("ALLOWED_EMAILS", "OTP_ALLOWED_EMAILS"),
        description="Comma-separated allow-list; empty allows every address"
    )

    @property
    def allowed_emails_list(self) -> list[str]:
        """Get the allow-list as normalized addresses."""
        return [
            email.strip().lower()
            for email in self.allowed_emails.split(",")
            if email.strip()
        ]

    @property
    def expire_seconds(self) -> float:
        return self.expire_ms / 1000


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding the ledger"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    export_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="Spreadsheet receiving statement exports (defaults to the ledger one)"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    @property
    def export_target_id(self) -> str:
        return self.export_spreadsheet_id or self.spreadsheet_id


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # HTTP server
    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "APP_HOST"),
        description="Interface the API server binds to"
    )
    port: int = Field(
        default=5000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "APP_PORT"),
        description="Port the API server listens on"
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing mail or Sheets
    # configuration only fails the component that needs it.

    @property
    def mail(self) -> MailSettings:
        return MailSettings()

    @property
    def otp(self) -> OtpSettings:
        return OtpSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each failure. Used by the client's
    settings page.
    """
    results = {}
    settings = get_settings()

    for name in ("mail", "otp", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
