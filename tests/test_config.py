"""
Tests for configuration and component wiring.
"""

import pytest

from expense_tracker.config import (
    AppSettings,
    GoogleSheetsSettings,
    MailSettings,
    OtpSettings,
    get_settings,
)
from expense_tracker.orchestrator import create_app_components
from expense_tracker.services.mail import MailDeliveryError
from expense_tracker.services.storage import InMemoryTransactionStorage

from conftest import RecordingMailer


GOOGLE_ENV = ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID")


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Environment variable names and defaults."""

    def test_mail_reads_email_pass(self, monkeypatch):
        monkeypatch.setenv("EMAIL_USER", "ledger@example.com")
        monkeypatch.setenv("EMAIL_PASS", "secret")
        settings = MailSettings()
        assert settings.password == "secret"
        assert settings.host == "smtp.gmail.com"
        assert settings.port == 587

    def test_mail_requires_credentials(self, monkeypatch):
        for name in ("EMAIL_USER", "EMAIL_PASS", "EMAIL_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ValueError):
            MailSettings()

    def test_otp_allow_list(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_EMAILS", " Owner@Home.org, ,kid@home.org ")
        monkeypatch.setenv("OTP_EXPIRE_MS", "60000")
        settings = OtpSettings()
        assert settings.allowed_emails_list == ["owner@home.org", "kid@home.org"]
        assert settings.expire_seconds == 60

    def test_otp_defaults(self, monkeypatch):
        monkeypatch.delenv("ALLOWED_EMAILS", raising=False)
        monkeypatch.delenv("OTP_EXPIRE_MS", raising=False)
        settings = OtpSettings()
        assert settings.expire_ms == 120000
        assert settings.allowed_emails_list == []

    def test_port(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        assert AppSettings().port == 8080

    def test_export_target_defaults_to_ledger(self):
        settings = GoogleSheetsSettings(credentials_path=__file__, spreadsheet_id="ledger-id")
        assert settings.export_target_id == "ledger-id"
        settings = GoogleSheetsSettings(
            credentials_path=__file__,
            spreadsheet_id="ledger-id",
            export_spreadsheet_id="export-id",
        )
        assert settings.export_target_id == "export-id"


class TestCreateAppComponents:
    """Wiring with and without external services."""

    def test_in_memory(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_EMAILS", "owner@home.org")
        components = create_app_components(use_storage=False, mailer=RecordingMailer())
        assert components.ledger_service.is_connected
        assert components.exporter is None
        assert components.otp_gate.is_allowed("OWNER@home.org")
        assert not components.otp_gate.is_allowed("stranger@home.org")

    def test_missing_sheets_config_leaves_store_disconnected(self, monkeypatch):
        for name in GOOGLE_ENV:
            monkeypatch.delenv(name, raising=False)
        components = create_app_components(use_storage=True, mailer=RecordingMailer())
        assert not components.ledger_service.is_connected
        assert components.sheets_client is None

    def test_explicit_storage_wins(self):
        storage = InMemoryTransactionStorage()
        components = create_app_components(transaction_storage=storage, mailer=RecordingMailer())
        assert components.ledger_service.is_connected
        assert components.sheets_client is None

    @pytest.mark.asyncio
    async def test_missing_mail_config_fails_issue(self, monkeypatch):
        for name in ("EMAIL_USER", "EMAIL_PASS", "EMAIL_PASSWORD"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv("ALLOWED_EMAILS", raising=False)
        components = create_app_components(use_storage=False)

        with pytest.raises(MailDeliveryError):
            await components.otp_gate.issue("a@b.com")
