"""
Tests for the HTTP API.

The app is built with create_app(); components are swapped through
dependency_overrides so no request leaves the process.
"""

import pytest
from fastapi.testclient import TestClient

from expense_tracker.api import create_app
from expense_tracker.api.deps import get_components
from expense_tracker.audit import AuditLogger
from expense_tracker.export import GoogleSheetsExporter
from expense_tracker.ledger import LedgerService
from expense_tracker.models import MalformedTransactionError
from expense_tracker.orchestrator import AppComponents
from expense_tracker.services.otp import OtpGate
from expense_tracker.services.storage import InMemoryTransactionStorage

from conftest import FakeClock, FakeSheetsClient, RecordingMailer


class MalformedRowsStorage(InMemoryTransactionStorage):
    """Store whose third sheet row holds an unreadable amount."""

    async def list_transactions(self):
        raise MalformedTransactionError([(3, "invalid amount")])


def build_components(storage=None, mailer=None, allowed_emails=None, exporter=None, clock=None):
    audit_logger = AuditLogger()
    return AppComponents(
        ledger_service=LedgerService(storage, audit_logger),
        otp_gate=OtpGate(
            mailer or RecordingMailer(),
            allowed_emails=allowed_emails,
            clock=clock or FakeClock(),
            code_factory=lambda: "123456",
            audit_logger=audit_logger,
        ),
        audit_logger=audit_logger,
        exporter=exporter,
    )


def client_for(components) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_components] = lambda: components
    return TestClient(app)


@pytest.fixture
def components():
    return build_components(storage=InMemoryTransactionStorage())


@pytest.fixture
def client(components):
    return client_for(components)


def post_transaction(client, **fields):
    body = {"person": "alice", "type": "deposit", "amount": 100, "date": "2024-01-05"}
    body.update(fields)
    return client.post("/api/transactions", json=body)


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "Server running"}


class TestOtpEndpoints:
    """Send and verify."""

    def test_send_and_verify(self, client):
        resp = client.post("/api/otp/send-otp", json={"email": "a@b.com"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        # The code never travels back over HTTP
        assert "123456" not in resp.text

        resp = client.post("/api/otp/verify-otp", json={"email": "a@b.com", "otp": "123456"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_send_without_email(self, client):
        resp = client.post("/api/otp/send-otp", json={})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_send_to_unlisted_email(self):
        client = client_for(build_components(allowed_emails=["owner@home.org"]))
        resp = client.post("/api/otp/send-otp", json={"email": "stranger@home.org"})
        assert resp.status_code == 403

    def test_send_failure(self):
        client = client_for(build_components(mailer=RecordingMailer(fail=True)))
        resp = client.post("/api/otp/send-otp", json={"email": "a@b.com"})
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Failed to send OTP"}

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "a@b.com", "otp": "654321"},
            {"email": "a@b.com"},
            {"email": "other@b.com", "otp": "123456"},
        ],
    )
    def test_verify_failures_share_one_message(self, client, body):
        client.post("/api/otp/send-otp", json={"email": "a@b.com"})
        resp = client.post("/api/otp/verify-otp", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "Invalid or expired OTP"}

    def test_expired_code(self):
        clock = FakeClock()
        client = client_for(build_components(clock=clock))
        client.post("/api/otp/send-otp", json={"email": "a@b.com"})
        clock.advance(121)

        resp = client.post("/api/otp/verify-otp", json={"email": "a@b.com", "otp": "123456"})

        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid or expired OTP"

    def test_malformed_json_is_400(self, client):
        resp = client.post(
            "/api/otp/send-otp",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400


class TestTransactionEndpoints:
    """Insert and list."""

    def test_create_and_list(self, client):
        resp = post_transaction(client)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["id"]

        resp = client.get("/api/transactions")
        assert resp.status_code == 200
        assert resp.json() == [{
            "id": body["id"],
            "person": "ALICE",
            "type": "deposit",
            "category": "N/A",
            "amount": 100.0,
            "date": "2024-01-05",
        }]

    def test_list_is_sorted_by_date(self, client):
        post_transaction(client, date="2024-03-01")
        post_transaction(client, date="2024-01-01")
        dates = [t["date"] for t in client.get("/api/transactions").json()]
        assert dates == ["2024-01-01", "2024-03-01"]

    def test_validation_failure(self, client):
        resp = post_transaction(client, type="expense", amount="abc")
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert {e["field"] for e in body["errors"]} == {"category", "amount"}

    def test_non_object_body(self, client):
        resp = client.post("/api/transactions", json=[1, 2])
        assert resp.status_code == 400

    def test_store_unavailable(self):
        client = client_for(build_components(storage=None))
        assert client.get("/api/transactions").status_code == 500
        assert post_transaction(client).status_code == 500


class TestStatementEndpoints:
    """Aggregated views."""

    def seed(self, client):
        post_transaction(client, person="A", amount=100, date="2024-01-05")
        post_transaction(client, person="A", type="expense", category="food", amount=30, date="2024-01-20")
        post_transaction(client, person="A", amount=50, date="2024-02-01")
        post_transaction(client, person="B", amount=5, date="2024-02-03")

    def test_statements(self, client):
        self.seed(client)
        resp = client.get("/api/statements")
        assert resp.status_code == 200
        body = resp.json()
        assert list(body) == ["A", "B"]
        january, february = body["A"]
        assert january["month"] == "2024-01"
        assert january["monthEndingBalance"] == 70.0
        assert february["monthStartingBalance"] == 70.0
        assert february["monthEndingBalance"] == 120.0
        assert [e["runningBalance"] for e in january["entries"]] == [100.0, 70.0]

    def test_statements_month_filter(self, client):
        self.seed(client)
        body = client.get("/api/statements", params={"person": "A", "month": "2024-02"}).json()
        assert list(body) == ["A"]
        assert body["A"][0]["monthStartingBalance"] == 0.0

        body = client.get(
            "/api/statements",
            params={"person": "A", "month": "2024-02", "carry_prior_balance": "true"},
        ).json()
        assert body["A"][0]["monthStartingBalance"] == 70.0

    def test_person_filter_ignores_case(self, client):
        self.seed(client)
        body = client.get("/api/statements", params={"person": "a"}).json()
        assert list(body) == ["A"]
        assert len(body["A"]) == 2

    def test_malformed_store_rows_are_500(self):
        client = client_for(build_components(storage=MalformedRowsStorage()))
        resp = client.get("/api/statements")
        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert resp.json()["positions"] == [3]

    def test_bad_month_filter(self, client):
        resp = client.get("/api/statements", params={"month": "Feb 2024"})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "month"

    def test_monthly_totals(self, client):
        self.seed(client)
        resp = client.get("/api/statements/monthly-totals")
        assert resp.status_code == 200
        assert resp.json() == [
            {"month": "2024-01", "deposit": 100.0, "expense": 30.0},
            {"month": "2024-02", "deposit": 55.0, "expense": 0.0},
        ]


class TestExportEndpoint:
    """Export to the spreadsheet."""

    def test_export(self):
        sheets_client = FakeSheetsClient()
        components = build_components(
            storage=InMemoryTransactionStorage(),
            exporter=GoogleSheetsExporter(sheets_client, spreadsheet_id="export-id"),
        )
        client = client_for(components)
        post_transaction(client, person="A")

        resp = client.post("/api/export", json={"person": "A"})

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "sheets": ["A_2024-01"]}
        assert "A_2024-01" in sheets_client.spreadsheet.worksheets

    def test_export_without_body(self):
        components = build_components(
            storage=InMemoryTransactionStorage(),
            exporter=GoogleSheetsExporter(FakeSheetsClient(), spreadsheet_id="export-id"),
        )
        resp = client_for(components).post("/api/export")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "sheets": []}

    def test_export_not_configured(self, client):
        resp = client.post("/api/export", json={})
        assert resp.status_code == 500
        assert resp.json()["success"] is False
