"""End-to-end tests for the HTTP API with storage and webhooks faked."""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from venturelens.api import router as router_module
from venturelens.api.ai import orchestrator
from venturelens.api.ai.webhooks import (
    ANOMALY_WEBHOOK_ENV,
    INGESTION_WEBHOOK_ENV,
    SCORING_WEBHOOK_ENV,
    WebhookNotConfiguredError,
    WebhookPayloadError,
    WebhookTransportError,
)
from venturelens.database.models import Startup
from venturelens.storage import deck_uploader

FORM = {
    "founder_id": "founder-1",
    "name": "Acme Robotics",
    "description": "Warehouse robots",
    "industry": "Robotics",
    "stage": "Seed",
    "website_url": "https://acme.example.com",
    "linkedin_url": "",
    "funding_raised": "$1.5M",
}


@pytest.fixture
def hook_responses(monkeypatch, scoring_payload, anomaly_payload):
    """Canned webhook answers; tests may overwrite entries."""
    responses = {
        SCORING_WEBHOOK_ENV: scoring_payload,
        ANOMALY_WEBHOOK_ENV: anomaly_payload,
        INGESTION_WEBHOOK_ENV: {"success": True},
    }

    def fake_call(env_var, pdf_data, filename, metadata):
        outcome = responses[env_var]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(orchestrator, "call_deck_webhook", fake_call)
    return responses


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(deck_uploader.time, "sleep", lambda _: None)


def _submit(client, pdf_bytes, form=None, content_type="application/pdf"):
    return client.post(
        "/api/startups",
        data=form or FORM,
        files={"file": ("deck.pdf", pdf_bytes, content_type)},
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestSubmission:
    def test_happy_path(self, client, webhooks, fake_supabase, hook_responses, pdf_bytes, db):
        response = _submit(client, pdf_bytes)

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["page_count"] == 2
        assert body["ingested"] is True
        assert body["analysis"]["scores"] == {
            "Team": 80, "Market": 70, "Product": 65, "Traction": 0, "Moat": 90,
        }
        assert body["analysis"]["aggregate_score"] == 76
        assert body["analysis"]["trust_signal"] == "moderate"
        assert body["analysis"]["anomalies"][0]["title"] == "Traction Data Inconsistency"

        startup = body["startup"]
        assert startup["ai_score"] == 76
        assert startup["founder_id"] == "founder-1"
        assert startup["deck_url"].startswith(
            "https://demo.supabase.co/storage/v1/object/public/pitch_decks/founder-1/"
        )
        assert db.query(Startup).count() == 1
        fake_supabase.storage.from_.return_value.upload.assert_called_once()

    def test_reasoning_is_sanitized(
        self, client, webhooks, fake_supabase, hook_responses, scoring_payload, pdf_bytes
    ):
        scoring_payload["reasoning"]["team"] = "=<script>steal()</script>Strong <b>team</b>"

        body = _submit(client, pdf_bytes).json()

        assert body["analysis"]["reasoning"]["Team"] == "steal()Strong team"
        assert body["startup"]["reasoning"]["Team"] == "steal()Strong team"

    def test_non_pdf_rejected(self, client, webhooks, fake_supabase, pdf_bytes):
        response = _submit(client, pdf_bytes, content_type="image/png")

        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload a PDF file"
        fake_supabase.storage.from_.assert_not_called()

    def test_oversized_deck_rejected(self, client, webhooks, fake_supabase, pdf_bytes, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_SIZE_MB", "0")

        assert _submit(client, pdf_bytes).status_code == 413

    def test_invalid_url_rejected(self, client, webhooks, fake_supabase, pdf_bytes):
        response = _submit(client, pdf_bytes, form={**FORM, "website_url": "not a url"})

        assert response.status_code == 422
        assert "Please enter a valid URL" in response.text

    def test_missing_required_field(self, client, webhooks, fake_supabase, pdf_bytes):
        form = {k: v for k, v in FORM.items() if k != "name"}
        assert _submit(client, pdf_bytes, form=form).status_code == 422

    def test_scoring_webhook_not_configured(self, client, fake_supabase, pdf_bytes):
        response = _submit(client, pdf_bytes)

        assert response.status_code == 503
        assert response.json()["detail"] == "Webhook URL is not configured"
        fake_supabase.storage.from_.assert_not_called()

    def test_upload_failure(self, client, webhooks, fake_supabase, pdf_bytes, no_sleep):
        fake_supabase.storage.from_.return_value.upload.side_effect = Exception("bucket missing")

        response = _submit(client, pdf_bytes)

        assert response.status_code == 502
        assert response.json()["detail"] == "Upload failed: bucket missing"

    def test_scoring_failure_removes_deck(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes, db
    ):
        hook_responses[SCORING_WEBHOOK_ENV] = WebhookTransportError("HTTP 500", status_code=500)

        response = _submit(client, pdf_bytes)

        assert response.status_code == 502
        assert response.json()["detail"] == "AI Analysis failed. Please try again."
        bucket = fake_supabase.storage.from_.return_value
        stored_path = bucket.upload.call_args.kwargs["path"]
        bucket.remove.assert_called_once_with([stored_path])
        assert db.query(Startup).count() == 0

    def test_unexpected_analysis_error_removes_deck(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes, db
    ):
        hook_responses[SCORING_WEBHOOK_ENV] = RuntimeError("boom")

        response = _submit(client, pdf_bytes)

        assert response.status_code == 502
        assert response.json()["detail"] == "AI Analysis failed. Please try again."
        bucket = fake_supabase.storage.from_.return_value
        stored_path = bucket.upload.call_args.kwargs["path"]
        bucket.remove.assert_called_once_with([stored_path])
        assert db.query(Startup).count() == 0

    def test_unexpected_persistence_error_removes_deck(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes, monkeypatch, db
    ):
        def broken_create(*args, **kwargs):
            raise ValueError("bad row")

        monkeypatch.setattr(router_module.crud, "create_startup", broken_create)

        with pytest.raises(ValueError):
            _submit(client, pdf_bytes)

        fake_supabase.storage.from_.return_value.remove.assert_called_once()
        assert db.query(Startup).count() == 0

    def test_invalid_ai_response(self, client, webhooks, fake_supabase, hook_responses, pdf_bytes):
        hook_responses[SCORING_WEBHOOK_ENV] = WebhookPayloadError("<html>Bad Gateway</html>")

        response = _submit(client, pdf_bytes)

        assert response.status_code == 502
        assert response.json()["detail"] == "Invalid response from AI: <html>Bad Gateway</html>..."

    def test_anomaly_failure_still_saves(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes
    ):
        hook_responses[ANOMALY_WEBHOOK_ENV] = WebhookTransportError("timeout")
        hook_responses[INGESTION_WEBHOOK_ENV] = WebhookNotConfiguredError("gone")

        response = _submit(client, pdf_bytes)

        assert response.status_code == 201
        assert response.json()["analysis"]["anomalies"] == []
        assert response.json()["ingested"] is False

    def test_persistence_failure_removes_deck(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes, monkeypatch
    ):
        def broken_create(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is down"))

        monkeypatch.setattr(router_module.crud, "create_startup", broken_create)

        response = _submit(client, pdf_bytes)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to save startup details"
        fake_supabase.storage.from_.return_value.remove.assert_called_once()


def test_analyze_deck_stores_nothing(client, webhooks, hook_responses, pdf_bytes, db):
    response = client.post(
        "/api/analyze-deck", files={"file": ("deck.pdf", pdf_bytes, "application/pdf")}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["analysis"]["aggregate_score"] == 76
    assert body["raw"]["Scores"]["team_score"] == "=8"
    assert db.query(Startup).count() == 0


def test_analyze_deck_requires_webhook(client, pdf_bytes):
    response = client.post(
        "/api/analyze-deck", files={"file": ("deck.pdf", pdf_bytes, "application/pdf")}
    )
    assert response.status_code == 503


class TestInvestorViews:
    @pytest.fixture
    def submitted(self, client, webhooks, fake_supabase, hook_responses, pdf_bytes):
        response = _submit(client, pdf_bytes)
        assert response.status_code == 201
        return response.json()["startup"]

    def test_deal_flow(self, client, submitted):
        body = client.get("/api/startups").json()

        assert body["total_startups"] == 1
        assert body["average_score"] == 76
        assert body["high_risk_count"] == 0
        assert body["startups"][0]["id"] == submitted["id"]

    def test_deal_flow_empty(self, client):
        assert client.get("/api/startups").json() == {
            "total_startups": 0, "average_score": 0, "high_risk_count": 0, "startups": [],
        }

    def test_startup_detail(self, client, submitted):
        body = client.get(f"/api/startups/{submitted['id']}").json()

        assert body["name"] == "Acme Robotics"
        assert len(body["anomalies"]) == 1
        assert body["anomalies"][0]["type"] == "critical"
        assert body["anomalies"][0]["website_claim"] == "1k users"

    def test_startup_not_found(self, client):
        response = client.get(f"/api/startups/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Startup not found"

    def test_startup_bad_id(self, client):
        assert client.get("/api/startups/not-a-uuid").status_code == 422

    def test_portfolio(self, client, submitted):
        body = client.get("/api/portfolio").json()

        assert body["top_startups"] == 1
        assert body["average_score"] == 76
        assert body["total_funding"] == 1.5

    def test_alerts(self, client, submitted):
        body = client.get("/api/alerts").json()

        assert body["critical_count"] == 1
        assert body["warning_count"] == 0
        assert body["verified_count"] == 0
        [alert] = body["alerts"]
        assert alert["startup_name"] == "Acme Robotics"
        assert alert["message"] == "Deck claims 10k users; website says 1k"


class TestFounderDashboard:
    def test_fresh_result_consumed_once(
        self, client, webhooks, fake_supabase, hook_responses, pdf_bytes
    ):
        assert _submit(client, pdf_bytes).status_code == 201

        first = client.get("/api/founders/founder-1/dashboard").json()
        assert first["fresh_analysis"] is True
        assert first["has_analysis"] is True
        assert first["readiness_score"] == 76
        assert first["trust_signal"] == "moderate"
        assert [p["value"] for p in first["radar"]] == [80, 70, 65, 0, 90]
        assert first["feedback"][0]["category"] == "Traction"

        second = client.get("/api/founders/founder-1/dashboard").json()
        assert second["fresh_analysis"] is False
        assert second["has_analysis"] is True
        assert second["readiness_score"] == 76
        assert second["reasoning"]["Moat"] == "Patented process"
        assert second["feedback"][0]["priority"] == "high"

    def test_no_submission(self, client):
        body = client.get("/api/founders/nobody/dashboard").json()

        assert body["startup"] is None
        assert body["has_analysis"] is False
        assert body["readiness_score"] == 0
        assert [p["axis"] for p in body["radar"]] == ["Team", "Market", "Product", "Traction", "Moat"]
        assert all(p["value"] == 0 and p["full_mark"] == 100 for p in body["radar"])


class TestChat:
    def test_reply(self, client, monkeypatch):
        monkeypatch.setattr(router_module, "send_chat_message", lambda m: f"echo: {m}")

        response = client.post("/api/chat", json={"message": "  How do I improve?  "})

        assert response.json() == {"message": "echo: How do I improve?"}

    def test_failure_returns_apology(self, client):
        # CHAT_WEBHOOK_URL is unset
        response = client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 200
        assert response.json()["message"] == "Sorry, something went wrong. Please try again."

    def test_blank_message_rejected(self, client):
        assert client.post("/api/chat", json={"message": "   "}).status_code == 422
