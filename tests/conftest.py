"""
Pytest fixtures for VentureLens tests.

Uses an in-memory SQLite database and a mocked Supabase client, so no
external service is needed. DATABASE_URL must be set before any
venturelens module is imported.
"""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_KEY", None)

from unittest.mock import MagicMock

import pymupdf
import pytest

WEBHOOK_ENV_VARS = (
    "SCORING_WEBHOOK_URL",
    "ANOMALY_WEBHOOK_URL",
    "INGESTION_WEBHOOK_URL",
    "CHAT_WEBHOOK_URL",
)


@pytest.fixture(autouse=True)
def fresh_database():
    """Recreate every table so each test starts from an empty database."""
    from venturelens.database.database import ENGINE, Base, init_db

    init_db()
    yield
    Base.metadata.drop_all(bind=ENGINE)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in WEBHOOK_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.delenv("PITCH_DECK_BUCKET", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_SIZE_MB", raising=False)

    from venturelens.handoff import handoff

    handoff.clear()
    yield
    handoff.clear()


@pytest.fixture
def db():
    from venturelens.database.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def webhooks(monkeypatch):
    """Configure every deck webhook URL."""
    monkeypatch.setenv("SCORING_WEBHOOK_URL", "https://hooks.example.com/score")
    monkeypatch.setenv("ANOMALY_WEBHOOK_URL", "https://hooks.example.com/anomaly")
    monkeypatch.setenv("INGESTION_WEBHOOK_URL", "https://hooks.example.com/ingest")
    monkeypatch.setenv("CHAT_WEBHOOK_URL", "https://hooks.example.com/chat")


@pytest.fixture
def fake_supabase(monkeypatch):
    """A MagicMock standing in for the Supabase client."""
    import venturelens.storage.client as storage_client

    fake = MagicMock(name="supabase")
    monkeypatch.setattr(storage_client, "supabase", fake)
    return fake


@pytest.fixture
def pdf_bytes() -> bytes:
    doc = pymupdf.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Acme Robotics - Seed pitch deck")
    doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from venturelens.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def scoring_payload() -> dict:
    return {
        "Scores": {
            "team_score": "=8",
            "market_score": 7,
            "product_score": "6.5",
            "traction_score": "=0",
            "moat_score": "=9",
        },
        "reasoning": {
            "team": "=Experienced founders",
            "market": "Large TAM",
            "product": "=Working MVP",
            "traction": "",
            "moat": "=Patented process",
        },
    }


@pytest.fixture
def anomaly_payload() -> dict:
    return {
        "success": True,
        "anomaly": {
            "id": "a1",
            "category": "=traction",
            "severity": "=High",
            "description": "=Deck claims 10k users; website says 1k",
            "claims": {"deck": "10k users", "website": "=1k users"},
        },
    }
