"""Tests for service endpoints, OpenAPI docs and app lifespan."""

from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient

from app.core.app_factory import create_app, parse_origins
from app.main import app

client = TestClient(app)


def test_root_welcome():
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "message": "Welcome to the Portfolio API"}


def test_health_reports_liveness():
    resp = client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["status"] == "live"
    assert data["uptime"] >= 0
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None
    assert data["rate_limit"] == {
        "enabled": True,
        # The health request itself was admitted and recorded.
        "tracked_clients": 1,
        "sweeper_running": False,
        "sweeper_passes": 0,
    }


def test_openapi_documents_429_on_every_operation():
    schema = client.get("/openapi.json").json()

    assert "TooManyRequests" in schema["components"]["responses"]
    assert "Retry-After" in schema["components"]["responses"]["TooManyRequests"]["headers"]
    for methods in schema["paths"].values():
        for operation in methods.values():
            assert operation["responses"]["429"] == {"$ref": "#/components/responses/TooManyRequests"}
    assert {"name": "Health", "description": "Liveness checks and service metadata."} in schema["tags"]


def test_lifespan_starts_and_stops_sweeper():
    isolated = create_app()

    with TestClient(isolated) as lifespan_client:
        sweeper = isolated.state.rate_limit_sweeper
        assert sweeper.running is True
        resp = lifespan_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["rate_limit"]["sweeper_running"] is True

    assert sweeper.running is False


def test_parse_origins():
    assert parse_origins("https://a.example, https://b.example ,") == [
        "https://a.example",
        "https://b.example",
    ]
    assert parse_origins("") == []
    assert parse_origins(None) == []
