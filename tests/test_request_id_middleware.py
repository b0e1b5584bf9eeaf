from __future__ import annotations

from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import settings
from app.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None
    assert float(duration) >= 0


def test_rate_limited_response_still_has_request_id(install_limiter):
    install_limiter(0, 50, 5000)

    resp = client.get("/health", headers={"X-Request-ID": "req-429"})

    assert resp.status_code == 429
    assert resp.headers.get("X-Request-ID") == "req-429"


def test_cors_exposes_rate_limit_headers(monkeypatch):
    monkeypatch.setattr(settings.app, "cors_origins", "https://admin.example.com")
    cors_client = TestClient(create_app())

    resp = cors_client.get("/health", headers={"Origin": "https://admin.example.com"})

    assert resp.status_code == 200
    assert resp.headers.get("access-control-allow-origin") == "https://admin.example.com"
    exposed = resp.headers.get("access-control-expose-headers", "")
    assert "X-RateLimit-Remaining" in exposed
    assert "Retry-After" in exposed
