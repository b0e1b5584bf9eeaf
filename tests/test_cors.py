"""CORS policy built from settings."""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.core.app_factory import build_cors_options, create_app
from app.core.config import settings

ADMIN_ORIGIN = "https://admin.example.com"

PREFLIGHT_HEADERS = {
    "Origin": "https://evil.example",
    "Access-Control-Request-Method": "GET",
}


def test_default_settings_do_not_allow_foreign_origins():
    client = TestClient(create_app())

    resp = client.options("/health", headers=PREFLIGHT_HEADERS)

    assert resp.status_code == 400
    assert "access-control-allow-origin" not in resp.headers

    simple = client.get("/health", headers={"Origin": "https://evil.example"})
    assert simple.status_code == 200
    assert "access-control-allow-origin" not in simple.headers


def test_configured_origin_is_echoed_with_credentials(monkeypatch):
    monkeypatch.setattr(settings.app, "cors_origins", ADMIN_ORIGIN)
    client = TestClient(create_app())

    allowed = client.options("/health", headers={**PREFLIGHT_HEADERS, "Origin": ADMIN_ORIGIN})
    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == ADMIN_ORIGIN
    assert allowed.headers["access-control-allow-credentials"] == "true"

    denied = client.options("/health", headers=PREFLIGHT_HEADERS)
    assert denied.status_code == 400
    assert "access-control-allow-origin" not in denied.headers


def test_wildcard_origin_never_sends_credentials(monkeypatch):
    monkeypatch.setattr(settings.app, "cors_origins", "*")
    monkeypatch.setattr(settings.app, "cors_allow_credentials", True)
    client = TestClient(create_app())

    resp = client.get("/health", headers={"Origin": "https://evil.example"})

    assert resp.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in resp.headers


def test_build_cors_options():
    assert build_cors_options("", True) == {"allow_origins": [], "allow_credentials": True}
    assert build_cors_options(f"{ADMIN_ORIGIN}, *", True) == {
        "allow_origins": [ADMIN_ORIGIN, "*"],
        "allow_credentials": False,
    }
    assert build_cors_options(ADMIN_ORIGIN, False)["allow_credentials"] is False
