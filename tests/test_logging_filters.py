"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


def _make_logger(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_client_addresses():
    """Client IPs and forwarding headers never reach the log output."""

    logger, stream = _make_logger("test_ip_redaction")

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "client_ip": "203.0.113.7",
            "x-forwarded-for": "198.51.100.1, 10.0.0.1",
            "violated_window": "second",
        },
    )

    output = stream.getvalue()

    assert "203.0.113.7" not in output
    assert "198.51.100.1" not in output
    assert "[REDACTED]" in output
    assert "second" in output


def test_sensitive_filter_redacts_nested_headers():
    logger, stream = _make_logger("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-api-key": "secret-key",
                "X-Real-IP": "192.0.2.55",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()

    assert "secret-key" not in output
    assert "192.0.2.55" not in output
    assert "pytest" in output


def test_safe_fields_pass_through():
    logger, stream = _make_logger("test_safe_fields")

    logger.info(
        "http.request",
        extra={
            "request_path": "/health",
            "status_code": 200,
            "duration_ms": 1.5,
        },
    )

    data = json.loads(stream.getvalue())

    assert data["message"] == "http.request"
    assert data["request_path"] == "/health"
    assert data["status_code"] == 200
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_attached_from_context():
    logger, stream = _make_logger("test_request_id")

    set_request_id("req-abc")
    try:
        logger.info("with_context")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-abc"


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("ip:203.0.113.7") == hash_identifier("ip:203.0.113.7")
    assert hash_identifier("ip:203.0.113.7") != hash_identifier("ip:203.0.113.8")
    assert len(hash_identifier("shared")) == 16
