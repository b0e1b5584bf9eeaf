"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that might load settings.
"""

import os

os.environ["APP_ENV"] = "testing"

# Generous defaults so unrelated HTTP tests never trip the shared budget.
os.environ.setdefault("RATE_LIMIT_PER_SECOND", "1000")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("RATE_LIMIT_PER_DAY", "100000")
os.environ.setdefault("RATE_LIMIT_TRUST_PROXY", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter, RateLimitConfig
from app.core import rate_limit as rate_limit_module
from app.core.config import settings


@pytest.fixture(autouse=True)
def fresh_rate_limiter(monkeypatch):
    """Start every test with an empty process-wide limiter."""
    monkeypatch.setattr(rate_limit_module, "_limiter", None)
    monkeypatch.setattr(rate_limit_module, "_limiter_config", None)
    yield


@pytest.fixture
def install_limiter(monkeypatch):
    """Install a limiter with the given thresholds and a controllable clock.

    Returns a factory ``(per_second, per_minute, per_day, now=...) -> (limiter, clock)``
    where ``clock`` is a one-item list holding the current UNIX time in seconds.
    """

    def _install(per_second: int, per_minute: int, per_day: int, *, now: float = 1_700_000_000.0):
        monkeypatch.setattr(settings.rate_limit, "per_second", per_second)
        monkeypatch.setattr(settings.rate_limit, "per_minute", per_minute)
        monkeypatch.setattr(settings.rate_limit, "per_day", per_day)

        clock = [now]
        config = RateLimitConfig(per_second=per_second, per_minute=per_minute, per_day=per_day)
        limiter = InMemorySlidingWindowRateLimiter(config, clock=lambda: clock[0])
        monkeypatch.setattr(rate_limit_module, "_limiter", limiter)
        monkeypatch.setattr(rate_limit_module, "_limiter_config", config)
        return limiter, clock

    return _install
