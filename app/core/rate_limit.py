"""Rate limiting middleware for the HTTP layer.

This module wires the sliding-window limiter into FastAPI:

- Client identity: a single shared identity unless ``trust_proxy`` is
  enabled, in which case a forwarded address is used only when it is a
  well-formed IPv4/IPv6 literal.
- Every evaluated request gets X-RateLimit-* headers; rejected requests are
  answered with 429 before reaching any route handler.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Mapping

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import WINDOW_LABELS, AbstractRateLimiter, RateLimitDecision
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter, RateLimitConfig
from app.core.config import settings
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

SHARED_CLIENT_ID = "shared"

_limiter: AbstractRateLimiter | None = None
_limiter_config: RateLimitConfig | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If the configured thresholds change (primarily in tests), it is rebuilt.
    """

    global _limiter, _limiter_config

    config = RateLimitConfig(
        per_second=settings.rate_limit.per_second,
        per_minute=settings.rate_limit.per_minute,
        per_day=settings.rate_limit.per_day,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemorySlidingWindowRateLimiter(config)
        _limiter_config = config
        logger.info(
            "rate_limit.configured",
            extra={
                "per_second": config.per_second,
                "per_minute": config.per_minute,
                "per_day": config.per_day,
                "trust_proxy": settings.rate_limit.trust_proxy,
            },
        )

    return _limiter


def _parse_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def resolve_client_id(headers: Mapping[str, str], *, trust_proxy: bool) -> str:
    """Derive the rate limit identity for a request.

    Forwarding headers are client-controllable, so they are only honored when
    ``trust_proxy`` is set. Absent or malformed values collapse onto the shared
    identity, which means all unidentified clients share one budget.

    Args:
        headers: Request headers (case-insensitive mapping).
        trust_proxy: Whether reverse-proxy address headers may be used.

    Returns:
        ``ip:<address>`` for a validated address, otherwise the shared id.
    """

    if not trust_proxy:
        return SHARED_CLIENT_ID

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        address = _parse_ip(forwarded_for.split(",")[0])
    else:
        address = _parse_ip(headers.get("x-real-ip"))

    if address is None:
        return SHARED_CLIENT_ID
    return f"ip:{address}"


def build_rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(max(1, decision.retry_after_seconds or 0))
    return headers


def build_rate_limited_response(decision: RateLimitDecision) -> JSONResponse:
    """Build the 429 response for a rejected decision."""

    label = WINDOW_LABELS.get(decision.violated_window or "", "unknown")
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "ok": False,
            "status": "Too Many Requests",
            "message": f"Rate limit exceeded: {label}",
        },
    )
    if settings.rate_limit.include_headers:
        response.headers.update(build_rate_limit_headers(decision))
    else:
        # Retry-After is part of the 429 contract even without quota headers.
        response.headers["Retry-After"] = build_rate_limit_headers(decision)["Retry-After"]
    return response


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the sliding-window rate limit.

    Evaluates the limiter once per request before dispatching. Admitted
    requests continue to the route with quota headers attached to the
    response; rejected requests short-circuit with 429.

    Usage:
        app.middleware("http")(rate_limit_middleware)
    """

    if not settings.rate_limit.enabled:
        return await call_next(request)

    limiter = get_rate_limiter()
    client_id = resolve_client_id(request.headers, trust_proxy=settings.rate_limit.trust_proxy)
    decision = limiter.check(client_id)

    if not decision.allowed:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_identifier(client_id),
                "shared_identity": client_id == SHARED_CLIENT_ID,
                "violated_window": decision.violated_window,
                "limit": decision.limit,
                "retry_after_s": decision.retry_after_seconds,
                "request_method": request.method,
                "request_path": request.url.path,
            },
        )
        return build_rate_limited_response(decision)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_identifier(client_id),
                "limit": decision.limit,
                "remaining": decision.remaining,
            },
        )

    response: Response = await call_next(request)
    if settings.rate_limit.include_headers:
        response.headers.update(build_rate_limit_headers(decision))
    return response
