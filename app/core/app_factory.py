"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
background rate limit sweeper) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import get_rate_limiter, rate_limit_middleware
from app.services.rate_limit_sweeper import RateLimitSweeper

logger = logging.getLogger(__name__)


def parse_origins(origins: str | None) -> list[str]:
    """Split a comma-separated origins string, dropping blanks."""
    if not origins:
        return []
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def build_cors_options(origins: str | None, allow_credentials: bool) -> dict[str, object]:
    """Resolve CORS origins and credentials from settings.

    Credentials are never combined with a wildcard origin, since Starlette
    would then echo any caller's Origin back with credentials allowed.
    """
    allow_origins = parse_origins(origins)
    if allow_credentials and "*" in allow_origins:
        logger.warning("cors.credentials_disabled", extra={"reason": "wildcard_origin"})
        allow_credentials = False
    return {"allow_origins": allow_origins, "allow_credentials": allow_credentials}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the rate limit sweeper on startup and stop it on shutdown."""

    sweeper = RateLimitSweeper(
        get_rate_limiter,
        interval_seconds=settings.rate_limit.sweep_interval_seconds,
    )
    app.state.rate_limit_sweeper = sweeper
    if settings.rate_limit.enabled:
        sweeper.start()

    logger.info(
        "app.started",
        extra={
            "app_env": settings.app_env,
            "rate_limit_enabled": settings.rate_limit.enabled,
        },
    )
    try:
        yield
    finally:
        sweeper.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Portfolio API",
        description=(
            "Portfolio content API. Every request is evaluated by a sliding-window "
            "rate limiter (per second, per minute, per day) and carries "
            "X-RateLimit-* headers; rejected requests receive HTTP 429."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware: the last registered runs first, so CORS wraps everything and
    # the request id is set before the rate limiter logs.
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        **build_cors_options(settings.app.cors_origins, settings.app.cors_allow_credentials),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            settings.log.request_id_header,
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    setup_exception_handlers(app)

    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
