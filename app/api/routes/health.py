from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.core.config import settings
from app.core.rate_limit import get_rate_limiter
from app.schemas.health import HealthResponse, RateLimitHealth, WelcomeResponse

router = APIRouter(tags=["Health"])

_STARTED_AT = time.monotonic()


@router.get("/", response_model=WelcomeResponse)
def root() -> WelcomeResponse:
    return WelcomeResponse(message="Welcome to the Portfolio API")


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Liveness check endpoint.

    Used by load balancers and monitoring systems to determine service health.
    Does not touch any downstream dependency. The rate limit block reports
    how many client records are held and whether the background sweep runs.
    """

    # Absent when the app is served without its lifespan (e.g., bare TestClient).
    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)

    return HealthResponse(
        uptime=round(time.monotonic() - _STARTED_AT, 3),
        timestamp=datetime.now(timezone.utc).isoformat(),
        rate_limit=RateLimitHealth(
            enabled=settings.rate_limit.enabled,
            tracked_clients=get_rate_limiter().stats()["tracked_clients"],
            sweeper_running=bool(sweeper and sweeper.running),
            sweeper_passes=sweeper.passes if sweeper else 0,
        ),
    )
