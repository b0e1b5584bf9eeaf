"""Response schemas for service-level endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WelcomeResponse(BaseModel):
    ok: bool = True
    message: str


class RateLimitHealth(BaseModel):
    """Aggregate limiter state; never includes client identities."""

    enabled: bool
    tracked_clients: int
    sweeper_running: bool
    sweeper_passes: int


class HealthResponse(BaseModel):
    """Liveness payload returned by ``GET /health``."""

    ok: bool = True
    status: str = Field("live", description="Liveness state")
    uptime: float = Field(..., description="Seconds since the process started serving")
    timestamp: str = Field(..., description="Current UTC time in ISO-8601")
    rate_limit: RateLimitHealth


class RateLimitErrorResponse(BaseModel):
    """Body returned with HTTP 429 when a rate limit window is exceeded."""

    ok: bool = False
    status: str = "Too Many Requests"
    message: str = Field(..., examples=["Rate limit exceeded: per second"])
