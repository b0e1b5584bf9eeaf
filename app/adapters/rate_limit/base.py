"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the in-memory registry can later be swapped for a shared store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

WindowName = Literal["second", "minute", "day"]

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
DAY_MS = 24 * 60 * MINUTE_MS

WINDOW_DURATIONS_MS: dict[str, int] = {
    "second": SECOND_MS,
    "minute": MINUTE_MS,
    "day": DAY_MS,
}

WINDOW_LABELS: dict[str, str] = {
    "second": "per second",
    "minute": "per minute",
    "day": "per day",
}


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Daily threshold when admitted, tripped window threshold when rejected.
        remaining: Remaining budget across all windows (0 when rejected).
        reset_at_ms: Epoch milliseconds when the relevant window clears.
        retry_after_seconds: Seconds until the tripped window frees a slot.
        violated_window: Name of the tripped window when rejected.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None = None
    violated_window: WindowName | None = None

    @property
    def reset_at(self) -> int:
        """Epoch seconds (rounded up) for the X-RateLimit-Reset header."""
        return -(-self.reset_at_ms // 1000)


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, client_id: str, now_ms: int | None = None) -> RateLimitDecision:
        """Classify one request from ``client_id`` arriving at ``now_ms``.

        Args:
            client_id: Client identity (e.g., normalized IP address).
            now_ms: Arrival instant in epoch milliseconds; defaults to the clock.

        Returns:
            RateLimitDecision describing whether it was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, now_ms: int | None = None) -> int:
        """Prune expired history and evict idle clients.

        Returns:
            Number of client records removed.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Return aggregate metrics (tracked clients, counters) without identities."""
        raise NotImplementedError
