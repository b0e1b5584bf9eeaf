"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock guards the registry for both check and sweep.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from bisect import bisect_right, insort
from dataclasses import dataclass, field
from typing import Callable

from app.adapters.rate_limit.base import (
    DAY_MS,
    MINUTE_MS,
    SECOND_MS,
    AbstractRateLimiter,
    RateLimitDecision,
    WindowName,
)
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Request thresholds for the three nested windows.

    A threshold of zero (or below) rejects every request for that window.
    """

    per_second: int = 5
    per_minute: int = 50
    per_day: int = 5000


@dataclass
class _ClientRecord:
    # Sorted ascending; only the trailing 24h is retained.
    timestamps: list[int] = field(default_factory=list)

    def prune(self, now_ms: int) -> None:
        cutoff = bisect_right(self.timestamps, now_ms - DAY_MS)
        if cutoff:
            del self.timestamps[:cutoff]

    def window_start_index(self, now_ms: int, window_ms: int) -> int:
        return bisect_right(self.timestamps, now_ms - window_ms)


def _millis(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Sliding-window limiter evaluating per-second, per-minute and per-day budgets.

    Every admitted request is recorded as a timestamp on its client's record.
    Rejected requests are never recorded, so they do not consume budget.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits, and all state is lost on restart.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            config: Window thresholds; defaults to RateLimitConfig().
            clock: Time source returning UNIX time in seconds.
        """
        self._config = config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _ClientRecord] = {}
        self._admitted = 0
        self._rejected = 0
        self._evicted = 0

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._records

    def _windows(self) -> tuple[tuple[WindowName, int, int], ...]:
        # Evaluation order is significant: the shortest window is reported first.
        return (
            ("second", SECOND_MS, self._config.per_second),
            ("minute", MINUTE_MS, self._config.per_minute),
            ("day", DAY_MS, self._config.per_day),
        )

    def check(self, client_id: str, now_ms: int | None = None) -> RateLimitDecision:
        """Admit or reject a request and report quota status.

        Args:
            client_id: Client identity; must be non-empty.
            now_ms: Arrival instant in epoch milliseconds; defaults to the clock.

        Returns:
            RateLimitDecision with the decision and header metadata.

        Raises:
            ValidationAppError: If client_id is empty.
        """
        if not client_id:
            raise ValidationAppError(
                code="invalid_client_id",
                message="client_id must be a non-empty string",
            )

        now = _millis(self._clock) if now_ms is None else now_ms

        with self._lock:
            record = self._records.get(client_id)
            if record is None:
                record = _ClientRecord()
                self._records[client_id] = record

            record.prune(now)
            # Entries after `now` (wall clock stepped back) fall outside every window.
            end = bisect_right(record.timestamps, now)

            counts: dict[str, int] = {}
            for name, window_ms, threshold in self._windows():
                start = record.window_start_index(now, window_ms)
                count = end - start
                counts[name] = count
                if count >= threshold:
                    self._rejected += 1
                    return self._build_rejected(
                        record, name, window_ms, threshold, start, end, now
                    )

            insort(record.timestamps, now)
            self._admitted += 1

        remaining = min(
            self._config.per_second - counts["second"] - 1,
            self._config.per_minute - counts["minute"] - 1,
            self._config.per_day - counts["day"] - 1,
        )
        return RateLimitDecision(
            allowed=True,
            limit=self._config.per_day,
            remaining=max(0, remaining),
            reset_at_ms=now + DAY_MS,
        )

    def _build_rejected(
        self,
        record: _ClientRecord,
        window: WindowName,
        window_ms: int,
        threshold: int,
        start: int,
        end: int,
        now: int,
    ) -> RateLimitDecision:
        if start < end:
            oldest = record.timestamps[start]
            retry_after = max(0, math.ceil((oldest + window_ms - now) / 1000))
        else:
            # Empty window: only reachable with a non-positive threshold.
            retry_after = 0

        return RateLimitDecision(
            allowed=False,
            limit=threshold,
            remaining=0,
            reset_at_ms=now + retry_after * 1000,
            retry_after_seconds=retry_after,
            violated_window=window,
        )

    def sweep(self, now_ms: int | None = None) -> int:
        """Prune every record to the trailing 24h and drop empty ones.

        Args:
            now_ms: Reference instant in epoch milliseconds; defaults to the clock.

        Returns:
            Number of client records evicted.
        """
        now = _millis(self._clock) if now_ms is None else now_ms

        with self._lock:
            idle = []
            for client_id, record in self._records.items():
                record.prune(now)
                if not record.timestamps:
                    idle.append(client_id)
            for client_id in idle:
                del self._records[client_id]
            self._evicted += len(idle)
            tracked = len(self._records)

        logger.debug(
            "rate_limit.sweep_pass",
            extra={"evicted": len(idle), "tracked_clients": tracked},
        )
        return len(idle)

    def stats(self) -> dict[str, int]:
        """Return lightweight limiter metrics without exposing client identities."""

        with self._lock:
            return {
                "tracked_clients": len(self._records),
                "per_second": self._config.per_second,
                "per_minute": self._config.per_minute,
                "per_day": self._config.per_day,
                "admitted": self._admitted,
                "rejected": self._rejected,
                "evicted": self._evicted,
            }
