"""Background sweep of idle rate limit records.

Runs ``sweep`` on a fixed interval, independent of request traffic, so the
limiter registry only holds clients seen in the last 24 hours.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Daemon thread invoking ``limiter.sweep()`` every ``interval_seconds``.

    The limiter is resolved through ``limiter_provider`` on each pass so a
    rebuilt limiter (after a configuration change) is swept too.
    """

    def __init__(
        self,
        limiter_provider: Callable[[], AbstractRateLimiter],
        *,
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter_provider = limiter_provider
        self._interval_seconds = float(interval_seconds)
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._passes = 0
        self._last_error: str | None = None

    @property
    def passes(self) -> int:
        return self._passes

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def running(self) -> bool:
        with self._state_lock:
            return bool(self._thread and self._thread.is_alive())

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="rate-limit-sweeper",
                daemon=True,
            )
            thread.start()
            self._thread = thread
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._interval_seconds},
        )
        return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        logger.info(
            "rate_limit.sweeper_stopped",
            extra={"passes": self._passes, "last_error": self._last_error},
        )
        return True

    def run_once(self) -> int:
        """Sweep the current limiter immediately and return evicted count."""

        limiter = self._limiter_provider()
        evicted = limiter.sweep()
        self._passes += 1
        logger.info(
            "rate_limit.sweep",
            extra={"evicted": evicted, "pass": self._passes, **limiter.stats()},
        )
        return evicted

    def _run_loop(self) -> None:
        # First sweep happens one interval after start.
        while not self._stop_event.wait(self._interval_seconds):
            try:
                self.run_once()
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("rate_limit.sweep_failed")
