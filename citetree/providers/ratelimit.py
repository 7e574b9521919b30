"""Client-side request throttling for the metadata provider."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the throttle: requests left and when the window resets."""

    remaining: int
    reset_time: datetime

    def to_dict(self) -> dict:
        return {"remaining": self.remaining, "resetTime": self.reset_time.isoformat()}


class FixedWindowRateLimiter:
    """Allow ``max_requests`` per ``window`` seconds.

    Once the window is exhausted :meth:`acquire` waits for the reset instead of
    failing. The counter is shared by every caller of the instance and is only
    mutated while holding the lock.
    """

    def __init__(self, max_requests: int = 100, window: float = 300.0) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")
        self.max_requests = max_requests
        self.window = window
        self._requests = 0
        self._window_start = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if now - self._window_start >= self.window:
                self._reset(now)

            if self._requests >= self.max_requests:
                wait_time = self.window - (now - self._window_start)
                logger.info("Rate limit reached, waiting %.2fs for the window to reset", wait_time)
                await asyncio.sleep(wait_time)
                self._reset(time.monotonic())

            self._requests += 1

    def status(self) -> RateLimitStatus:
        now = time.monotonic()
        elapsed = now - self._window_start
        if elapsed >= self.window:
            return RateLimitStatus(
                remaining=self.max_requests, reset_time=datetime.now(timezone.utc)
            )
        remaining = max(0, self.max_requests - self._requests)
        reset_time = datetime.now(timezone.utc) + timedelta(seconds=self.window - elapsed)
        return RateLimitStatus(remaining=remaining, reset_time=reset_time)

    def _reset(self, now: float) -> None:
        self._requests = 0
        self._window_start = now
