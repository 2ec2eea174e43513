"""
Global sliding window rate limiter for outgoing sends.
"""

import asyncio
import logging
import time
from collections import deque
from datetime import timedelta
from typing import Deque

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter shared by every send.

    check_limit() waits instead of rejecting: when the window is full it
    sleeps until the oldest entry leaves the window and evaluates again.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window: timedelta = timedelta(minutes=1),
    ):
        self.max_requests = max_requests
        self.window = window
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

        logger.info(f"RateLimiter initialized: {max_requests} requests / {window.total_seconds()} seconds")

    def _prune(self, now: float) -> None:
        cutoff = now - self.window.total_seconds()
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    async def check_limit(self) -> float:
        """
        Wait until a request is permitted and record it.

        Returns the number of seconds spent waiting.
        """
        waited = 0.0

        while True:
            async with self._lock:
                now = time.monotonic()
                self._prune(now)

                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return waited

                wait_time = self._timestamps[0] + self.window.total_seconds() - now

            logger.warning(f"Rate limit reached. Waiting {wait_time:.3f}s")
            await asyncio.sleep(wait_time)
            waited += wait_time

    def current_count(self) -> int:
        """Number of requests inside the current window."""
        self._prune(time.monotonic())
        return len(self._timestamps)

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._timestamps.clear()
        logger.info("Rate limiter reset")
