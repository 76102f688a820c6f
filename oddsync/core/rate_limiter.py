"""
Sliding-window request limiter for the credit-metered odds provider.

Every outbound request (including retries) acquires a slot first. Two limits
apply: a ceiling on requests inside a rolling window, and a minimum spacing
between consecutive requests. Safe for concurrent coroutines sharing one
instance.
"""
import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Deque

from oddsync.core.logging import get_logger

logger = get_logger(__name__)


class RequestRateLimiter:
    """
    Sliding-window limiter with minimum request spacing.

    Args:
        max_requests_per_window: Ceiling on requests inside the window
        min_interval: Minimum seconds between consecutive requests
        window_seconds: Length of the rolling window
        safety_buffer: Extra seconds added when waiting out a full window
        clock: Monotonic time source (injectable for tests)
        sleep: Async sleep function (injectable for tests)
    """

    def __init__(
        self,
        max_requests_per_window: int,
        min_interval: float,
        window_seconds: float = 60.0,
        safety_buffer: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_requests = max(1, max_requests_per_window)
        self.min_interval = max(0.0, min_interval)
        self.window_seconds = window_seconds
        self.safety_buffer = safety_buffer
        self._clock = clock
        self._sleep = sleep
        self._request_log: Deque[float] = deque()
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    @property
    def requests_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._request_log)

    def _prune(self, now: float) -> None:
        while self._request_log and now - self._request_log[0] >= self.window_seconds:
            self._request_log.popleft()

    async def acquire(self) -> float:
        """
        Wait until a request may be sent and record it.

        Returns:
            Total seconds spent waiting
        """
        async with self._lock:
            waited = 0.0
            now = self._clock()
            self._prune(now)

            if len(self._request_log) >= self.max_requests:
                delay = self._request_log[0] + self.window_seconds - now + self.safety_buffer
                if delay > 0:
                    logger.info(
                        f"Rate limit reached ({len(self._request_log)}/{self.max_requests} "
                        f"in {self.window_seconds:.0f}s), waiting {delay:.2f}s"
                    )
                    await self._sleep(delay)
                    waited += delay
                now = self._clock()
                self._prune(now)

            if self._last_request is not None:
                gap = now - self._last_request
                if gap < self.min_interval:
                    delay = self.min_interval - gap
                    await self._sleep(delay)
                    waited += delay
                    now = self._clock()

            self._request_log.append(now)
            self._last_request = now
            return waited
