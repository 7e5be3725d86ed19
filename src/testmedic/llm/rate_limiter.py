"""
Sliding-window rate limiter for reasoning-service calls.

Admits at most ``max_calls`` calls per ``window_seconds``. A caller over the
limit is suspended, not rejected. State lives on the instance so that tests
and separate backends each get their own history.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Slack added to each computed wait so the oldest call has surely left the window
WAIT_BUFFER_SECONDS = 0.1


class SlidingWindowRateLimiter:
    """Sliding-window admission gate."""

    def __init__(
        self,
        max_calls: int = 5,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._calls: deque[float] = deque()

        # Lock will be lazily initialized to avoid event loop binding issues
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    async def wait(self) -> float:
        """
        Block until a call is admitted, then record it.

        Returns:
            Total seconds spent suspended (0.0 if admitted immediately)
        """
        waited = 0.0
        while True:
            async with self._get_lock():
                now = self._clock()
                self._prune(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return waited
                delay = self.window_seconds - (now - self._calls[0]) + WAIT_BUFFER_SECONDS

            # Sleep outside the lock, then re-check: another task may take the slot first
            logger.info(
                "rate_limit_wait",
                wait_seconds=f"{delay:.2f}",
                calls_in_window=self.max_calls,
            )
            await self._sleep(delay)
            waited += delay

    def current_count(self) -> int:
        """Calls recorded within the current window."""
        self._prune(self._clock())
        return len(self._calls)

    def reset(self) -> None:
        """Forget all recorded calls."""
        self._calls.clear()
