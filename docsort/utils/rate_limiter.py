"""Minimum-interval rate limiter for model calls.

The batch orchestrator acquires the limiter before every model call, so
consecutive calls start at least ``min_interval`` seconds apart. The first
acquisition never waits, which means no delay is spent after the last item
of a batch.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces out acquisitions by a fixed minimum interval.

    Safe to share between concurrent tasks: acquisitions are serialized by
    an asyncio lock, so the spacing holds even if callers run in parallel.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_milliseconds(cls, delay_ms: int) -> "RateLimiter":
        return cls(min_interval=delay_ms / 1000.0)

    async def acquire(self) -> float:
        """Wait until the next call may start.

        Returns:
            Seconds actually waited (0.0 when no wait was needed)
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            waited = 0.0
            if self._last is not None and self.min_interval > 0:
                remaining = self.min_interval - (self._clock() - self._last)
                if remaining > 0:
                    logger.debug("Rate limiter sleeping %.3fs", remaining)
                    await self._sleep(remaining)
                    waited = remaining
            self._last = self._clock()
            return waited

    def reset(self) -> None:
        self._last = None
