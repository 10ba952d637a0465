from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional


class FixedIntervalRateLimiter:
    """Enforce a minimum gap between the end of one fetch and the start of the next.

    ``clock`` and ``sleep`` are injectable so the limiter can be tested without
    real waiting.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last_done: Optional[float] = None

    async def wait(self) -> float:
        """Sleep until the interval has elapsed; returns the seconds slept."""
        if self._last_done is None or self.min_interval <= 0:
            return 0.0
        remaining = self.min_interval - (self._clock() - self._last_done)
        if remaining <= 0:
            return 0.0
        await self._sleep(remaining)
        return remaining

    def mark_done(self) -> None:
        self._last_done = self._clock()

    def reset(self) -> None:
        self._last_done = None
