"""
Client-side pacing of XRPC calls, slowed down whenever the PDS answers 429.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """
    Spaces calls at least ``1 / rate`` seconds apart.

    A 429 halves the rate (never below ``min_calls_per_second``); after
    ``recovery_after`` quiet seconds it creeps back up towards the maximum.
    """

    def __init__(
        self,
        initial_calls_per_second: float = 10.0,
        max_calls_per_second: float = 15.0,
        min_calls_per_second: float = 0.5,
        recovery_after: float = 300,
    ):
        self._rate = initial_calls_per_second
        self._max_rate = max_calls_per_second
        self._min_rate = min_calls_per_second
        self._recovery_after = recovery_after
        self._last_call_time = 0.0
        self._last_429_time = 0.0
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        return self._rate

    async def on_429(self) -> None:
        async with self._lock:
            self._rate = max(self._min_rate, self._rate * 0.5)
            self._last_429_time = time.monotonic()
            log.warning(f"Rate limited by server, slowing to {self._rate:.1f} calls/s")

    async def acquire(self) -> None:
        """Waits until the next call is allowed."""
        async with self._lock:
            if time.monotonic() - self._last_429_time > self._recovery_after:
                self._rate = min(self._max_rate, self._rate * 1.005)

            loop = asyncio.get_running_loop()
            wait = self._last_call_time + 1.0 / self._rate - loop.time()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call_time = loop.time()
