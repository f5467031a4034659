"""
Circuit breaker guarding calls to the PDS.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

log = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is attempted while the circuit is open."""


class CircuitBreaker:
    """
    Trips after ``failure_threshold`` consecutive failures and rejects calls
    until ``recovery_timeout`` seconds pass. The first calls after that run in
    HALF_OPEN; ``success_threshold`` successes close it again, one failure
    reopens it.

    Only exceptions for which ``is_failure`` returns True count against the
    circuit, so client-side errors (bad credentials, 4xx) never trip it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        success_threshold: int = 2,
        is_failure: Optional[Callable[[BaseException], bool]] = None,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._is_failure = is_failure or (lambda exc: isinstance(exc, Exception))

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def _maybe_half_open(self) -> None:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return
        elapsed = time.monotonic() - self._opened_at
        if elapsed >= self.recovery_timeout:
            log.info(f"Circuit half-open after {elapsed:.0f}s, probing the server")
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    log.info("Circuit closed, server recovered")
                    self._state = CircuitState.CLOSED
                    self._success_count = 0

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                log.warning("Recovery probe failed, circuit open again")
                self._trip()
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.error(
                    f"Circuit opened after {self._failure_count} consecutive "
                    f"failures; rejecting calls for {self.recovery_timeout}s"
                )
                self._trip()

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        self._failure_count = 0
        self._success_count = 0

    async def __aenter__(self) -> "CircuitBreaker":
        async with self._lock:
            self._maybe_half_open()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerError(
                    f"Circuit is open. Will try to recover after "
                    f"{self.recovery_timeout} seconds."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_val is None:
            await self.record_success()
        elif self._is_failure(exc_val):
            await self.record_failure()
