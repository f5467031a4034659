"""
Async XRPC transport with retry, rate limiting and circuit breaker protection.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import aiohttp

from bluesky_client import __version__
from bluesky_client.exceptions import (
    AuthError,
    BlueSkyError,
    ErrorKind,
    GenericApiError,
    RateLimitError,
)
from bluesky_client.models.config import ClientConfig
from bluesky_client.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60
CIRCUIT_OPEN_ERROR_CODE = "CircuitOpen"
DEFAULT_ERROR_MESSAGE = "An error occurred while communicating with the BlueSky API"


def _is_server_failure(exc: BaseException) -> bool:
    """Decides which failures count against the circuit breaker."""
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError)):
        return True
    return (
        isinstance(exc, GenericApiError)
        and exc.http_status is not None
        and exc.http_status >= 500
    )


def _is_retryable(exc: BlueSkyError) -> bool:
    if exc.api_error_code == CIRCUIT_OPEN_ERROR_CODE:
        return False
    if exc.kind == ErrorKind.TRANSPORT:
        return True
    return exc.kind == ErrorKind.API and (
        exc.http_status == 408 or (exc.http_status or 0) >= 500
    )


def _parse_retry_after(headers: Mapping[str, str]) -> int:
    """
    Reads the wait time from ``Retry-After`` (seconds) or, failing that, from
    the PDS ``RateLimit-Reset`` header (epoch seconds).
    """
    retry_after = headers.get("Retry-After")
    if retry_after is not None:
        try:
            return max(0, int(retry_after))
        except ValueError:
            pass
    reset = headers.get("RateLimit-Reset")
    if reset is not None:
        try:
            return max(0, int(reset) - int(time.time()))
        except ValueError:
            pass
    return DEFAULT_RETRY_AFTER_SECONDS


def map_error_response(
    status: int, body: str, headers: Mapping[str, str]
) -> BlueSkyError:
    """Converts a non-2xx response into the matching client error."""
    error_code: Optional[str] = None
    message = DEFAULT_ERROR_MESSAGE
    try:
        parsed = json.loads(body) if body else None
        if not isinstance(parsed, dict):
            raise ValueError("error body is not a JSON object")
        error_code = parsed.get("error")
        message = parsed.get("message") or message
    except ValueError:
        message = f"HTTP {status}: {body}"

    if status in (401, 403):
        return AuthError(message, status, error_code)
    if status == 429:
        return RateLimitError(message, _parse_retry_after(headers), error_code)
    return GenericApiError(message, status, error_code)


class XrpcClient:
    """
    Thin async client for ``{base_url}/xrpc/{nsid}`` procedures.

    Features:
    - One pooled aiohttp session per client
    - Exponential backoff for connection errors, timeouts, 408 and 5xx
    - Adaptive rate limiting, slowed by 429 responses
    - Circuit breaker for repeated server-side failures
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or ClientConfig()
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = rate_limiter or AdaptiveRateLimiter()
        self._sleep = sleep
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60,
            success_threshold=2,
            is_failure=_is_server_failure,
        )

    async def __aenter__(self) -> "XrpcClient":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_session(self) -> None:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": f"bluesky-client/{__version__}",
                    "Accept": "application/json",
                },
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def url_for(self, nsid: str) -> str:
        return f"{self.config.base_url}/xrpc/{nsid}"

    async def procedure(
        self,
        nsid: str,
        payload: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Calls an XRPC procedure with a JSON body.

        Args:
            nsid: Method id, e.g. ``com.atproto.server.createSession``.
            payload: JSON body. Omitted from the request when None.
            token: Bearer token for the Authorization header.

        Returns:
            The decoded JSON response, or an empty dict for an empty body.

        Raises:
            AuthError: On 401/403.
            RateLimitError: On 429.
            GenericApiError: On any other failure, after retries.
        """
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return await self._request(nsid, headers, json_body=payload)

    async def upload(
        self, nsid: str, data: bytes, content_type: str, token: str
    ) -> Dict[str, Any]:
        """Calls an XRPC procedure whose body is raw bytes (blob uploads)."""
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": content_type,
        }
        return await self._request(nsid, headers, data=data)

    def _backoff_delay(self, attempt: int) -> float:
        delay_ms = min(
            self.config.retry_max_delay_ms,
            self.config.retry_initial_delay_ms * (2**attempt),
        )
        return delay_ms / 1000

    async def _request(
        self,
        nsid: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
    ) -> Dict[str, Any]:
        await self._initialize_session()

        attempt = 0
        while True:
            try:
                return await self._send_once(nsid, headers, json_body, data)
            except BlueSkyError as e:
                if not _is_retryable(e) or attempt >= self.config.max_retries:
                    log.debug(f"XRPC call to {nsid} failed: {e.message}")
                    raise
                delay = self._backoff_delay(attempt)
                attempt += 1
                log.warning(
                    f"XRPC call to {nsid} failed ({e.message}); retry "
                    f"{attempt}/{self.config.max_retries} in {delay:.1f}s"
                )
                await self._sleep(delay)

    async def _send_once(
        self,
        nsid: str,
        headers: Dict[str, str],
        json_body: Optional[Dict[str, Any]],
        data: Optional[bytes],
    ) -> Dict[str, Any]:
        try:
            async with self._circuit_breaker:
                await self._rate_limiter.acquire()
                start_time = time.monotonic()

                async with self._session.post(
                    self.url_for(nsid), headers=headers, json=json_body, data=data
                ) as r:
                    body = await r.text()
                    duration_ms = (time.monotonic() - start_time) * 1000
                    log.debug(f"POST {nsid} -> {r.status} in {duration_ms:.0f}ms")

                    if r.status == 429:
                        await self._rate_limiter.on_429()
                    if not 200 <= r.status < 300:
                        raise map_error_response(r.status, body, r.headers)

                    return self._parse_body(r.status, body)

        except CircuitBreakerError as e:
            raise GenericApiError(
                str(e),
                api_error_code=CIRCUIT_OPEN_ERROR_CODE,
                kind=ErrorKind.TRANSPORT,
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            raise GenericApiError(
                f"Request to {nsid} failed: {reason}", kind=ErrorKind.TRANSPORT
            ) from e

    @staticmethod
    def _parse_body(status: int, body: str) -> Dict[str, Any]:
        if not body.strip():
            return {}
        try:
            parsed = json.loads(body)
        except ValueError as e:
            raise GenericApiError("Failed to parse response", status) from e
        if not isinstance(parsed, dict):
            raise GenericApiError("Failed to parse response", status)
        return parsed
