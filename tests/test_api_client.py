"""
Transport tests against the in-process fake PDS.
"""

import pytest

from bluesky_client.api.client import XrpcClient, map_error_response
from bluesky_client.api.rate_limiter import AdaptiveRateLimiter
from bluesky_client.exceptions import (
    AuthError,
    ErrorKind,
    GenericApiError,
    RateLimitError,
)
from bluesky_client.models.config import ClientConfig

NSID = "com.example.test"


class TestProcedure:
    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self, pds, transport):
        pds.respond(NSID, body={"ok": True})

        result = await transport.procedure(NSID, {"hello": "world"}, token="A1")

        assert result == {"ok": True}
        (request,) = pds.calls(NSID)
        assert request.json() == {"hello": "world"}
        assert request.headers["Authorization"] == "Bearer A1"
        assert request.headers["Content-Type"].startswith("application/json")
        assert request.headers["User-Agent"].startswith("bluesky-client/")

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self, pds, transport):
        pds.respond(NSID, body={})

        await transport.procedure(NSID, {"a": 1})

        assert "Authorization" not in pds.calls(NSID)[0].headers

    @pytest.mark.asyncio
    async def test_empty_body_returns_empty_dict(self, pds, transport):
        pds.respond(NSID, status=200)

        assert await transport.procedure(NSID, token="A1") == {}

    @pytest.mark.asyncio
    async def test_non_json_success_body_is_an_api_error(self, pds, transport):
        pds.respond(NSID, text="<html>not json</html>")

        with pytest.raises(GenericApiError, match="Failed to parse response"):
            await transport.procedure(NSID)

    @pytest.mark.asyncio
    async def test_upload_sends_raw_bytes(self, pds, transport):
        pds.respond(NSID, body={"blob": {}})

        await transport.upload(NSID, b"\x89PNG\r\n", "image/png", "A1")

        (request,) = pds.calls(NSID)
        assert request.body == b"\x89PNG\r\n"
        assert request.headers["Content-Type"] == "image/png"
        assert request.headers["Authorization"] == "Bearer A1"


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_401_is_auth_error_and_not_retried(self, pds, transport, sleep_recorder):
        pds.respond(
            NSID,
            status=401,
            body={"error": "AuthenticationRequired", "message": "Invalid password"},
        )

        with pytest.raises(AuthError) as exc_info:
            await transport.procedure(NSID)

        error = exc_info.value
        assert error.http_status == 401
        assert error.api_error_code == "AuthenticationRequired"
        assert error.message == "Invalid password"
        assert len(pds.calls(NSID)) == 1
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_403_is_auth_error(self, pds, transport):
        pds.respond(NSID, status=403, body={"error": "Forbidden"})

        with pytest.raises(AuthError) as exc_info:
            await transport.procedure(NSID)
        assert exc_info.value.http_status == 403

    @pytest.mark.asyncio
    async def test_429_surfaces_retry_after(self, pds, transport, sleep_recorder):
        pds.respond(
            NSID,
            status=429,
            body={"error": "RateLimitExceeded", "message": "Slow down"},
            headers={"Retry-After": "17"},
        )

        with pytest.raises(RateLimitError) as exc_info:
            await transport.procedure(NSID)

        error = exc_info.value
        assert error.kind == ErrorKind.RATE_LIMIT
        assert error.retry_after == 17
        assert error.http_status == 429
        assert len(pds.calls(NSID)) == 1
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_400_is_generic_error(self, pds, transport):
        pds.respond(
            NSID,
            status=400,
            body={"error": "InvalidRequest", "message": "Record is invalid"},
        )

        with pytest.raises(GenericApiError) as exc_info:
            await transport.procedure(NSID)

        assert exc_info.value.kind == ErrorKind.API
        assert exc_info.value.api_error_code == "InvalidRequest"
        assert len(pds.calls(NSID)) == 1

    def test_unparseable_error_body_keeps_status_and_text(self):
        error = map_error_response(400, "boom", {})

        assert isinstance(error, GenericApiError)
        assert error.message == "HTTP 400: boom"
        assert error.api_error_code is None

    def test_429_without_headers_defaults_to_sixty_seconds(self):
        error = map_error_response(429, "", {})

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 60


class TestRetries:
    @pytest.mark.asyncio
    async def test_retries_server_errors_with_backoff(self, pds, transport, sleep_recorder):
        pds.respond(NSID, status=502, body={"error": "BadGateway"})
        pds.respond(NSID, status=503, body={"error": "Unavailable"})
        pds.respond(NSID, body={"ok": True})

        assert await transport.procedure(NSID) == {"ok": True}

        assert len(pds.calls(NSID)) == 3
        assert sleep_recorder.calls == [0.01, 0.015]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, pds, transport, sleep_recorder):
        pds.respond(NSID, status=500, body={"error": "InternalServerError"})

        with pytest.raises(GenericApiError) as exc_info:
            await transport.procedure(NSID)

        assert exc_info.value.http_status == 500
        assert len(pds.calls(NSID)) == 3
        assert len(sleep_recorder.calls) == 2

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(self, sleep_recorder):
        config = ClientConfig(
            base_url="http://127.0.0.1:1",
            max_retries=1,
            retry_initial_delay_ms=1,
            retry_max_delay_ms=1,
        )
        client = XrpcClient(
            config,
            rate_limiter=AdaptiveRateLimiter(
                initial_calls_per_second=1000, max_calls_per_second=1000
            ),
            sleep=sleep_recorder,
        )
        try:
            with pytest.raises(GenericApiError) as exc_info:
                await client.procedure(NSID)
        finally:
            await client.close()

        assert exc_info.value.kind == ErrorKind.TRANSPORT
        assert exc_info.value.http_status is None
        assert sleep_recorder.calls == [0.001]


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_429_halves_rate_down_to_minimum(self):
        limiter = AdaptiveRateLimiter(
            initial_calls_per_second=4, min_calls_per_second=1.5
        )

        await limiter.on_429()
        assert limiter.rate == 2
        await limiter.on_429()
        assert limiter.rate == 1.5
