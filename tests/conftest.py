"""
Shared fixtures: a controllable clock and an in-process fake PDS.

The fake PDS is a real aiohttp server listening on localhost, so the
transport is exercised end to end without any network access.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from multidict import CIMultiDict

from bluesky_client.api.client import XrpcClient
from bluesky_client.api.rate_limiter import AdaptiveRateLimiter
from bluesky_client.models.config import ClientConfig

SESSION_BODY = {
    "accessJwt": "A1",
    "refreshJwt": "R1",
    "did": "did:plc:x",
    "handle": "user.bsky.app",
}

REFRESHED_BODY = {
    "accessJwt": "A2",
    "refreshJwt": "R2",
    "did": "did:plc:x",
    "handle": "user.bsky.app",
}


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@dataclass
class CannedResponse:
    status: int = 200
    body: Any = None
    text: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def build(self) -> web.Response:
        if self.text is not None:
            return web.Response(status=self.status, text=self.text, headers=self.headers)
        if self.body is None:
            return web.Response(status=self.status, headers=self.headers)
        return web.json_response(self.body, status=self.status, headers=self.headers)


@dataclass
class RecordedRequest:
    nsid: str
    headers: CIMultiDict
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


class FakePds:
    """
    Answers ``POST /xrpc/{nsid}`` from per-method queues of canned responses.
    The last response queued for a method is repeated once the queue drains.
    """

    def __init__(self) -> None:
        self.base_url = ""
        self.requests: List[RecordedRequest] = []
        self._queues: Dict[str, List[CannedResponse]] = {}

    def respond(self, nsid: str, status: int = 200, body: Any = None, **kwargs) -> None:
        self._queues.setdefault(nsid, []).append(
            CannedResponse(status=status, body=body, **kwargs)
        )

    def clear(self, nsid: str) -> None:
        self._queues.pop(nsid, None)

    def calls(self, nsid: str) -> List[RecordedRequest]:
        return [r for r in self.requests if r.nsid == nsid]

    async def handle(self, request: web.Request) -> web.Response:
        nsid = request.match_info["nsid"]
        self.requests.append(
            RecordedRequest(nsid, CIMultiDict(request.headers), await request.read())
        )
        queue = self._queues.get(nsid)
        if not queue:
            return web.json_response(
                {"error": "MethodNotImplemented", "message": f"No handler for {nsid}"},
                status=501,
            )
        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        return canned.build()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def pds():
    fake = FakePds()
    app = web.Application()
    app.router.add_post("/xrpc/{nsid}", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.base_url = str(server.make_url("")).rstrip("/")
    yield fake
    await server.close()


@pytest.fixture
def pds_config(pds: FakePds) -> ClientConfig:
    return ClientConfig(
        base_url=pds.base_url,
        timeout_seconds=5,
        max_retries=2,
        retry_initial_delay_ms=10,
        retry_max_delay_ms=15,
    )


@pytest_asyncio.fixture
async def transport(pds_config: ClientConfig, sleep_recorder: SleepRecorder):
    client = XrpcClient(
        pds_config,
        rate_limiter=AdaptiveRateLimiter(
            initial_calls_per_second=1000, max_calls_per_second=1000
        ),
        sleep=sleep_recorder,
    )
    yield client
    await client.close()
