"""
Top-level client wiring the transport, session manager and services together.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from bluesky_client.api.client import XrpcClient
from bluesky_client.api.media import MediaService
from bluesky_client.api.posts import PostsService
from bluesky_client.api.session import SessionManager, utc_now
from bluesky_client.models.config import ClientConfig
from bluesky_client.models.session import Session

log = logging.getLogger(__name__)


class BlueSkyClient:
    """
    The main entry point for talking to BlueSky.

    Each instance owns its own connection pool and session; nothing is
    shared between instances.

    Usage:
        async with BlueSkyClient(ClientConfig()) as client:
            await client.create_session("alice.bsky.social", "app-password")
            await client.posts.create_text_post("Hello #bluesky")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[XrpcClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        clock = clock or utc_now
        self.config = config or ClientConfig()
        self._transport = transport or XrpcClient(self.config)
        self._session = SessionManager(self._transport, self.config, clock=clock)
        self._posts = PostsService(self._transport, self._session, clock=clock)
        self._media = MediaService(self._transport, self._session, self._posts)

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def posts(self) -> PostsService:
        return self._posts

    @property
    def media(self) -> MediaService:
        return self._media

    async def create_session(self, identifier: str, password: str) -> Session:
        return await self._session.authenticate(identifier, password)

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> "BlueSkyClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
