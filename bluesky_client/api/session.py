"""
Session lifecycle: login, token freshness and coordinated refresh.

The access token's expiry claim is never parsed. A session counts as fresh
for ``token_refresh_after_seconds`` after it was issued (50 minutes by
default, under the server's nominal 60-minute lifetime). Past that, the
first caller to need a token refreshes it and everyone who arrives while
that refresh is in flight reuses its result.
"""

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from bluesky_client.exceptions import AuthError, BlueSkyError
from bluesky_client.models.config import ClientConfig
from bluesky_client.models.session import Session

from .client import XrpcClient

log = logging.getLogger(__name__)

CREATE_SESSION = "com.atproto.server.createSession"
REFRESH_SESSION = "com.atproto.server.refreshSession"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """
    Owns the current :class:`Session` for one client instance.

    Two locks are involved:

    - ``_state_lock`` (a ``threading.Lock``) guards the stored session and is
      only ever held for a read or a swap, never across an ``await``.
    - ``_refresh_gate`` (an ``asyncio.Lock``) serializes refresh calls. Only
      callers that actually need a refresh wait on it; readers of a fresh
      session never do.
    """

    def __init__(
        self,
        transport: XrpcClient,
        config: Optional[ClientConfig] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._transport = transport
        self._config = config or transport.config
        self._clock = clock or utc_now

        self._session: Optional[Session] = None
        self._last_refresh: Optional[datetime] = None
        self._state_lock = threading.Lock()
        self._refresh_gate = asyncio.Lock()

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(seconds=self._config.token_refresh_after_seconds)

    @property
    def last_refresh(self) -> Optional[datetime]:
        """When the stored session was last issued or refreshed."""
        with self._state_lock:
            return self._last_refresh

    @property
    def is_authenticated(self) -> bool:
        return self.get_current_session() is not None

    def get_current_session(self) -> Optional[Session]:
        """Returns the stored session without any network I/O."""
        with self._state_lock:
            return self._session

    def clear_session(self) -> None:
        """Discards the stored session, e.g. on logout."""
        with self._state_lock:
            self._session = None
            self._last_refresh = None
        log.debug("Session cleared")

    def _store(self, session: Session) -> None:
        with self._state_lock:
            self._session = session
            self._last_refresh = session.issued_at

    def _is_fresh(self, session: Session) -> bool:
        return self._clock() - session.issued_at < self.freshness_window

    async def authenticate(self, identifier: str, secret: str) -> Session:
        """
        Creates a new session with an identifier (handle, DID or email) and
        an app password.

        A failed login leaves any previously stored session untouched.

        Raises:
            AuthError: If the server rejects the login or the call fails.
        """
        log.debug(f"Creating session for {identifier}")
        try:
            body = await self._transport.procedure(
                CREATE_SESSION, {"identifier": identifier, "password": secret}
            )
            session = Session.from_response(body, issued_at=self._clock())
        except BlueSkyError as e:
            log.error(f"Failed to create session: {e.message}")
            raise AuthError(
                f"Failed to authenticate with BlueSky: {e.message}",
                e.http_status,
                e.api_error_code,
            ) from e
        except ValidationError as e:
            log.error("Session response was missing required fields")
            raise AuthError(
                "Failed to authenticate with BlueSky: incomplete session response",
                None,
            ) from e

        self._store(session)
        log.info(f"Authenticated as {session.account_handle}")
        return session

    async def get_access_token(self) -> str:
        """
        Returns an access token that is safe to use, refreshing it first when
        the session is past its freshness window.

        Raises:
            AuthError: If there is no session, the session is stale and
                auto-refresh is disabled, or the refresh failed. A failed
                refresh also clears the session.
        """
        session = self.get_current_session()
        if session is None:
            raise AuthError("not authenticated")

        if self._is_fresh(session):
            return session.access_token

        if not self._config.auto_refresh_tokens:
            raise AuthError("session expired, auto-refresh disabled")

        async with self._refresh_gate:
            # Another caller may have refreshed (or failed to) while we waited.
            session = self.get_current_session()
            if session is None:
                raise AuthError("not authenticated")
            if self._is_fresh(session):
                return session.access_token

            log.debug("Access token is stale, refreshing")
            refreshed = await self._refresh(session)
            return refreshed.access_token

    async def refresh_session(self) -> Session:
        """
        Refreshes the stored session unconditionally, through the same gate
        as :meth:`get_access_token`.
        """
        async with self._refresh_gate:
            session = self.get_current_session()
            if session is None:
                raise AuthError("not authenticated")
            return await self._refresh(session)

    async def _refresh(self, session: Session) -> Session:
        """Must be called with the refresh gate held."""
        try:
            body = await self._transport.procedure(
                REFRESH_SESSION,
                {"refreshJwt": session.refresh_token},
                token=session.refresh_token,
            )
            refreshed = Session.from_response(body, issued_at=self._clock())
        except BlueSkyError as e:
            log.error(f"Failed to refresh session: {e.message}")
            self.clear_session()
            raise AuthError(
                f"Failed to refresh session with BlueSky: {e.message}",
                e.http_status,
                e.api_error_code,
            ) from e
        except ValidationError as e:
            log.error("Refresh response was missing required fields")
            self.clear_session()
            raise AuthError(
                "Failed to refresh session with BlueSky: incomplete session response",
                None,
            ) from e

        self._store(refreshed)
        log.info(f"Refreshed session for {refreshed.account_handle}")
        return refreshed
