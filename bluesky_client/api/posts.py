"""
Creating, replying to and deleting posts.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from bluesky_client.exceptions import AuthError
from bluesky_client.models.posts import (
    POST_COLLECTION,
    CreatePostResponse,
    Post,
    PostRef,
    ReplyRef,
)
from bluesky_client.utils.facets import detect_facets

from .client import XrpcClient
from .session import SessionManager, utc_now

log = logging.getLogger(__name__)

CREATE_RECORD = "com.atproto.repo.createRecord"
DELETE_RECORD = "com.atproto.repo.deleteRecord"


def preview(text: str, limit: int = 30) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def parse_at_uri(uri: str) -> Tuple[str, str, str]:
    """
    Splits ``at://<repo>/<collection>/<rkey>`` into its three parts.

    Raises:
        ValueError: If the URI does not have that shape.
    """
    if not uri.startswith("at://"):
        raise ValueError(f"Invalid post URI format: {uri}")
    parts = uri[len("at://") :].split("/")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid post URI format: {uri}")
    repo, collection, rkey = parts
    return repo, collection, rkey


class PostsService:
    def __init__(
        self,
        transport: XrpcClient,
        sessions: SessionManager,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._transport = transport
        self._sessions = sessions
        self._clock = clock or utc_now

    def _repo(self) -> str:
        session = self._sessions.get_current_session()
        if session is None:
            log.error("No active session found")
            raise AuthError("No active session. Please authenticate first.")
        return session.account_id

    async def create_text_post(self, text: str) -> CreatePostResponse:
        """Publishes plain text, turning mentions, hashtags and links into facets."""
        log.debug(f"Creating text post: {preview(text)}")
        return await self.create_post(Post(text=text, facets=detect_facets(text)))

    async def create_post(self, post: Post) -> CreatePostResponse:
        """
        Publishes a fully built post.

        Raises:
            AuthError: If there is no session or the token cannot be refreshed.
            RateLimitError: If the PDS is rate limiting this account.
            GenericApiError: For any other failure.
        """
        log.debug(f"Creating post: {preview(post.text)}")
        repo = self._repo()
        token = await self._sessions.get_access_token()

        payload = {
            "repo": repo,
            "collection": POST_COLLECTION,
            "record": post.to_record(self._clock()),
        }
        body = await self._transport.procedure(CREATE_RECORD, payload, token=token)
        response = CreatePostResponse(uri=body.get("uri", ""), cid=body.get("cid", ""))
        log.info(f"Created post {response.uri}")
        return response

    async def create_reply(self, reply_to: PostRef, text: str) -> CreatePostResponse:
        """
        Replies to ``reply_to``, which is used as both the thread root and the
        parent.
        """
        log.debug(f"Creating reply to {reply_to.uri}: {preview(text)}")
        post = Post(
            text=text,
            facets=detect_facets(text),
            reply=ReplyRef(root=reply_to, parent=reply_to),
        )
        return await self.create_post(post)

    async def delete_post(self, uri: str) -> None:
        """
        Deletes the post at an ``at://`` URI.

        Raises:
            ValueError: If the URI is malformed.
        """
        log.debug(f"Deleting post {uri}")
        repo, collection, rkey = parse_at_uri(uri)
        token = await self._sessions.get_access_token()
        await self._transport.procedure(
            DELETE_RECORD,
            {"repo": repo, "collection": collection, "rkey": rkey},
            token=token,
        )
        log.info(f"Deleted post {uri}")
