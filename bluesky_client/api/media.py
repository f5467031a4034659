"""
Blob uploads and posts with attached images.
"""

import logging
from typing import Iterable, List

from bluesky_client.exceptions import GenericApiError
from bluesky_client.models.posts import (
    BlobRef,
    CreatePostResponse,
    Image,
    ImagesEmbed,
    ImageUpload,
    Post,
)
from bluesky_client.utils.facets import detect_facets

from .client import XrpcClient
from .posts import PostsService, preview
from .session import SessionManager

log = logging.getLogger(__name__)

UPLOAD_BLOB = "com.atproto.repo.uploadBlob"

MAX_BLOB_BYTES = 1_000_000
MAX_IMAGES_PER_POST = 4


class MediaService:
    def __init__(
        self, transport: XrpcClient, sessions: SessionManager, posts: PostsService
    ):
        self._transport = transport
        self._sessions = sessions
        self._posts = posts

    async def upload_image(self, data: bytes, content_type: str) -> BlobRef:
        """
        Uploads raw image bytes to the account's blob store.

        Args:
            data: The encoded image.
            content_type: Its MIME type, e.g. ``image/jpeg``.

        Returns:
            A reference that can be embedded in a post.

        Raises:
            ValueError: If the image is empty or larger than the PDS accepts.
        """
        if not data:
            raise ValueError("Cannot upload an empty image.")
        if len(data) > MAX_BLOB_BYTES:
            raise ValueError(
                f"Image is {len(data)} bytes; the limit is {MAX_BLOB_BYTES} bytes."
            )

        log.debug(f"Uploading {len(data)} byte image ({content_type})")
        token = await self._sessions.get_access_token()
        body = await self._transport.upload(UPLOAD_BLOB, data, content_type, token)

        blob = body.get("blob")
        if not isinstance(blob, dict):
            raise GenericApiError("Failed to parse blob upload response", 200)
        try:
            ref = BlobRef.from_response(blob, mime_type=content_type, size=len(data))
        except ValueError as e:
            raise GenericApiError("Failed to parse blob upload response", 200) from e

        log.info(f"Uploaded image blob {ref.link}")
        return ref

    async def create_post_with_image(
        self, text: str, data: bytes, content_type: str, alt_text: str = ""
    ) -> CreatePostResponse:
        """Uploads one image and publishes a post embedding it."""
        return await self.create_post_with_images(
            text, [ImageUpload(content=data, content_type=content_type, alt_text=alt_text)]
        )

    async def create_post_with_images(
        self, text: str, images: Iterable[ImageUpload]
    ) -> CreatePostResponse:
        """
        Uploads each image in order, then publishes a single post with all of
        them attached.

        Raises:
            ValueError: If there are no images or more than four.
        """
        images = list(images)
        if not images:
            raise ValueError("At least one image is required.")
        if len(images) > MAX_IMAGES_PER_POST:
            raise ValueError(
                f"A post can carry at most {MAX_IMAGES_PER_POST} images, "
                f"got {len(images)}."
            )

        log.debug(f"Creating post with {len(images)} image(s): {preview(text)}")
        uploaded: List[Image] = []
        for upload in images:
            ref = await self.upload_image(upload.content, upload.content_type)
            uploaded.append(Image(image=ref, alt=upload.alt_text))

        post = Post(
            text=text,
            facets=detect_facets(text),
            embed=ImagesEmbed(images=uploaded),
        )
        return await self._posts.create_post(post)
