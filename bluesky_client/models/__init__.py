"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the client, such as configuration, sessions and post records.
"""

from .config import ClientConfig, Credentials
from .posts import (
    BlobRef,
    ByteSlice,
    CreatePostResponse,
    ExternalEmbed,
    Facet,
    Image,
    ImagesEmbed,
    ImageUpload,
    LinkFeature,
    MentionFeature,
    Post,
    PostRef,
    ReplyRef,
    TagFeature,
)
from .session import Session

__all__ = [
    "BlobRef",
    "ByteSlice",
    "ClientConfig",
    "CreatePostResponse",
    "Credentials",
    "ExternalEmbed",
    "Facet",
    "Image",
    "ImageUpload",
    "ImagesEmbed",
    "LinkFeature",
    "MentionFeature",
    "Post",
    "PostRef",
    "ReplyRef",
    "Session",
    "TagFeature",
]
