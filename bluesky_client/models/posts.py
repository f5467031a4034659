"""
Models for post records, facets, embeds and blob references.

Each model knows how to render itself into the JSON shape the
``app.bsky.feed.post`` lexicon expects.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

POST_COLLECTION = "app.bsky.feed.post"

MENTION_TYPE = "app.bsky.richtext.facet#mention"
LINK_TYPE = "app.bsky.richtext.facet#link"
TAG_TYPE = "app.bsky.richtext.facet#tag"

IMAGES_EMBED_TYPE = "app.bsky.embed.images"
EXTERNAL_EMBED_TYPE = "app.bsky.embed.external"


def format_timestamp(value: datetime) -> str:
    """Formats a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class _WireModel(BaseModel):
    class Config:
        """Pydantic model configuration."""

        populate_by_name = True

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PostRef(_WireModel):
    """Strong reference to a post: its at:// URI and content id."""

    uri: str
    cid: str


class ReplyRef(_WireModel):
    root: PostRef
    parent: PostRef


class ByteSlice(_WireModel):
    """UTF-8 byte range; start inclusive, end exclusive."""

    byte_start: int = Field(..., alias="byteStart", ge=0)
    byte_end: int = Field(..., alias="byteEnd", ge=0)


class MentionFeature(_WireModel):
    type: Literal["app.bsky.richtext.facet#mention"] = Field(
        MENTION_TYPE, alias="$type"
    )
    did: str


class LinkFeature(_WireModel):
    type: Literal["app.bsky.richtext.facet#link"] = Field(LINK_TYPE, alias="$type")
    uri: str


class TagFeature(_WireModel):
    type: Literal["app.bsky.richtext.facet#tag"] = Field(TAG_TYPE, alias="$type")
    tag: str


FacetFeature = Union[MentionFeature, LinkFeature, TagFeature]


class Facet(_WireModel):
    index: ByteSlice
    features: List[FacetFeature] = Field(default_factory=list)


class BlobRef(_WireModel):
    """Reference to an uploaded blob, as returned by ``uploadBlob``."""

    link: str
    mime_type: str
    size: int = Field(..., ge=0)

    @classmethod
    def from_response(
        cls, blob: Dict[str, Any], mime_type: str = "", size: int = 0
    ) -> "BlobRef":
        """
        Parses the ``blob`` object of an uploadBlob response.

        Older servers return ``{"$link": ...}`` directly instead of nesting it
        under ``ref``; both are accepted. Missing mime type and size fall back
        to what the caller uploaded.
        """
        ref = blob.get("ref") or {}
        link = ref.get("$link") if isinstance(ref, dict) else None
        link = link or blob.get("$link")
        if not link:
            raise ValueError("Blob response does not contain a $link reference.")
        return cls(
            link=link,
            mime_type=blob.get("mimeType") or mime_type,
            size=blob.get("size") or size,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "$type": "blob",
            "ref": {"$link": self.link},
            "mimeType": self.mime_type,
            "size": self.size,
        }


class Image(BaseModel):
    image: BlobRef
    alt: str = ""


class ImagesEmbed(BaseModel):
    images: List[Image] = Field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        return {
            "$type": IMAGES_EMBED_TYPE,
            "images": [
                {"alt": img.alt, "image": img.image.to_record()} for img in self.images
            ],
        }


class ExternalEmbed(BaseModel):
    """Link card. Empty title and description are omitted from the record."""

    uri: str
    title: Optional[str] = None
    description: Optional[str] = None
    thumb: Optional[BlobRef] = None

    def to_record(self) -> Dict[str, Any]:
        external: Dict[str, Any] = {"uri": self.uri}
        if self.title:
            external["title"] = self.title
        if self.description:
            external["description"] = self.description
        if self.thumb is not None:
            external["thumb"] = self.thumb.to_record()
        return {"$type": EXTERNAL_EMBED_TYPE, "external": external}


Embed = Union[ImagesEmbed, ExternalEmbed]


class Post(BaseModel):
    """A post to be published, before it is wrapped in a createRecord call."""

    text: str = ""
    facets: Optional[List[Facet]] = None
    embed: Optional[Embed] = None
    reply: Optional[ReplyRef] = None
    langs: Optional[List[str]] = None

    def to_record(self, created_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Renders the ``app.bsky.feed.post`` record body."""
        created_at = created_at or datetime.now(timezone.utc)
        record: Dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": self.text,
            "createdAt": format_timestamp(created_at),
        }
        if self.facets:
            record["facets"] = [facet.to_record() for facet in self.facets]
        if self.embed is not None:
            record["embed"] = self.embed.to_record()
        if self.reply is not None:
            record["reply"] = self.reply.to_record()
        if self.langs:
            record["langs"] = list(self.langs)
        return record


class CreatePostResponse(BaseModel):
    uri: str
    cid: str


class ImageUpload(BaseModel):
    """An image waiting to be uploaded, with its alt text."""

    content: bytes = Field(..., repr=False)
    content_type: str
    alt_text: str = ""
