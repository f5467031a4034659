"""
Detection of mentions, hashtags and links in post text.

Facet offsets are UTF-8 byte offsets, not character offsets.
"""

import re
from typing import Callable, List

from bluesky_client.models.posts import (
    ByteSlice,
    Facet,
    FacetFeature,
    LinkFeature,
    MentionFeature,
    TagFeature,
)

MENTION_PATTERN = re.compile(r"@([a-zA-Z0-9.]+)")
HASHTAG_PATTERN = re.compile(r"#([a-zA-Z0-9_]+)")
URL_PATTERN = re.compile(r"https?://\S+")


def _byte_slice(text: str, start: int, end: int) -> ByteSlice:
    byte_start = len(text[:start].encode("utf-8"))
    byte_end = byte_start + len(text[start:end].encode("utf-8"))
    return ByteSlice(byteStart=byte_start, byteEnd=byte_end)


def _collect(
    text: str, pattern: re.Pattern, make_feature: Callable[[re.Match], FacetFeature]
) -> List[Facet]:
    return [
        Facet(
            index=_byte_slice(text, match.start(), match.end()),
            features=[make_feature(match)],
        )
        for match in pattern.finditer(text)
    ]


def detect_facets(text: str) -> List[Facet]:
    """
    Returns mention, tag and link facets, grouped in that order.

    Mentions carry the handle where the lexicon expects a DID; resolving
    handles is left to the server.
    """
    facets: List[Facet] = []
    facets += _collect(text, MENTION_PATTERN, lambda m: MentionFeature(did=m.group(1)))
    facets += _collect(text, HASHTAG_PATTERN, lambda m: TagFeature(tag=m.group(1)))
    facets += _collect(text, URL_PATTERN, lambda m: LinkFeature(uri=m.group(0)))
    return facets
