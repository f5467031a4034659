"""
BlueSky API Layer.

This package handles all communication with a BlueSky PDS over XRPC.
"""

from .client import XrpcClient
from .media import MediaService
from .posts import PostsService
from .rate_limiter import AdaptiveRateLimiter
from .session import SessionManager

__all__ = [
    "AdaptiveRateLimiter",
    "MediaService",
    "PostsService",
    "SessionManager",
    "XrpcClient",
]
