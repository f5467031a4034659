"""
Async client library for the BlueSky / AT Protocol XRPC API.
"""

__version__ = "0.1.0"

from .client import BlueSkyClient  # noqa: E402
from .exceptions import (  # noqa: E402
    AuthError,
    BlueSkyError,
    ConfigurationError,
    ErrorKind,
    GenericApiError,
    RateLimitError,
)
from .models import ClientConfig, Session  # noqa: E402

__all__ = [
    "AuthError",
    "BlueSkyClient",
    "BlueSkyError",
    "ClientConfig",
    "ConfigurationError",
    "ErrorKind",
    "GenericApiError",
    "RateLimitError",
    "Session",
    "__version__",
]
