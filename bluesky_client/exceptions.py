"""
Defines custom exceptions for the client to allow for more specific error handling.

Every error carries a ``kind`` tag so callers can branch on it without
importing each subclass.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Coarse classification of a failure."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    API = "api"
    TRANSPORT = "transport"
    CONFIG = "config"


class BlueSkyError(Exception):
    """Base exception for all client errors."""

    kind: ErrorKind = ErrorKind.API

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        api_error_code: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.api_error_code = api_error_code
        if kind is not None:
            self.kind = kind

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"http_status={self.http_status!r}, "
            f"api_error_code={self.api_error_code!r}, message={self.message!r})"
        )


class AuthError(BlueSkyError):
    """Raised when there is no usable session or the server rejects credentials."""

    kind = ErrorKind.AUTH

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = 401,
        api_error_code: Optional[str] = None,
    ):
        super().__init__(message, http_status, api_error_code)


class RateLimitError(BlueSkyError):
    """Raised on HTTP 429. ``retry_after`` is in seconds."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        retry_after: int = 60,
        api_error_code: Optional[str] = None,
    ):
        super().__init__(message, 429, api_error_code)
        self.retry_after = retry_after


class GenericApiError(BlueSkyError):
    """Raised for any other non-2xx response or a transport failure."""


class ConfigurationError(BlueSkyError):
    """Raised for issues related to configuration loading or validation."""

    kind = ErrorKind.CONFIG

    def __init__(self, message: str):
        super().__init__(message)
