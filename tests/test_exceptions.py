import pytest

from bluesky_client.exceptions import (
    AuthError,
    BlueSkyError,
    ConfigurationError,
    ErrorKind,
    GenericApiError,
    RateLimitError,
)


@pytest.mark.parametrize(
    "error, kind, status",
    [
        (AuthError("not authenticated"), ErrorKind.AUTH, 401),
        (AuthError("forbidden", 403, "Forbidden"), ErrorKind.AUTH, 403),
        (RateLimitError("slow down", retry_after=5), ErrorKind.RATE_LIMIT, 429),
        (GenericApiError("bad", 400, "InvalidRequest"), ErrorKind.API, 400),
        (GenericApiError("down", kind=ErrorKind.TRANSPORT), ErrorKind.TRANSPORT, None),
        (ConfigurationError("broken"), ErrorKind.CONFIG, None),
    ],
)
def test_kind_and_status(error, kind, status):
    assert isinstance(error, BlueSkyError)
    assert error.kind == kind
    assert error.http_status == status


def test_message_and_code():
    error = AuthError("Token expired", 400, "ExpiredToken")

    assert str(error) == "Token expired"
    assert error.message == "Token expired"
    assert error.api_error_code == "ExpiredToken"
    assert "ExpiredToken" in repr(error)


def test_rate_limit_carries_retry_after():
    assert RateLimitError("wait").retry_after == 60
    assert RateLimitError("wait", retry_after=12).retry_after == 12
