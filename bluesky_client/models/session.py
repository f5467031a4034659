"""
Session snapshot returned by the authentication endpoints.
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class Session(BaseModel):
    """
    Credentials for one authenticated account.

    Instances are frozen; a refresh replaces the whole object.
    """

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str = Field(..., min_length=1, repr=False)
    account_id: str = Field(..., min_length=1)
    account_handle: str = Field(..., min_length=1)
    issued_at: datetime

    class Config:
        """Pydantic model configuration."""

        frozen = True

    @classmethod
    def from_response(cls, body: Dict[str, Any], issued_at: datetime) -> "Session":
        """
        Builds a session from a createSession/refreshSession response body.

        Raises:
            pydantic.ValidationError: If any of the four fields is missing or empty.
        """
        return cls(
            access_token=body.get("accessJwt", ""),
            refresh_token=body.get("refreshJwt", ""),
            account_id=body.get("did", ""),
            account_handle=body.get("handle", ""),
            issued_at=issued_at,
        )
