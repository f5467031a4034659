"""
Pydantic model for client configuration.
Provides validation for all settings consumed by the transport and session layers.
"""

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_BASE_URL = "https://bsky.social"

# Access tokens live for roughly an hour but the expiry claim is never parsed,
# so a session is treated as stale after this many seconds.
DEFAULT_TOKEN_REFRESH_AFTER_SECONDS = 50 * 60


class ClientConfig(BaseModel):
    """A validated configuration model for the client."""

    # Connection
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30

    # Session handling
    auto_refresh_tokens: bool = True
    token_refresh_after_seconds: int = DEFAULT_TOKEN_REFRESH_AFTER_SECONDS

    # Retry policy, consumed by the transport only
    max_retries: int = 3
    retry_initial_delay_ms: int = 1000
    retry_max_delay_ms: int = 30000

    enable_logging: bool = False

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Requires an absolute http(s) URL and drops any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be greater than zero.")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Keeps the retry count within a sane range."""
        if v < 0 or v > 10:
            raise ValueError("Max retries must be between 0 and 10.")
        return v

    @field_validator("token_refresh_after_seconds")
    @classmethod
    def validate_refresh_threshold(cls, v: int) -> int:
        if v < 60 or v > 86400:
            raise ValueError(
                "Token refresh threshold must be between 60 and 86400 seconds."
            )
        return v

    @model_validator(mode="after")
    def validate_retry_delays(self) -> "ClientConfig":
        """Checks that the backoff bounds are ordered."""
        if self.retry_initial_delay_ms < 0:
            raise ValueError("Initial retry delay cannot be negative.")
        if self.retry_max_delay_ms < self.retry_initial_delay_ms:
            raise ValueError(
                "Max retry delay must be greater than or equal to the initial delay."
            )
        return self


class Credentials(BaseModel):
    """Login identifier and app password, loaded alongside the client config."""

    identifier: str = ""
    password: str = Field(default="", repr=False)

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        return v.strip()

    @property
    def is_complete(self) -> bool:
        return bool(self.identifier and self.password)
