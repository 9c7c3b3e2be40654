"""
Data model for IAM token management.

Contains the credential identity used as a cache key, the immutable cached
token record, and the Pydantic schema of the IAM token endpoint response.
"""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from iam_auth.errors import InvalidConfigurationError
from iam_auth.security import mask_secret

# Path of the token API, appended to the configured IAM endpoint
TOKEN_API_PATH = "/identity/token"


@dataclass(frozen=True)
class CredentialIdentity:
    """
    Immutable (IAM endpoint, API key) pair identifying a cached token.

    Two identities are equal iff both fields are equal. The API key is
    excluded from repr so identities can be logged safely.

    Attributes:
        endpoint: Base URL of the IAM service (e.g. https://iam.cloud.ibm.com)
        api_key: Long-lived IAM API key
    """

    endpoint: str
    api_key: str = field(repr=False)

    def validate(self) -> None:
        """
        Raise if either field is missing.

        Raises:
            InvalidConfigurationError: On None or empty endpoint or API key
        """
        if not self.endpoint:
            raise InvalidConfigurationError(
                "Cannot initialize with null or empty IAM endpoint."
            )
        if not self.api_key:
            raise InvalidConfigurationError(
                "Cannot initialize with null or empty IAM apiKey."
            )

    @property
    def token_url(self) -> str:
        """Full URL of the token API."""
        return self.endpoint.rstrip("/") + TOKEN_API_PATH

    @property
    def masked(self) -> str:
        """Loggable form: endpoint plus masked API key."""
        return f"{self.endpoint} apikey={mask_secret(self.api_key)}"

    def __str__(self) -> str:
        return self.masked


@dataclass(frozen=True)
class TokenRecord:
    """
    Cached bearer token.

    Replaced wholesale on refresh so that lock-free readers always observe
    a fully formed record.

    Attributes:
        access_token: Bearer token string
        issued_lifetime_seconds: Lifetime declared by the server (expires_in)
        refresh_deadline: Monotonic time after which the token is stale
    """

    access_token: str = field(repr=False)
    issued_lifetime_seconds: int
    refresh_deadline: float


class IAMTokenResponse(BaseModel):
    """Schema for a successful response of the IAM token API.

    Only access_token and expires_in are consumed by the token manager; the
    remaining fields are kept for diagnostics.

    Example:
        >>> IAMTokenResponse.model_validate({
        ...     "access_token": "eyJraWQiOi...",
        ...     "refresh_token": "OKD2...",
        ...     "token_type": "Bearer",
        ...     "expires_in": 3600,
        ...     "expiration": 1735689600,
        ...     "scope": "ibm openid",
        ... })
    """

    access_token: str = Field(
        ...,
        description="Bearer token to present on API calls",
        min_length=1,
    )
    expires_in: int = Field(
        ...,
        description="Token lifetime in seconds",
        ge=0,
    )
    refresh_token: Optional[str] = Field(
        default=None,
        description="Refresh token (unused)",
    )
    token_type: Optional[str] = Field(
        default=None,
        description="Token type, normally 'Bearer'",
    )
    expiration: Optional[int] = Field(
        default=None,
        description="Expiry as epoch seconds (unused, wall clock)",
    )
    scope: Optional[str] = Field(
        default=None,
        description="Granted scope",
    )

    @field_validator("access_token")
    @classmethod
    def validate_access_token(cls, v: str) -> str:
        """Reject whitespace-only tokens."""
        if not v.strip():
            raise ValueError("access_token cannot be empty or whitespace")
        return v

    model_config = {
        "extra": "ignore",
    }
