"""
Exception types and error classification for iam_auth.

Provides:
- ErrorCategory enum for retry decisions made by callers
- Typed exception hierarchy for configuration and token exchange failures
- HTTP status classification
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    The token manager never retries on its own. Categories tell the caller
    whether calling again is worthwhile.

    Categories:
        TRANSIENT: Temporary failures, a later call may succeed
                   (e.g., network timeouts, 429/503 errors)
        AUTH: The IAM service rejected the API key (401/403)
        PERMANENT: Non-retriable failures (bad configuration, 400)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class TokenServiceError(Exception):
    """
    Base exception for all iam_auth errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether calling again could succeed."""
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Configuration Errors
# =============================================================================


class InvalidConfigurationError(TokenServiceError, ValueError):
    """Invalid endpoint, API key, credentials JSON or expiry threshold."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Token Exchange Errors
# =============================================================================


class TokenExchangeError(TokenServiceError):
    """
    A token exchange attempt against the IAM endpoint failed.

    Raised for non-200 responses, transport errors and undecodable bodies.
    The category follows the HTTP status when there is one.

    Attributes:
        endpoint: Token URL that was called
        status_code: HTTP status, None for transport errors
        content_type: Response Content-Type, if any
        response_body: Response body (API key redacted), if any
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        content_type: Optional[str] = None,
        response_body: Optional[str] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.endpoint = endpoint
        self.status_code = status_code
        self.content_type = content_type
        self.response_body = response_body
        if status_code is not None:
            self.category = classify_http_status(status_code)
        else:
            self.category = ErrorCategory.TRANSIENT

    def replay(self) -> "TokenExchangeError":
        """Return an equivalent error to raise in another waiting thread."""
        return TokenExchangeError(
            self.message,
            endpoint=self.endpoint,
            status_code=self.status_code,
            content_type=self.content_type,
            response_body=self.response_body,
            cause=self.cause,
            context=dict(self.context),
        )


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code from the token endpoint into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code in (401, 403):
        return ErrorCategory.AUTH  # API key rejected

    if status_code in (408, 429):
        return ErrorCategory.TRANSIENT

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN
