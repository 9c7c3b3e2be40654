"""
IAM token exchange client.

Performs a single synchronous API key -> bearer token exchange against the
IAM token API:

    POST {iam_endpoint}/identity/token
    Content-Type: application/x-www-form-urlencoded

    grant_type=urn:ibm:params:oauth:grant-type:apikey&response_type=cloud_iam&apikey=...

There are no internal retries. Every failure (non-200 status, transport
error, undecodable body) surfaces as TokenExchangeError and the caller
decides whether to call again.
"""

import logging
import time
from typing import Callable, Optional
from urllib.parse import quote_plus

import requests
from pydantic import ValidationError

from iam_auth.errors import TokenExchangeError
from iam_auth.expiry import DEFAULT_EXPIRY_THRESHOLD, compute_refresh_deadline
from iam_auth.logging.utilities import get_logger, log_with_context
from iam_auth.metrics import record_exchange
from iam_auth.models import CredentialIdentity, IAMTokenResponse, TokenRecord
from iam_auth.security import sanitize_error_message

logger = get_logger(__name__)

# Fixed form fields of the API key grant
GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"
RESPONSE_TYPE = "cloud_iam"

# Transport timeout in seconds, inherited by every exchange
DEFAULT_REQUEST_TIMEOUT = 30.0

# Limits for response bodies carried on errors
MAX_ERROR_BODY_LENGTH = 10_000
MAX_ERROR_SNIPPET_LENGTH = 500


def build_request_body(api_key: str) -> bytes:
    """
    Build the form-encoded request body for an API key grant.

    Args:
        api_key: IAM API key, URL-encoded into the body

    Returns:
        UTF-8 encoded body

    Example:
        >>> build_request_body("a b&c")
        b'grant_type=urn%3Aibm%3Aparams%3Aoauth%3Agrant-type%3Aapikey&response_type=cloud_iam&apikey=a+b%26c'
    """
    fields = [
        ("grant_type", GRANT_TYPE),
        ("response_type", RESPONSE_TYPE),
        ("apikey", api_key),
    ]
    encoded = "&".join(
        f"{quote_plus(name, encoding='utf-8')}={quote_plus(value, encoding='utf-8')}"
        for name, value in fields
    )
    return encoded.encode("utf-8")


class TokenExchangeClient:
    """
    Exchanges an IAM API key for a token record.

    Thread-safe as far as the underlying requests.Session is; the token
    manager serializes exchanges per identity anyway.

    Args:
        session: requests session to use (created if not supplied)
        timeout: Transport timeout in seconds
        clock: Monotonic clock used to stamp refresh deadlines
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.timeout = timeout
        self._clock = clock

    def exchange(
        self,
        identity: CredentialIdentity,
        expiry_threshold: float = DEFAULT_EXPIRY_THRESHOLD,
    ) -> TokenRecord:
        """
        Perform one token exchange.

        Args:
            identity: Endpoint and API key to exchange
            expiry_threshold: Validated fraction of the lifetime after which
                the returned record is stale

        Returns:
            Fresh TokenRecord

        Raises:
            TokenExchangeError: On any failure of this single attempt
        """
        token_url = identity.token_url
        body = build_request_body(identity.api_key)
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "charset": "utf-8",
            "Accept": "application/json",
            "Content-Length": str(len(body)),
        }

        log_with_context(
            logger,
            logging.DEBUG,
            "Requesting IAM token",
            api_endpoint=token_url,
            identity=identity.masked,
        )

        start = time.perf_counter()
        try:
            response = self._session.post(
                token_url,
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            duration = time.perf_counter() - start
            record_exchange("transport_error", duration)
            log_with_context(
                logger,
                logging.WARNING,
                "IAM token request failed",
                api_endpoint=token_url,
                identity=identity.masked,
                duration_ms=round(duration * 1000, 2),
                error_message=sanitize_error_message(str(e), secret=identity.api_key),
            )
            raise TokenExchangeError(
                f"Could not complete fetching token from token API: {token_url}",
                endpoint=token_url,
                cause=e,
            ) from e

        duration = time.perf_counter() - start
        content_type = response.headers.get("Content-Type")

        if response.status_code != 200:
            record_exchange("http_error", duration)
            response_body = sanitize_error_message(
                response.text or "",
                secret=identity.api_key,
                max_length=MAX_ERROR_BODY_LENGTH,
            )
            log_with_context(
                logger,
                logging.WARNING,
                "IAM token API returned error status",
                api_endpoint=token_url,
                identity=identity.masked,
                http_status=response.status_code,
                content_type=content_type,
                duration_ms=round(duration * 1000, 2),
            )
            raise TokenExchangeError(
                f"Error in fetching token from IAM token API: {token_url}, "
                f"Token API response status: {response.status_code}, "
                f"content type: {content_type}, "
                f"body: {response_body[:MAX_ERROR_SNIPPET_LENGTH]}",
                endpoint=token_url,
                status_code=response.status_code,
                content_type=content_type,
                response_body=response_body,
            )

        try:
            token = IAMTokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            record_exchange("invalid_response", duration)
            log_with_context(
                logger,
                logging.WARNING,
                "IAM token API returned an undecodable body",
                api_endpoint=token_url,
                identity=identity.masked,
                http_status=response.status_code,
                content_type=content_type,
            )
            raise TokenExchangeError(
                f"Could not decode token from token API: {token_url}",
                endpoint=token_url,
                status_code=response.status_code,
                content_type=content_type,
                response_body=sanitize_error_message(
                    response.text or "",
                    secret=identity.api_key,
                    max_length=MAX_ERROR_BODY_LENGTH,
                ),
                cause=e,
            ) from e

        record_exchange("success", duration)
        record = TokenRecord(
            access_token=token.access_token,
            issued_lifetime_seconds=token.expires_in,
            refresh_deadline=compute_refresh_deadline(
                self._clock(), token.expires_in, expiry_threshold
            ),
        )
        log_with_context(
            logger,
            logging.DEBUG,
            "IAM token acquired",
            api_endpoint=token_url,
            identity=identity.masked,
            http_status=response.status_code,
            expires_in=token.expires_in,
            duration_ms=round(duration * 1000, 2),
        )
        return record

    def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "TokenExchangeClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
