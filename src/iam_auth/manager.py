"""
Token managers.

TokenLifecycleManager owns the cached token of one credential identity and
refreshes it once a configured fraction of its lifetime has passed.

Refresh protocol (double-checked locking):
    1. Fast path: read the current record once. If fresh, return it without
       taking any lock.
    2. Slow path: take the manager's refresh lock and re-check. Another
       thread may have refreshed while this one waited. If still stale,
       perform exactly one exchange and publish the new record.

States:
    - EMPTY: no token fetched yet
    - FRESH: now < refresh deadline
    - STALE: now >= refresh deadline, next call refreshes
    - REFRESHING: an exchange is in flight, other callers wait for it

A failed exchange leaves the cached record untouched. Every caller that was
waiting on the failed attempt receives the failure; the next call after that
attempts a new exchange.

Usage:
    manager = TokenLifecycleManager(
        CredentialIdentity("https://iam.cloud.ibm.com", api_key),
    )
    headers = {"Authorization": f"Bearer {manager.get_token()}"}
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional, Protocol

from iam_auth.errors import InvalidConfigurationError, TokenExchangeError
from iam_auth.exchange import TokenExchangeClient
from iam_auth.expiry import (
    DEFAULT_EXPIRY_THRESHOLD,
    is_stale,
    validate_expiry_threshold,
)
from iam_auth.logging.utilities import get_logger, log_exception, log_with_context
from iam_auth.metrics import record_token_request
from iam_auth.models import CredentialIdentity, TokenRecord
from iam_auth.security import mask_secret

logger = get_logger(__name__)


class TokenState(Enum):
    """Token manager states."""

    EMPTY = "empty"  # Nothing fetched yet
    FRESH = "fresh"  # Cached token usable
    STALE = "stale"  # Past refresh deadline
    REFRESHING = "refreshing"  # Exchange in flight


class ExchangeClient(Protocol):
    """Anything that can turn an identity into a token record."""

    def exchange(
        self,
        identity: CredentialIdentity,
        expiry_threshold: float = DEFAULT_EXPIRY_THRESHOLD,
    ) -> TokenRecord:
        ...


class TokenManager(ABC):
    """Source of bearer tokens for API calls."""

    @abstractmethod
    def get_token(self) -> str:
        """Return a bearer token that is valid now."""


class StaticTokenManager(TokenManager):
    """Serves a pre-issued bearer token as is, with no refresh."""

    def __init__(self, token: Optional[str]):
        if not token:
            raise InvalidConfigurationError(
                "Cannot initialize with null or empty IAM bearer token."
            )
        self._token = token

    def get_token(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return f"StaticTokenManager(token={mask_secret(self._token)!r})"


class TokenLifecycleManager(TokenManager):
    """
    Cached, self-refreshing token for a single credential identity.

    Thread-safe. Refreshes for one manager are serialized by a per-instance
    lock, so managers for different identities never contend.

    Construction validates its inputs and performs no I/O, so a registry
    may build and discard spare instances.

    Args:
        identity: IAM endpoint and API key
        exchange_client: Performs the network exchange. A default
            TokenExchangeClient is created when omitted.
        expiry_threshold: Fraction of the token lifetime after which it is
            refreshed, in (0.1, 1.0) exclusive
        clock: Monotonic clock, injectable for tests. Deadlines are stamped
            by the exchange client, so an injected exchange_client must read
            the same clock.

    Raises:
        InvalidConfigurationError: On empty endpoint or API key, or an
            out-of-range threshold
    """

    def __init__(
        self,
        identity: CredentialIdentity,
        exchange_client: Optional[ExchangeClient] = None,
        expiry_threshold: float = DEFAULT_EXPIRY_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        identity.validate()
        self.identity = identity
        self.expiry_threshold = validate_expiry_threshold(expiry_threshold)
        self._clock = clock

        self._exchange_client = exchange_client or TokenExchangeClient(clock=clock)

        # Replaced wholesale, never mutated; the only state read lock-free
        self._record: Optional[TokenRecord] = None

        self._refresh_lock = threading.Lock()
        self._refreshing = False
        self._exchange_count = 0
        self._failure_count = 0
        self._last_failure: Optional[TokenExchangeError] = None

    @property
    def state(self) -> TokenState:
        """Current state (diagnostics only, may change immediately)."""
        if self._refreshing:
            return TokenState.REFRESHING
        record = self._record
        if record is None:
            return TokenState.EMPTY
        if is_stale(record, self._clock()):
            return TokenState.STALE
        return TokenState.FRESH

    @property
    def exchange_count(self) -> int:
        """Number of successful exchanges performed by this manager."""
        return self._exchange_count

    def get_token(self) -> str:
        """
        Return the cached token, refreshing it first if stale.

        A call that finds an exchange failing while it waits raises that
        failure instead of starting another exchange. The failure count is
        read before anything else so an attempt failing between the
        fast-path check and the lock still counts as waited on.

        The token returned by the exchanging caller is not re-checked: when
        floor(expires_in * threshold) is 0 the caller receives a token whose
        refresh deadline has already passed, and the next call refreshes.

        Returns:
            Bearer token string

        Raises:
            TokenExchangeError: If the refresh attempt this call performed or
                waited on failed
        """
        failures_seen = self._failure_count
        record = self._record
        if not is_stale(record, self._clock()):
            record_token_request("cached")
            return record.access_token  # type: ignore[union-attr]

        with self._refresh_lock:
            record = self._record
            if not is_stale(record, self._clock()):
                # Refreshed by another thread while this one waited
                record_token_request("waited")
                return record.access_token  # type: ignore[union-attr]

            if self._failure_count != failures_seen and self._last_failure is not None:
                # The attempt this call waited on failed
                record_token_request("failed")
                raise self._last_failure.replay()

            return self._refresh_locked()

    def _refresh_locked(self) -> str:
        """Exchange and publish a new record (called under lock)."""
        self._refreshing = True
        try:
            record = self._exchange_client.exchange(
                self.identity, self.expiry_threshold
            )
        except TokenExchangeError as e:
            self._last_failure = e
            self._failure_count += 1
            record_token_request("failed")
            log_exception(
                logger,
                e,
                "Failed getting IAM token",
                level=logging.WARNING,
                include_traceback=False,
                identity=self.identity.masked,
            )
            raise
        finally:
            self._refreshing = False

        self._record = record
        self._exchange_count += 1
        self._last_failure = None
        record_token_request("refreshed")
        log_with_context(
            logger,
            logging.INFO,
            "IAM token refreshed",
            identity=self.identity.masked,
            expires_in=record.issued_lifetime_seconds,
            refresh_in_seconds=round(record.refresh_deadline - self._clock(), 1),
            expiry_threshold=self.expiry_threshold,
            exchange_count=self._exchange_count,
        )
        return record.access_token

    def invalidate(self) -> None:
        """
        Drop the cached token so the next call performs an exchange.

        For callers whose downstream API rejected the current token.
        """
        self._record = None
        log_with_context(
            logger,
            logging.DEBUG,
            "IAM token invalidated",
            identity=self.identity.masked,
        )

    def get_diagnostics(self) -> dict:
        """Get diagnostic info for health checks. Never includes secrets."""
        record = self._record
        refresh_in = None
        if record is not None:
            refresh_in = round(record.refresh_deadline - self._clock(), 1)
        return {
            "identity": self.identity.masked,
            "state": self.state.value,
            "expiry_threshold": self.expiry_threshold,
            "expires_in": record.issued_lifetime_seconds if record else None,
            "refresh_in_seconds": refresh_in,
            "exchange_count": self._exchange_count,
            "failure_count": self._failure_count,
        }

    def __repr__(self) -> str:
        return (
            f"TokenLifecycleManager(identity={self.identity!r}, "
            f"expiry_threshold={self.expiry_threshold})"
        )
