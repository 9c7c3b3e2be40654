"""
Registry of token managers, one per credential identity.

The registry is an explicitly constructed object. Whoever creates it owns it
and decides its lifetime (normally the process lifetime); there is no
module-level instance. Entries are never evicted.

Lookups never take a global lock. On a miss a candidate manager is built and
published with dict.setdefault, which is atomic: when two threads race on the
same identity both may build a candidate, exactly one is published and every
caller receives that one. This is safe because manager construction has no
side effects beyond field initialization.

Usage:
    registry = ManagerRegistry()
    manager = registry.get_or_create_for("https://iam.cloud.ibm.com", api_key)
    token = manager.get_token()
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, Union

from iam_auth.config import IamCredentials, TokenManagerConfig
from iam_auth.errors import InvalidConfigurationError
from iam_auth.exchange import TokenExchangeClient
from iam_auth.expiry import DEFAULT_EXPIRY_THRESHOLD, validate_expiry_threshold
from iam_auth.logging.utilities import get_logger, log_with_context
from iam_auth.manager import (
    ExchangeClient,
    StaticTokenManager,
    TokenLifecycleManager,
    TokenManager,
)
from iam_auth.models import CredentialIdentity

logger = get_logger(__name__)


class ManagerRegistry:
    """
    Maps credential identities to their TokenLifecycleManager.

    Args:
        exchange_client: Shared exchange client handed to every manager.
            A default TokenExchangeClient is created when omitted.
        expiry_threshold: Threshold for every manager created here,
            validated immediately
        clock: Monotonic clock shared by the managers and the default
            exchange client. A supplied exchange_client must read the
            same clock.

    Raises:
        InvalidConfigurationError: If the threshold is out of range
    """

    def __init__(
        self,
        exchange_client: Optional[ExchangeClient] = None,
        expiry_threshold: float = DEFAULT_EXPIRY_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.expiry_threshold = validate_expiry_threshold(expiry_threshold)
        self._clock = clock
        if exchange_client is None:
            exchange_client = TokenExchangeClient(clock=clock)
        self._exchange_client = exchange_client
        self._managers: Dict[CredentialIdentity, TokenLifecycleManager] = {}

    @classmethod
    def from_config(
        cls,
        config: TokenManagerConfig,
        exchange_client: Optional[ExchangeClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ManagerRegistry":
        """Build a registry from loaded configuration."""
        if exchange_client is None:
            exchange_client = TokenExchangeClient(
                timeout=config.request_timeout_seconds, clock=clock
            )
        return cls(
            exchange_client=exchange_client,
            expiry_threshold=config.expiry_threshold,
            clock=clock,
        )

    def get_or_create(self, identity: CredentialIdentity) -> TokenLifecycleManager:
        """
        Get the manager for an identity, creating it on first use.

        Args:
            identity: IAM endpoint and API key

        Returns:
            The single manager for this identity

        Raises:
            InvalidConfigurationError: On empty endpoint or API key
        """
        identity.validate()

        manager = self._managers.get(identity)
        if manager is not None:
            return manager

        candidate = TokenLifecycleManager(
            identity,
            exchange_client=self._exchange_client,
            expiry_threshold=self.expiry_threshold,
            clock=self._clock,
        )
        manager = self._managers.setdefault(identity, candidate)
        if manager is candidate:
            log_with_context(
                logger,
                logging.DEBUG,
                "Created token manager",
                identity=identity.masked,
                expiry_threshold=self.expiry_threshold,
                registry_size=len(self._managers),
            )
        return manager

    def get_or_create_for(
        self,
        endpoint: Optional[str],
        api_key: Optional[str],
    ) -> TokenLifecycleManager:
        """Get the manager for an explicit endpoint and API key."""
        return self.get_or_create(CredentialIdentity(endpoint, api_key))  # type: ignore[arg-type]

    def get_or_create_from_json(
        self,
        credentials: Union[str, bytes, Mapping[str, Any]],
    ) -> TokenLifecycleManager:
        """
        Get the manager for a JSON credentials document.

        The document must at minimum contain:
            {"apikey": "<IAM_API_KEY>", "iam_endpoint": "<IAM_ENDPOINT>"}

        Args:
            credentials: JSON text or an already decoded mapping

        Returns:
            The single manager for the identity in the document

        Raises:
            InvalidConfigurationError: If the document is not a JSON object,
                or either field is missing, null, not a string, or empty
        """
        return self.get_or_create(parse_credentials_json(credentials))

    def __len__(self) -> int:
        return len(self._managers)

    def __contains__(self, identity: object) -> bool:
        return identity in self._managers


def parse_credentials_json(
    credentials: Union[str, bytes, Mapping[str, Any]],
) -> CredentialIdentity:
    """
    Extract a credential identity from a JSON credentials document.

    Raises:
        InvalidConfigurationError: See ManagerRegistry.get_or_create_from_json
    """
    return IamCredentials.from_json(credentials).identity


def token_manager_for(
    credentials: IamCredentials,
    registry: ManagerRegistry,
) -> TokenManager:
    """
    Pick a token manager for loaded credentials.

    API key credentials take precedence and resolve to the registry's
    lifecycle manager; otherwise a pre-issued bearer token is served as is.

    Raises:
        InvalidConfigurationError: If the credentials carry neither
    """
    if credentials.has_api_key:
        log_with_context(
            logger,
            logging.DEBUG,
            "Using IAM API key authentication",
            auth_mode="apikey",
        )
        return registry.get_or_create(credentials.identity)
    if credentials.has_bearer_token:
        log_with_context(
            logger,
            logging.DEBUG,
            "Using IAM bearer token authentication",
            auth_mode="bearer",
        )
        return StaticTokenManager(credentials.bearer_token)
    raise InvalidConfigurationError(
        "IAM credentials need either an endpoint and API key or a bearer token."
    )
