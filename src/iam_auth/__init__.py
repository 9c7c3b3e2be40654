"""
IAM token lifecycle management.

Exchanges long-lived IAM API keys for short-lived bearer tokens, caches them
per (endpoint, API key) identity and refreshes them before they expire.

Usage:
    from iam_auth import ManagerRegistry

    registry = ManagerRegistry()
    manager = registry.get_or_create_for("https://iam.cloud.ibm.com", api_key)
    headers = {"Authorization": f"Bearer {manager.get_token()}"}
"""

from iam_auth.bearer import BearerTokenAuth
from iam_auth.config import IamCredentials, TokenManagerConfig
from iam_auth.errors import (
    ErrorCategory,
    InvalidConfigurationError,
    TokenExchangeError,
    TokenServiceError,
)
from iam_auth.exchange import TokenExchangeClient
from iam_auth.manager import (
    StaticTokenManager,
    TokenLifecycleManager,
    TokenManager,
    TokenState,
)
from iam_auth.models import CredentialIdentity, TokenRecord
from iam_auth.registry import ManagerRegistry, token_manager_for

__all__ = [
    "BearerTokenAuth",
    "CredentialIdentity",
    "ErrorCategory",
    "IamCredentials",
    "InvalidConfigurationError",
    "ManagerRegistry",
    "StaticTokenManager",
    "TokenExchangeClient",
    "TokenExchangeError",
    "TokenLifecycleManager",
    "TokenManager",
    "TokenManagerConfig",
    "TokenRecord",
    "TokenServiceError",
    "TokenState",
    "token_manager_for",
]

__version__ = "1.0.0"
