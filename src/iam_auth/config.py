"""
Configuration for IAM token management.

Configuration priority (highest to lowest):
    1. Environment variables
    2. config.yaml file (under 'iam:' key)
    3. Dataclass defaults

Credentials are never read from the YAML file; they come from the environment
(GP_IAM_*) or from a JSON credentials document.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from iam_auth.errors import InvalidConfigurationError
from iam_auth.exchange import DEFAULT_REQUEST_TIMEOUT
from iam_auth.expiry import DEFAULT_EXPIRY_THRESHOLD, validate_expiry_threshold
from iam_auth.models import CredentialIdentity
from iam_auth.security import mask_secret

# Default config path: config.yaml in the working directory
DEFAULT_CONFIG_PATH = Path("config.yaml")

# Keys of the JSON credentials document
APIKEY_FIELD = "apikey"
IAM_ENDPOINT_FIELD = "iam_endpoint"


@dataclass
class TokenManagerConfig:
    """Tuning knobs shared by every token manager in a process.

    Attributes:
        expiry_threshold: Fraction of a token's lifetime after which it is
            refreshed, in (0.1, 1.0) exclusive
        request_timeout_seconds: Transport timeout of each exchange
    """

    expiry_threshold: float = DEFAULT_EXPIRY_THRESHOLD
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        self.expiry_threshold = validate_expiry_threshold(self.expiry_threshold)
        try:
            self.request_timeout_seconds = float(self.request_timeout_seconds)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(
                f"Request timeout must be numeric, got {self.request_timeout_seconds!r}",
                cause=e,
            ) from e
        if self.request_timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"Request timeout must be positive, got {self.request_timeout_seconds}"
            )

    @classmethod
    def from_env(cls) -> "TokenManagerConfig":
        """Load configuration from environment variables only.

        Optional env vars (all have defaults):
            IAM_TOKEN_EXPIRY_THRESHOLD: Expiry threshold (default: 0.85)
            IAM_TOKEN_REQUEST_TIMEOUT: Timeout in seconds (default: 30)
        """
        return cls(
            expiry_threshold=os.getenv(
                "IAM_TOKEN_EXPIRY_THRESHOLD", str(DEFAULT_EXPIRY_THRESHOLD)
            ),  # type: ignore[arg-type]
            request_timeout_seconds=os.getenv(
                "IAM_TOKEN_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)
            ),  # type: ignore[arg-type]
        )

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "TokenManagerConfig":
        """Load configuration from config.yaml and environment variables.

        Example config.yaml:
            iam:
              expiry_threshold: 0.9
              request_timeout_seconds: 10

        Raises:
            InvalidConfigurationError: If a value is out of range, or the
                'iam:' section is not a mapping
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

        iam_data: Dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "r") as f:
                yaml_data = yaml.safe_load(f) or {}
            if not isinstance(yaml_data, dict):
                raise InvalidConfigurationError(
                    f"{config_path} must contain a mapping at the top level"
                )
            iam_data = yaml_data.get("iam") or {}
            if not isinstance(iam_data, dict):
                raise InvalidConfigurationError(
                    f"'iam' section of {config_path} must be a mapping"
                )

        return cls(
            expiry_threshold=os.getenv(
                "IAM_TOKEN_EXPIRY_THRESHOLD",
                iam_data.get("expiry_threshold", DEFAULT_EXPIRY_THRESHOLD),
            ),
            request_timeout_seconds=os.getenv(
                "IAM_TOKEN_REQUEST_TIMEOUT",
                iam_data.get("request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT),
            ),
        )


@dataclass(frozen=True)
class IamCredentials:
    """Credentials of one service account.

    Either an endpoint plus API key (exchanged for tokens on demand) or a
    pre-issued bearer token. Secrets are masked in repr.
    """

    endpoint: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    bearer_token: Optional[str] = field(default=None, repr=False)

    @property
    def has_api_key(self) -> bool:
        return bool(self.endpoint) and bool(self.api_key)

    @property
    def has_bearer_token(self) -> bool:
        return bool(self.bearer_token)

    @property
    def identity(self) -> CredentialIdentity:
        """Credential identity for the API key pair.

        Raises:
            InvalidConfigurationError: If the endpoint or API key is missing
        """
        identity = CredentialIdentity(self.endpoint or "", self.api_key or "")
        identity.validate()
        return identity

    @classmethod
    def from_env(cls) -> "IamCredentials":
        """Load credentials from environment variables.

        Env vars:
            GP_IAM_ENDPOINT: IAM endpoint (e.g. https://iam.cloud.ibm.com)
            GP_IAM_API_KEY: IAM API key
            GP_IAM_BEARER_TOKEN: Pre-issued bearer token, used when no API key

        Raises:
            InvalidConfigurationError: If neither an endpoint plus API key nor
                a bearer token is set
        """
        credentials = cls(
            endpoint=os.getenv("GP_IAM_ENDPOINT") or None,
            api_key=os.getenv("GP_IAM_API_KEY") or None,
            bearer_token=os.getenv("GP_IAM_BEARER_TOKEN") or None,
        )
        if not credentials.has_api_key and not credentials.has_bearer_token:
            raise InvalidConfigurationError(
                "GP_IAM_ENDPOINT and GP_IAM_API_KEY, or GP_IAM_BEARER_TOKEN, "
                "environment variables are required"
            )
        return credentials

    @classmethod
    def from_json(
        cls, credentials: Union[str, bytes, Mapping[str, Any]]
    ) -> "IamCredentials":
        """Load API key credentials from a JSON credentials document.

        The document must at minimum contain:
            {"apikey": "<IAM_API_KEY>", "iam_endpoint": "<IAM_ENDPOINT>"}

        Other fields are ignored.

        Args:
            credentials: JSON text or an already decoded mapping

        Raises:
            InvalidConfigurationError: If the document is not a JSON object,
                or either field is missing, null, not a string, or empty
        """
        if isinstance(credentials, (str, bytes)):
            try:
                document = json.loads(credentials)
            except ValueError as e:
                raise InvalidConfigurationError(
                    "IAM credentials are not valid JSON.", cause=e
                ) from e
        else:
            document = credentials

        if not isinstance(document, Mapping):
            raise InvalidConfigurationError("IAM credentials JSON must be an object.")

        api_key = document.get(APIKEY_FIELD)
        if not isinstance(api_key, str) or not api_key:
            raise InvalidConfigurationError(
                "IAM API Key value is either not available, or null or is empty "
                "in credentials JSON."
            )
        endpoint = document.get(IAM_ENDPOINT_FIELD)
        if not isinstance(endpoint, str) or not endpoint:
            raise InvalidConfigurationError(
                "IAM endpoint value is either not available, or null or is empty "
                "in credentials JSON."
            )
        return cls(endpoint=endpoint, api_key=api_key)

    def __repr__(self) -> str:
        return (
            f"IamCredentials(endpoint={self.endpoint!r}, "
            f"api_key={mask_secret(self.api_key)!r}, "
            f"bearer_token={mask_secret(self.bearer_token)!r})"
        )
