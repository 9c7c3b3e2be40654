"""requests integration: attach a managed bearer token to outgoing requests."""

import requests

from iam_auth.manager import TokenManager


class BearerTokenAuth(requests.auth.AuthBase):
    """
    requests auth handler backed by a token manager.

    The token is looked up on every request, so long-lived sessions pick up
    refreshed tokens without being rebuilt.

    Usage:
        session = requests.Session()
        session.auth = BearerTokenAuth(registry.get_or_create_for(endpoint, api_key))
    """

    def __init__(self, token_manager: TokenManager):
        self.token_manager = token_manager

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self.token_manager.get_token()}"
        return request

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, BearerTokenAuth)
            and other.token_manager is self.token_manager
        )

    def __ne__(self, other: object) -> bool:
        return not self == other
