"""Resilient authenticated API client.

Sends requests to a token-protected service, refreshes an expired bearer
token once and retries once, and reports either parsed JSON or an
ApiClientError.
"""

from api_client.auth import ApiKeyAuth, AuthStrategy, BearerTokenAuth
from api_client.client import (
    ApiClient,
    ApiClientError,
    ApiConnectionError,
    ApiDecodeError,
    ApiRequestError,
)
from api_client.credentials import CredentialState
from api_client.refresh import TokenRefresher
from api_client.request import build_url

__all__ = [
    "ApiClient",
    "ApiClientError",
    "ApiConnectionError",
    "ApiDecodeError",
    "ApiRequestError",
    "ApiKeyAuth",
    "AuthStrategy",
    "BearerTokenAuth",
    "CredentialState",
    "TokenRefresher",
    "build_url",
]
