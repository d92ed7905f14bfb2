"""Authentication strategies for the API client.

A strategy supplies the per-attempt authentication headers and knows whether
(and how) it can recover from a 401.
"""

from abc import ABC, abstractmethod

import httpx

from api_client.credentials import CredentialState
from api_client.refresh import TokenRefresher


class AuthStrategy(ABC):
    """Base class for request authentication."""

    @abstractmethod
    def headers(self) -> dict[str, str]:
        """Return the authentication headers for the next attempt."""
        pass

    @abstractmethod
    async def refresh(self, http: httpx.AsyncClient) -> bool:
        """
        Try to obtain fresh credentials after an unauthorized response.

        Returns:
            True if the request may be retried with new headers
        """
        pass


class BearerTokenAuth(AuthStrategy):
    """OAuth2 bearer token with refresh-token recovery."""

    def __init__(self, credentials: CredentialState, refresher: TokenRefresher | None = None) -> None:
        self.credentials = credentials
        self.refresher = refresher or TokenRefresher(credentials)

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials.access_token}"}

    async def refresh(self, http: httpx.AsyncClient) -> bool:
        return await self.refresher.refresh(http)


class ApiKeyAuth(AuthStrategy):
    """
    Static API key or integration token.

    Never refreshable; a 401 is surfaced as-is.
    """

    def __init__(self, api_key: str, header_name: str = "Authorization", prefix: str | None = "Bearer") -> None:
        self.api_key = api_key
        self.header_name = header_name
        self.prefix = prefix

    def headers(self) -> dict[str, str]:
        value = f"{self.prefix} {self.api_key}" if self.prefix else self.api_key
        return {self.header_name: value}

    async def refresh(self, http: httpx.AsyncClient) -> bool:
        return False
