"""Refresh-token grant against an OAuth2 token endpoint."""

from typing import Literal

import httpx

from shared.config import GOOGLE_TOKEN_URL
from shared.logging import get_logger
from api_client.credentials import CredentialState

logger = get_logger(__name__)


class TokenRefresher:
    """
    Exchanges the stored refresh credentials for a new access token.

    refresh() answers a single question: is there a new access token now?
    An incomplete credential triple, a rejected grant, a transport fault and
    a response without a token all answer False. Only the log line
    tells them apart.
    """

    def __init__(
        self,
        credentials: CredentialState,
        token_url: str = GOOGLE_TOKEN_URL,
        client_auth: Literal["body", "basic"] = "body"
    ) -> None:
        """
        Args:
            credentials: Credential state to read from and update
            token_url: Token issuance endpoint
            client_auth: "body" sends client_id/client_secret as form fields,
                "basic" sends them as an HTTP Basic Authorization header
        """
        self.credentials = credentials
        self.token_url = token_url
        self.client_auth = client_auth

    def _grant(self) -> tuple[dict[str, str], httpx.Auth | None]:
        creds = self.credentials
        form = {
            "grant_type": "refresh_token",
            "refresh_token": creds.refresh_token,
        }
        if self.client_auth == "basic":
            return form, httpx.BasicAuth(creds.client_id, creds.client_secret)

        form["client_id"] = creds.client_id
        form["client_secret"] = creds.client_secret
        return form, None

    async def refresh(self, http: httpx.AsyncClient) -> bool:
        """
        Attempt one refresh-token grant.

        Args:
            http: Client used to reach the token endpoint

        Returns:
            True if a new access token was stored, False otherwise
        """
        if not self.credentials.can_refresh:
            logger.debug("Token refresh not eligible", reason="incomplete_credentials")
            return False

        form, auth = self._grant()

        try:
            response = await http.post(
                self.token_url,
                data=form,
                auth=auth,
                headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed", reason="transport", error=str(e))
            return False

        if not response.is_success:
            logger.warning("Token refresh failed", reason="rejected", status_code=response.status_code)
            return False

        try:
            data = response.json()
        except ValueError:
            logger.warning("Token refresh failed", reason="malformed_response")
            return False

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.warning("Token refresh failed", reason="missing_access_token")
            return False

        self.credentials.access_token = access_token
        # Some providers rotate the refresh token on every grant
        if data.get("refresh_token"):
            self.credentials.refresh_token = data["refresh_token"]

        logger.info("Access token refreshed", token_url=self.token_url)
        return True
