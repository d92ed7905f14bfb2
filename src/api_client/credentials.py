"""Credential state shared by every call made through one client."""

from typing import Optional

from pydantic import BaseModel


class CredentialState(BaseModel):
    """
    Current bearer token plus the optional refresh credentials.

    Only the token refresher mutates this object. A replaced access token
    stays in effect for all later calls through the owning client.
    """
    access_token: str
    refresh_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def can_refresh(self) -> bool:
        """True when the refresh token, client id and client secret are all present."""
        return bool(self.refresh_token and self.client_id and self.client_secret)

    def __repr__(self) -> str:
        return f"CredentialState(can_refresh={self.can_refresh})"

    __str__ = __repr__
