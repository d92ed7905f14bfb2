"""Shared test fixtures.

Every test talks to an httpx.MockTransport, so no network is needed. The
Recorder keeps every request it sees, which lets tests count round-trips
and inspect the Authorization header of each attempt.
"""

from typing import Callable, Optional

import httpx
import pytest

from shared.config import HttpSettings
from api_client import ApiClient

BASE_URL = "https://api.example.test/v1"
TOKEN_URL = "https://oauth.example.test/token"

Responder = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """MockTransport wrapper that records requests."""

    def __init__(self, responder: Responder) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = responder
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) != TOKEN_URL]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == TOKEN_URL]


def scripted(
    api_responses: list[httpx.Response],
    token_response: Optional[httpx.Response] = None
) -> Responder:
    """Answer API calls from a queue and token calls with a fixed response."""
    queue = list(api_responses)

    def respond(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            if token_response is None:
                raise AssertionError("Unexpected token endpoint call")
            return token_response
        if not queue:
            raise AssertionError(f"Unexpected API call: {request.method} {request.url}")
        return queue.pop(0)

    return respond


FULL_CREDENTIALS = {
    "refresh_token": "refresh-1",
    "client_id": "client-abc",
    "client_secret": "secret-xyz",
}


@pytest.fixture
def http_settings() -> HttpSettings:
    return HttpSettings(token_url=TOKEN_URL, timeout_seconds=5, error_body_limit=500)


@pytest.fixture
def make_client(http_settings: HttpSettings):
    """Factory returning (client, recorder) for a responder and credentials."""

    def _make(responder: Responder, access_token: str = "old-token", **credentials) -> tuple[ApiClient, Recorder]:
        recorder = Recorder(responder)
        client = ApiClient.with_bearer_token(
            BASE_URL,
            access_token=access_token,
            settings=http_settings,
            transport=recorder.transport,
            **credentials
        )
        return client, recorder

    return _make
