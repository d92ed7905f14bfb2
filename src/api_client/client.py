"""Resilient API client.

Issues requests to a token-protected service and recovers from an expired
access token with exactly one refresh-and-retry cycle. Callers get either
the parsed JSON payload or an ApiClientError.
"""

from typing import Any, Mapping, Optional

import httpx

from shared.config import HttpSettings
from shared.logging import get_logger
from shared.models import HttpMethod, RequestDescriptor
from api_client.auth import AuthStrategy, BearerTokenAuth
from api_client.credentials import CredentialState
from api_client.refresh import TokenRefresher
from api_client.request import build_headers, build_url, encode_body

logger = get_logger(__name__)

DEFAULT_ERROR_BODY_LIMIT = 500


class ApiClientError(Exception):
    """Base exception for API client errors."""
    pass


class ApiConnectionError(ApiClientError):
    """The request never produced an HTTP response."""
    pass


class ApiRequestError(ApiClientError):
    """
    The service answered with a non-2xx status.

    Attributes:
        status_code: Final HTTP status (the retry's, if a retry happened)
        body: Response text, truncated to the client's error body limit
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body}" if body else f"HTTP {status_code}")


class ApiDecodeError(ApiClientError):
    """A 2xx response whose body is not valid JSON."""
    pass


class ApiClient:
    """
    Authenticated client for one remote service.

    Each call:
    - Sends the request with the current credentials
    - On 401, asks the auth strategy to refresh once
    - Resends once if the refresh succeeded; that answer is final
    - Returns parsed JSON for 2xx, raises ApiRequestError otherwise

    Credential changes persist on the auth strategy across calls. Concurrent
    calls that both see a 401 each attempt their own refresh.
    """

    def __init__(
        self,
        base_url: str,
        auth: AuthStrategy,
        timeout: float = 30.0,
        error_body_limit: int = DEFAULT_ERROR_BODY_LIMIT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Base URL every request path is appended to
            auth: Authentication strategy (bearer with refresh, or a static key)
            timeout: Request timeout in seconds
            error_body_limit: Max characters of an error body kept on ApiRequestError
            transport: Optional httpx transport for the lazily created client
            http_client: Optional pre-built client; the caller keeps ownership
        """
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.error_body_limit = error_body_limit
        self._transport = transport
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def with_bearer_token(
        cls,
        base_url: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        settings: Optional[HttpSettings] = None,
        **kwargs: Any
    ) -> "ApiClient":
        """Build a client that authenticates with a refreshable bearer token."""
        settings = settings or HttpSettings()
        credentials = CredentialState(
            access_token=access_token,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret
        )
        refresher = TokenRefresher(
            credentials,
            token_url=settings.token_url,
            client_auth=settings.client_auth
        )
        kwargs.setdefault("timeout", settings.timeout_seconds)
        kwargs.setdefault("error_body_limit", settings.error_body_limit)
        return cls(base_url, BearerTokenAuth(credentials, refresher), **kwargs)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _send(
        self,
        http: httpx.AsyncClient,
        method: HttpMethod,
        url: str,
        path: str,
        content: Optional[bytes],
        has_body: bool
    ) -> httpx.Response:
        # Headers are rebuilt per attempt so a retry carries the refreshed token
        headers = build_headers(self.auth.headers(), has_body)
        request = http.build_request(method.value, url, headers=headers, content=content)
        try:
            # Streamed: the body is read only once the response is classified
            return await http.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("Request failed", method=method.value, path=path, error=str(e))
            raise ApiConnectionError(f"Cannot reach {self.base_url}{path}: {e}") from e

    async def _error_excerpt(self, response: httpx.Response) -> str:
        try:
            await response.aread()
            text = response.text
        except (httpx.HTTPError, UnicodeDecodeError, LookupError):
            text = ""
        return text[:self.error_body_limit]

    async def _parse(self, response: httpx.Response, path: str) -> Any:
        try:
            await response.aread()
        except httpx.HTTPError as e:
            logger.error("Response read failed", path=path, status_code=response.status_code, error=str(e))
            raise ApiConnectionError(f"Lost connection reading {self.base_url}{path}: {e}") from e
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ApiDecodeError(f"Invalid JSON in {response.status_code} response: {e}") from e

    async def perform(self, descriptor: RequestDescriptor) -> Any:
        """
        Perform one logical request.

        Args:
            descriptor: Path, method, query and optional JSON body

        Returns:
            Parsed JSON payload ({} for an empty 2xx body)

        Raises:
            ApiConnectionError: If a send, or reading a 2xx body, fails at the transport level
            ApiRequestError: If the final response is not 2xx
            ApiDecodeError: If a 2xx body is not valid JSON
        """
        method = descriptor.method
        path = descriptor.path
        url = build_url(self.base_url, path, descriptor.query)
        content = encode_body(descriptor.body)
        has_body = descriptor.body is not None

        http = await self._get_client()

        logger.debug("Sending request", method=method.value, path=path)
        response = await self._send(http, method, url, path, content, has_body)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            logger.info("Unauthorized response, refreshing credentials", path=path)
            if await self.auth.refresh(http):
                await response.aclose()
                response = await self._send(http, method, url, path, content, has_body)

        try:
            if response.is_success:
                return await self._parse(response, path)
            excerpt = await self._error_excerpt(response)
        finally:
            await response.aclose()

        logger.warning(
            "Request rejected",
            method=method.value,
            path=path,
            status_code=response.status_code
        )
        raise ApiRequestError(response.status_code, excerpt)

    async def request(
        self,
        path: str,
        method: HttpMethod | str = HttpMethod.GET,
        query: Optional[Mapping[str, Optional[str]]] = None,
        body: Any = None
    ) -> Any:
        """
        Perform one logical request.

        Args:
            path: Pre-encoded path appended to the base URL
            method: HTTP method (defaults to GET)
            query: Query parameters; None and "" values are omitted
            body: Optional JSON-serializable payload

        Returns:
            Parsed JSON payload
        """
        descriptor = RequestDescriptor(
            path=path,
            method=HttpMethod(method.upper() if isinstance(method, str) else method),
            query=dict(query) if query is not None else None,
            body=body
        )
        return await self.perform(descriptor)
