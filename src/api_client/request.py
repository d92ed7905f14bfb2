"""URL, header and body construction for outgoing requests."""

import json
from typing import Any, Mapping, Optional
from urllib.parse import urlencode


def build_url(
    base_url: str,
    path: str,
    query: Optional[Mapping[str, Optional[str]]] = None
) -> str:
    """
    Compose a request URL from a base, a pre-encoded path and a query mapping.

    Entries whose value is None or the empty string are left out entirely.
    The rest keep the mapping's insertion order.

    Args:
        base_url: Service base URL, e.g. https://gmail.googleapis.com/gmail/v1/users/me
        path: Path appended verbatim; embedded identifiers must already be percent-encoded
        query: Optional query parameters

    Returns:
        The full URL string
    """
    url = f"{base_url}{path}"
    if not query:
        return url

    params = [(key, value) for key, value in query.items() if value is not None and value != ""]
    if not params:
        return url

    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def build_headers(auth_headers: Mapping[str, str], has_body: bool = False) -> dict[str, str]:
    """Merge the authentication headers with the JSON content headers."""
    headers = {"Accept": "application/json", **auth_headers}
    if has_body:
        headers["Content-Type"] = "application/json"
    return headers


def encode_body(body: Any = None) -> Optional[bytes]:
    """Serialize a structured payload as JSON, or None when there is no body."""
    if body is None:
        return None
    return json.dumps(body).encode("utf-8")
