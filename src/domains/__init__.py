"""Application Domains.

Each domain contains:
- Tool definitions
- An adapter that turns tool calls into ApiClient requests

Domains are isolated with no cross-domain calls or shared state.
"""

from typing import Optional

from shared.config import Settings, get_settings
from shared.logging import setup_logging
from domains.base import BaseAdapter


def load_all_domains(settings: Optional[Settings] = None) -> dict[str, BaseAdapter]:
    """
    Configure logging and build every configured domain adapter.

    Domains without credentials are skipped.
    """
    from domains.gmail import create_gmail_adapter

    settings = settings or get_settings()
    setup_logging(settings.log_level, json_output=settings.log_json)

    adapters: dict[str, BaseAdapter] = {}

    gmail = create_gmail_adapter(settings)
    if gmail is not None:
        adapters[gmail.domain] = gmail

    return adapters


__all__ = ["BaseAdapter", "load_all_domains"]
