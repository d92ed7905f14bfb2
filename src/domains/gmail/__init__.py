"""Gmail Domain - search, read, send and organize mail.

Thin tool layer over the Gmail v1 REST API. All calls go through an
ApiClient configured with a refreshable OAuth2 bearer token.
"""

import base64
import re
from typing import Any, Optional
from urllib.parse import quote

from shared.config import Settings, get_settings
from shared.logging import get_logger
from shared.models import DomainConfig, ExecutionType, ToolDefinition
from api_client import ApiClient, ApiClientError
from domains.base import BaseAdapter, Handler

logger = get_logger(__name__)

DEFAULT_MAX_RESULTS = 10
MAX_RESULTS_LIMIT = 50
SUMMARY_HEADERS = "Subject,From,Date"
REPLY_HEADERS = "Subject,From,To,Cc,Message-ID,References,In-Reply-To"

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def _segment(value: Any) -> str:
    """Percent-encode a value for use as a single path segment."""
    return quote(str(value), safe="")


def _header(headers: list[dict[str, str]], name: str) -> Optional[str]:
    for header in headers:
        if header.get("name") == name:
            return header.get("value")
    return None


def _split_ids(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def decode_base64url(data: str) -> str:
    """Decode Gmail's unpadded base64url body data."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_body(payload: dict[str, Any]) -> str:
    """
    Pull readable text out of a message payload.

    Prefers a text/plain part, falls back to tag-stripped text/html and
    recurses into nested multipart containers.
    """
    data = (payload.get("body") or {}).get("data")
    if data:
        return decode_base64url(data)

    parts = payload.get("parts") or []
    for mime_type in ("text/plain", "text/html"):
        part = next((p for p in parts if p.get("mimeType") == mime_type), None)
        part_data = ((part or {}).get("body") or {}).get("data")
        if not part_data:
            continue
        text = decode_base64url(part_data)
        if mime_type == "text/html":
            text = _SPACE_RE.sub(" ", _TAG_RE.sub(" ", text)).strip()
        return text

    for part in parts:
        if part.get("parts"):
            nested = extract_body(part)
            if nested:
                return nested
    return ""


def build_raw_email(
    to: str,
    subject: str,
    body: str,
    cc: Optional[str] = None,
    bcc: Optional[str] = None,
    in_reply_to: Optional[str] = None,
    references: Optional[str] = None
) -> str:
    """Build a plain-text RFC 822 message, base64url encoded for the `raw` field."""
    lines = [
        f"To: {to}",
        f"Subject: {subject}",
        "Content-Type: text/plain; charset=utf-8",
        "MIME-Version: 1.0",
    ]
    if cc:
        lines.append(f"Cc: {cc}")
    if bcc:
        lines.append(f"Bcc: {bcc}")
    if in_reply_to:
        lines.append(f"In-Reply-To: {in_reply_to}")
    if references:
        lines.append(f"References: {references}")
    lines.extend(["", body])

    raw = "\r\n".join(lines).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str] | None = None,
          execution_type: ExecutionType = ExecutionType.READ) -> ToolDefinition:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return ToolDefinition(
        name=name,
        domain="gmail",
        description=description,
        input_schema=schema,
        execution_type=execution_type
    )


GMAIL_TOOLS = [
    _tool(
        "search_emails",
        "Search emails using Gmail search syntax. Returns message IDs and snippets. "
        "Use queries like \"from:john subject:invoice\" or \"is:unread after:2025/01/01\".",
        {
            "query": {"type": "string", "description": "Gmail search query (same syntax as Gmail search bar)"},
            "maxResults": {"type": "number", "description": "Max results to return (default 10, max 50)"},
            "labelIds": {"type": "string", "description": "Comma-separated label IDs to filter by (e.g. \"INBOX,UNREAD\")"},
        },
        ["query"]
    ),
    _tool(
        "get_email",
        "Get the full content of a specific email by ID. Returns subject, from, to, date, and body text.",
        {
            "messageId": {"type": "string", "description": "The email message ID"},
            "format": {"type": "string", "description": "Response format", "enum": ["full", "metadata", "minimal"], "default": "full"},
        },
        ["messageId"]
    ),
    _tool(
        "get_thread",
        "Get all messages in an email thread. Useful for reading a full conversation.",
        {"threadId": {"type": "string", "description": "The thread ID"}},
        ["threadId"]
    ),
    _tool(
        "send_email",
        "Send a new email. Supports a plain text body.",
        {
            "to": {"type": "string", "description": "Recipient email address(es), comma-separated"},
            "subject": {"type": "string", "description": "Email subject line"},
            "body": {"type": "string", "description": "Email body (plain text)"},
            "cc": {"type": "string", "description": "CC recipients, comma-separated"},
            "bcc": {"type": "string", "description": "BCC recipients, comma-separated"},
        },
        ["to", "subject", "body"],
        ExecutionType.WRITE
    ),
    _tool(
        "reply_to_email",
        "Reply to an existing email. Maintains the thread.",
        {
            "messageId": {"type": "string", "description": "The message ID to reply to"},
            "body": {"type": "string", "description": "Reply body (plain text)"},
            "replyAll": {"type": "string", "description": "Reply to all recipients (true/false)", "enum": ["true", "false"], "default": "false"},
        },
        ["messageId", "body"],
        ExecutionType.WRITE
    ),
    _tool(
        "list_labels",
        "List all Gmail labels (folders/categories) with message counts.",
        {}
    ),
    _tool(
        "modify_labels",
        "Add or remove labels from a message (e.g., mark as read, archive, move to folder).",
        {
            "messageId": {"type": "string", "description": "The message ID"},
            "addLabelIds": {"type": "string", "description": "Comma-separated label IDs to add (e.g. \"STARRED,IMPORTANT\")"},
            "removeLabelIds": {"type": "string", "description": "Comma-separated label IDs to remove (e.g. \"UNREAD,INBOX\")"},
        },
        ["messageId"],
        ExecutionType.WRITE
    ),
    _tool(
        "get_profile",
        "Get the authenticated user's Gmail profile (email address, total messages, threads count).",
        {}
    ),
    _tool(
        "trash_email",
        "Move an email to trash.",
        {"messageId": {"type": "string", "description": "The message ID to trash"}},
        ["messageId"],
        ExecutionType.WRITE
    ),
]


class GmailAdapter(BaseAdapter):
    """
    Gmail Domain Adapter.

    Provides tools for:
    - Searching and reading messages and threads
    - Sending and replying
    - Label management and trash
    """

    def __init__(self, client: ApiClient, config: Optional[DomainConfig] = None) -> None:
        super().__init__(
            config or DomainConfig(
                name="gmail",
                description="Gmail: search, read, send and organize email"
            ),
            client
        )
        for tool in GMAIL_TOOLS:
            self._tools[tool.name] = tool

    @property
    def handlers(self) -> dict[str, Handler]:
        return {
            "search_emails": self._search_emails,
            "get_email": self._get_email,
            "get_thread": self._get_thread,
            "send_email": self._send_email,
            "reply_to_email": self._reply_to_email,
            "list_labels": self._list_labels,
            "modify_labels": self._modify_labels,
            "get_profile": self._get_profile,
            "trash_email": self._trash_email,
        }

    async def _search_emails(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            max_results = int(params.get("maxResults") or DEFAULT_MAX_RESULTS)
        except (TypeError, ValueError):
            max_results = DEFAULT_MAX_RESULTS
        max_results = max(1, min(max_results, MAX_RESULTS_LIMIT))

        listing = await self.client.request(
            "/messages",
            query={
                "q": params["query"],
                "maxResults": str(max_results),
                "labelIds": params.get("labelIds"),
            }
        )

        results = []
        for msg in (listing.get("messages") or [])[:max_results]:
            try:
                detail = await self.client.request(
                    f"/messages/{_segment(msg['id'])}",
                    query={"format": "metadata", "metadataHeaders": SUMMARY_HEADERS}
                )
            except ApiClientError as e:
                logger.warning("Message detail fetch failed", message_id=msg["id"], error=str(e))
                results.append({"id": msg["id"], "threadId": msg.get("threadId"), "error": "Failed to fetch details"})
                continue

            headers = (detail.get("payload") or {}).get("headers") or []
            results.append({
                "id": msg["id"],
                "threadId": msg.get("threadId"),
                "snippet": detail.get("snippet"),
                "subject": _header(headers, "Subject") or "",
                "from": _header(headers, "From") or "",
                "date": _header(headers, "Date") or "",
                "labelIds": detail.get("labelIds") or [],
            })

        return {"resultSizeEstimate": listing.get("resultSizeEstimate"), "messages": results}

    async def _get_email(self, params: dict[str, Any]) -> Any:
        fmt = params.get("format") or "full"
        msg = await self.client.request(
            f"/messages/{_segment(params['messageId'])}",
            query={"format": fmt}
        )
        if fmt != "full" or not msg.get("payload"):
            return msg

        headers = msg["payload"].get("headers") or []
        return {
            "id": msg.get("id"),
            "threadId": msg.get("threadId"),
            "subject": _header(headers, "Subject"),
            "from": _header(headers, "From"),
            "to": _header(headers, "To"),
            "cc": _header(headers, "Cc"),
            "date": _header(headers, "Date"),
            "labelIds": msg.get("labelIds"),
            "snippet": msg.get("snippet"),
            "body": extract_body(msg["payload"]),
        }

    async def _get_thread(self, params: dict[str, Any]) -> dict[str, Any]:
        thread = await self.client.request(
            f"/threads/{_segment(params['threadId'])}",
            query={"format": "metadata", "metadataHeaders": SUMMARY_HEADERS}
        )
        messages = []
        for m in thread.get("messages") or []:
            headers = (m.get("payload") or {}).get("headers") or []
            messages.append({
                "id": m.get("id"),
                "snippet": m.get("snippet"),
                "subject": _header(headers, "Subject"),
                "from": _header(headers, "From"),
                "date": _header(headers, "Date"),
                "labelIds": m.get("labelIds"),
            })
        return {"id": thread.get("id"), "messageCount": len(messages), "messages": messages}

    async def _send_email(self, params: dict[str, Any]) -> Any:
        raw = build_raw_email(
            to=params["to"],
            subject=params["subject"],
            body=params["body"],
            cc=params.get("cc"),
            bcc=params.get("bcc")
        )
        return await self.client.request("/messages/send", method="POST", body={"raw": raw})

    async def _reply_to_email(self, params: dict[str, Any]) -> Any:
        original = await self.client.request(
            f"/messages/{_segment(params['messageId'])}",
            query={"format": "metadata", "metadataHeaders": REPLY_HEADERS}
        )
        headers = (original.get("payload") or {}).get("headers") or []
        orig_from = _header(headers, "From") or ""
        orig_to = _header(headers, "To") or ""
        orig_cc = _header(headers, "Cc")
        orig_subject = _header(headers, "Subject") or ""
        orig_message_id = _header(headers, "Message-ID") or ""
        orig_refs = _header(headers, "References") or ""

        reply_all = str(params.get("replyAll", "false")).lower() == "true"
        to = ", ".join(v for v in (orig_from, orig_to) if v) if reply_all else orig_from
        cc = orig_cc if reply_all and orig_cc else None
        subject = orig_subject if orig_subject.startswith("Re:") else f"Re: {orig_subject}"
        references = f"{orig_refs} {orig_message_id}" if orig_refs else orig_message_id

        raw = build_raw_email(
            to=to,
            subject=subject,
            body=params["body"],
            cc=cc,
            in_reply_to=orig_message_id or None,
            references=references or None
        )
        return await self.client.request(
            "/messages/send",
            method="POST",
            body={"raw": raw, "threadId": original.get("threadId")}
        )

    async def _list_labels(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        labels = await self.client.request("/labels")
        return [
            {
                "id": label.get("id"),
                "name": label.get("name"),
                "type": label.get("type"),
                "messagesTotal": label.get("messagesTotal"),
                "messagesUnread": label.get("messagesUnread"),
            }
            for label in labels.get("labels") or []
        ]

    async def _modify_labels(self, params: dict[str, Any]) -> Any:
        return await self.client.request(
            f"/messages/{_segment(params['messageId'])}/modify",
            method="POST",
            body={
                "addLabelIds": _split_ids(params.get("addLabelIds")),
                "removeLabelIds": _split_ids(params.get("removeLabelIds")),
            }
        )

    async def _get_profile(self, params: dict[str, Any]) -> Any:
        return await self.client.request("/profile")

    async def _trash_email(self, params: dict[str, Any]) -> Any:
        return await self.client.request(
            f"/messages/{_segment(params['messageId'])}/trash",
            method="POST"
        )


def create_gmail_adapter(settings: Optional[Settings] = None, **client_kwargs: Any) -> Optional[GmailAdapter]:
    """
    Build a Gmail adapter from configuration.

    Returns None when no access token is configured.
    """
    settings = settings or get_settings()
    gmail = settings.gmail
    if not gmail.access_token:
        logger.info("Gmail domain not configured")
        return None

    client = ApiClient.with_bearer_token(
        gmail.base_url,
        access_token=gmail.access_token,
        refresh_token=gmail.refresh_token,
        client_id=gmail.client_id,
        client_secret=gmail.client_secret,
        settings=settings.http,
        **client_kwargs
    )
    adapter = GmailAdapter(client)
    logger.info("Gmail domain ready", tool_count=len(adapter.tools))
    return adapter


__all__ = [
    "GMAIL_TOOLS",
    "GmailAdapter",
    "build_raw_email",
    "create_gmail_adapter",
    "extract_body",
]
