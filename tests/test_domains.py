"""Tests for application domains."""

import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from shared.config import GmailSettings, HttpSettings, Settings
from shared.models import DomainConfig, ExecutionType, ToolResultStatus
from api_client import ApiClient
from conftest import FULL_CREDENTIALS, TOKEN_URL, Recorder, scripted

GMAIL_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def decode_raw(raw: str) -> str:
    return base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode()


def routed(routes: dict[str, httpx.Response]):
    """Answer by URL path (relative to the Gmail base); unknown paths are 404."""

    def respond(request: httpx.Request) -> httpx.Response:
        path = request.url.raw_path.decode().split("?")[0]
        path = path[len("/gmail/v1/users/me"):]
        return routes.get(f"{request.method} {path}", httpx.Response(404, text="not found"))

    return respond


def make_adapter(responder, config=None, **credentials):
    from domains.gmail import GmailAdapter

    recorder = Recorder(responder)
    client = ApiClient.with_bearer_token(
        GMAIL_BASE,
        access_token="gmail-token",
        settings=HttpSettings(token_url=TOKEN_URL),
        transport=recorder.transport,
        **credentials
    )
    return GmailAdapter(client, config=config), recorder


def query_of(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.url.query.decode())


class TestGmailTools:
    """Tests for Gmail tool definitions and dispatch."""

    def test_tool_catalog(self):
        adapter, _ = make_adapter(routed({}))

        names = {tool.qualified_name for tool in adapter.tools}
        assert names == {
            "gmail.search_emails",
            "gmail.get_email",
            "gmail.get_thread",
            "gmail.send_email",
            "gmail.reply_to_email",
            "gmail.list_labels",
            "gmail.modify_labels",
            "gmail.get_profile",
            "gmail.trash_email",
        }
        assert adapter.get_tool("send_email").execution_type == ExecutionType.WRITE
        assert adapter.get_tool("search_emails").required == ["query"]

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        adapter, recorder = make_adapter(routed({}))

        result = await adapter.execute("delete_everything", {})

        assert result.status == ToolResultStatus.NOT_FOUND
        assert result.error_code == "ACTION_NOT_FOUND"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self):
        adapter, recorder = make_adapter(routed({}))

        result = await adapter.execute("send_email", {"to": "a@example.com", "subject": ""})

        assert result.status == ToolResultStatus.VALIDATION_ERROR
        assert "subject" in result.error
        assert "body" in result.error
        assert recorder.requests == []


class TestGmailActions:
    """Tests for Gmail actions against a mocked API."""

    @pytest.mark.asyncio
    async def test_search_emails(self):
        adapter, recorder = make_adapter(routed({
            "GET /messages": httpx.Response(200, json={
                "messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2", "threadId": "t2"}],
                "resultSizeEstimate": 2,
            }),
            "GET /messages/m1": httpx.Response(200, json={
                "snippet": "Invoice attached",
                "labelIds": ["INBOX"],
                "payload": {"headers": [
                    {"name": "Subject", "value": "Invoice"},
                    {"name": "From", "value": "john@example.com"},
                    {"name": "Date", "value": "Mon, 5 Jan 2026 10:00:00 +0000"},
                ]},
            }),
            "GET /messages/m2": httpx.Response(500, text="backend error"),
        }))

        result = await adapter.execute("search_emails", {"query": "from:john", "maxResults": 100})

        assert result.success
        data = json.loads(result.data)
        assert data["resultSizeEstimate"] == 2
        first, second = data["messages"]
        assert first["subject"] == "Invoice"
        assert first["from"] == "john@example.com"
        assert first["labelIds"] == ["INBOX"]
        assert second == {"id": "m2", "threadId": "t2", "error": "Failed to fetch details"}

        listing = query_of(recorder.requests[0])
        assert listing == {"q": ["from:john"], "maxResults": ["50"]}
        detail = query_of(recorder.requests[1])
        assert detail == {"format": ["metadata"], "metadataHeaders": ["Subject,From,Date"]}

    @pytest.mark.asyncio
    async def test_get_email_extracts_plain_text(self):
        adapter, recorder = make_adapter(routed({
            "GET /messages/abc": httpx.Response(200, json={
                "id": "abc",
                "threadId": "t1",
                "snippet": "Hello",
                "payload": {
                    "headers": [{"name": "Subject", "value": "Greetings"}, {"name": "To", "value": "me@example.com"}],
                    "parts": [
                        {"mimeType": "text/html", "body": {"data": b64("<p>Hello <b>html</b></p>")}},
                        {"mimeType": "text/plain", "body": {"data": b64("Hello plain")}},
                    ],
                },
            }),
        }))

        result = await adapter.execute("get_email", {"messageId": "abc"})

        data = json.loads(result.data)
        assert data["subject"] == "Greetings"
        assert data["to"] == "me@example.com"
        assert data["body"] == "Hello plain"
        assert query_of(recorder.requests[0]) == {"format": ["full"]}

    @pytest.mark.asyncio
    async def test_message_id_is_path_encoded(self):
        adapter, recorder = make_adapter(routed({}))

        result = await adapter.execute("trash_email", {"messageId": "a/b c"})

        assert result.status == ToolResultStatus.ERROR
        assert result.error_code == "HTTP_404"
        assert recorder.requests[0].url.raw_path.endswith(b"/messages/a%2Fb%20c/trash")

    @pytest.mark.asyncio
    async def test_get_thread(self):
        adapter, _ = make_adapter(routed({
            "GET /threads/t1": httpx.Response(200, json={
                "id": "t1",
                "messages": [
                    {"id": "m1", "snippet": "one", "payload": {"headers": [{"name": "From", "value": "a@x"}]}},
                    {"id": "m2", "snippet": "two", "payload": {"headers": []}},
                ],
            }),
        }))

        result = await adapter.execute("get_thread", {"threadId": "t1"})

        data = json.loads(result.data)
        assert data["messageCount"] == 2
        assert data["messages"][0]["from"] == "a@x"
        assert data["messages"][1]["from"] is None

    @pytest.mark.asyncio
    async def test_send_email(self):
        adapter, recorder = make_adapter(routed({
            "POST /messages/send": httpx.Response(200, json={"id": "sent-1", "threadId": "t9"}),
        }))

        result = await adapter.execute("send_email", {
            "to": "a@example.com",
            "subject": "Status",
            "body": "All good",
            "cc": "b@example.com",
        })

        assert json.loads(result.data)["id"] == "sent-1"
        payload = json.loads(recorder.requests[0].content)
        message = decode_raw(payload["raw"])
        assert "To: a@example.com\r\n" in message
        assert "Cc: b@example.com\r\n" in message
        assert "Bcc:" not in message
        assert message.endswith("\r\n\r\nAll good")

    @pytest.mark.asyncio
    async def test_reply_all_keeps_thread(self):
        adapter, recorder = make_adapter(routed({
            "GET /messages/m1": httpx.Response(200, json={
                "threadId": "t1",
                "payload": {"headers": [
                    {"name": "From", "value": "alice@example.com"},
                    {"name": "To", "value": "me@example.com"},
                    {"name": "Cc", "value": "carol@example.com"},
                    {"name": "Subject", "value": "Plans"},
                    {"name": "Message-ID", "value": "<id-1@mail>"},
                    {"name": "References", "value": "<id-0@mail>"},
                ]},
            }),
            "POST /messages/send": httpx.Response(200, json={"id": "reply-1"}),
        }))

        result = await adapter.execute("reply_to_email", {"messageId": "m1", "body": "Sounds good", "replyAll": "true"})

        assert result.success
        payload = json.loads(recorder.requests[1].content)
        assert payload["threadId"] == "t1"
        message = decode_raw(payload["raw"])
        assert "To: alice@example.com, me@example.com\r\n" in message
        assert "Cc: carol@example.com\r\n" in message
        assert "Subject: Re: Plans\r\n" in message
        assert "In-Reply-To: <id-1@mail>\r\n" in message
        assert "References: <id-0@mail> <id-1@mail>\r\n" in message

    @pytest.mark.asyncio
    async def test_modify_labels_splits_ids(self):
        adapter, recorder = make_adapter(routed({
            "POST /messages/m1/modify": httpx.Response(200, json={"id": "m1"}),
        }))

        await adapter.execute("modify_labels", {"messageId": "m1", "removeLabelIds": "UNREAD, INBOX"})

        payload = json.loads(recorder.requests[0].content)
        assert payload == {"addLabelIds": [], "removeLabelIds": ["UNREAD", "INBOX"]}

    @pytest.mark.asyncio
    async def test_list_labels(self):
        adapter, _ = make_adapter(routed({
            "GET /labels": httpx.Response(200, json={"labels": [
                {"id": "INBOX", "name": "INBOX", "type": "system", "messagesTotal": 10, "messagesUnread": 2, "color": {}},
            ]}),
        }))

        result = await adapter.execute("list_labels", {})

        assert json.loads(result.data) == [
            {"id": "INBOX", "name": "INBOX", "type": "system", "messagesTotal": 10, "messagesUnread": 2},
        ]

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self):
        responses = [httpx.Response(401, text="expired"), httpx.Response(200, json={"emailAddress": "me@example.com"})]
        token = httpx.Response(200, json={"access_token": "gmail-token-2"})
        adapter, recorder = make_adapter(scripted(responses, token), **FULL_CREDENTIALS)

        result = await adapter.execute("get_profile", {})

        assert json.loads(result.data)["emailAddress"] == "me@example.com"
        assert len(recorder.requests) == 3
        assert recorder.requests[2].headers["authorization"] == "Bearer gmail-token-2"

    @pytest.mark.asyncio
    async def test_unauthorized_without_refresh_credentials(self):
        adapter, _ = make_adapter(scripted([httpx.Response(401, text="expired")]))

        result = await adapter.execute("get_profile", {})

        assert result.status == ToolResultStatus.ERROR
        assert result.error_code == "HTTP_401"
        assert "expired" in result.error

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def explode(request):
            raise httpx.ConnectError("no route", request=request)

        adapter, _ = make_adapter(explode)

        result = await adapter.execute("get_profile", {})

        assert result.error_code == "CONNECTION_ERROR"

    @pytest.mark.asyncio
    async def test_output_is_capped(self):
        config = DomainConfig(name="gmail", description="Gmail", max_output_chars=100)
        adapter, _ = make_adapter(
            routed({"GET /profile": httpx.Response(200, json={"blob": "y" * 1000})}),
            config=config
        )

        result = await adapter.execute("get_profile", {})

        assert result.data.endswith("\n\n[TRUNCATED]")
        assert len(result.data) == 100 + len("\n\n[TRUNCATED]")


class TestGmailHelpers:
    """Tests for Gmail message helpers."""

    def test_extract_body_html_fallback(self):
        from domains.gmail import extract_body

        payload = {"parts": [{"mimeType": "text/html", "body": {"data": b64("<div>Hi\n  <i>there</i></div>")}}]}
        assert extract_body(payload) == "Hi there"

    def test_extract_body_nested(self):
        from domains.gmail import extract_body

        payload = {"parts": [
            {"mimeType": "application/pdf", "body": {"attachmentId": "x"}},
            {"mimeType": "multipart/alternative", "parts": [
                {"mimeType": "text/plain", "body": {"data": b64("nested text")}},
            ]},
        ]}
        assert extract_body(payload) == "nested text"

    def test_extract_body_empty(self):
        from domains.gmail import extract_body

        assert extract_body({"parts": []}) == ""

    def test_build_raw_email_is_unpadded_base64url(self):
        from domains.gmail import build_raw_email

        raw = build_raw_email("a@example.com", "Hi?", "Body")
        assert "=" not in raw
        assert "+" not in raw and "/" not in raw
        assert decode_raw(raw).startswith("To: a@example.com\r\nSubject: Hi?\r\n")


class TestDomainLoading:
    """Tests for building adapters from settings."""

    def test_logging_configured_from_settings(self, monkeypatch):
        import domains

        calls = []
        monkeypatch.setattr(domains, "setup_logging", lambda level, json_output=False: calls.append((level, json_output)))

        domains.load_all_domains(Settings(log_level="WARNING", log_json=True, gmail=GmailSettings(access_token=None)))

        assert calls == [("WARNING", True)]

    def test_unconfigured_gmail_is_skipped(self):
        from domains import load_all_domains

        settings = Settings(gmail=GmailSettings(access_token=None))
        assert load_all_domains(settings) == {}

    @pytest.mark.asyncio
    async def test_configured_gmail(self):
        from domains import load_all_domains

        settings = Settings(
            gmail=GmailSettings(access_token="t", **FULL_CREDENTIALS),
            http=HttpSettings(token_url=TOKEN_URL, error_body_limit=50)
        )

        adapters = load_all_domains(settings)

        gmail = adapters["gmail"]
        assert gmail.client.base_url == GMAIL_BASE
        assert gmail.client.error_body_limit == 50
        assert gmail.client.auth.credentials.can_refresh
        await gmail.close()


class TestGmailValidation:
    """Tests for schema validation of Gmail tool input."""

    @pytest.mark.asyncio
    async def test_invalid_enum_is_rejected(self):
        adapter, recorder = make_adapter(routed({}))

        result = await adapter.execute("get_email", {"messageId": "m1", "format": "raw"})

        assert result.status == ToolResultStatus.VALIDATION_ERROR
        assert result.error.startswith("format:")
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_handler_bugs_are_not_reported_as_bad_input(self):
        adapter, _ = make_adapter(routed({
            "GET /labels": httpx.Response(200, json={"labels": "not-a-list"}),
        }))

        with pytest.raises(AttributeError):
            await adapter.execute("list_labels", {})
