"""
Chat Service Tests

Providers are faked with httpx.MockTransport; accounts live in an in-memory store.
"""

import json

import httpx
import pytest

from sse_gateway.domain.account import Account, Credentials
from sse_gateway.domain.combo import ComboDefinition
from sse_gateway.services.account_store import InMemoryAccountStore
from sse_gateway.services.chat import ChatService, parse_model
from sse_gateway.common.errors import ValidationError


def _sse(*events, named=False):
    frames = []
    for event in events:
        prefix = f"event: {event['type']}\n" if named else ""
        frames.append(f"{prefix}data: {json.dumps(event)}\n\n")
    return "".join(frames).encode()


CLAUDE_STREAM = _sse(
    {"type": "message_start", "message": {"id": "msg_1", "model": "claude-haiku", "usage": {"input_tokens": 5}}},
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi there"}},
    {"type": "content_block_stop", "index": 0},
    {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 2}},
    {"type": "message_stop"},
    named=True,
)

GEMINI_STREAM = _sse(
    {"response": {"responseId": "g1", "candidates": [{"content": {"parts": [{"text": "Bonjour"}]}, "finishReason": "STOP"}],
                  "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 1, "totalTokenCount": 5}}},
)

OPENAI_BODY = {"model": "claude/claude-haiku", "messages": [{"role": "user", "content": "hello"}], "stream": True}


def _service(handler, accounts, combos=None):
    store = InMemoryAccountStore(accounts=accounts, combos=combos)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatService(store, client=client), store


def _claude_account(account_id):
    return Account(id=account_id, provider="claude", credentials=Credentials(api_key=f"key-{account_id}"))


class FailingStream(httpx.AsyncByteStream):
    """Response body that breaks mid-read."""

    def __init__(self):
        self.closed = False

    async def __aiter__(self):
        raise httpx.ReadError("connection reset")
        yield b""

    async def aclose(self):
        self.closed = True


async def _read(stream):
    return b"".join([chunk async for chunk in stream])


class TestParseModel:
    def test_aliases(self):
        assert parse_model("ag/gemini-3-pro") == ("antigravity", "gemini-3-pro")
        assert parse_model("anthropic/claude-x") == ("claude", "claude-x")
        assert parse_model("openai/org/model") == ("openai", "org/model")

    def test_invalid(self):
        with pytest.raises(ValidationError):
            parse_model("no-provider")
        with pytest.raises(ValidationError):
            parse_model("mystery/model")


class TestHandleSingleModel:
    @pytest.mark.asyncio
    async def test_stream_success_is_translated(self):
        service, store = _service(lambda request: httpx.Response(200, content=CLAUDE_STREAM), [_claude_account("c1")])

        result = await service.handle_chat(OPENAI_BODY, "openai")

        assert result.status_code == 200
        assert result.headers["Content-Type"] == "text/event-stream"
        data = await _read(result.stream)
        assert data.endswith(b"data: [DONE]\n\n")
        chunks = [json.loads(line[6:]) for line in data.decode().split("\n\n") if line.startswith("data: {")]
        assert "".join(c["choices"][0]["delta"].get("content") or "" for c in chunks) == "Hi there"
        assert chunks[-1]["usage"]["total_tokens"] == 7

    @pytest.mark.asyncio
    async def test_rate_limited_account_is_cooled_and_rotated(self):
        keys = []

        def handler(request):
            keys.append(request.headers["x-api-key"])
            if request.headers["x-api-key"] == "key-c1":
                return httpx.Response(429, json={"error": {"message": "Too many requests"}})
            return httpx.Response(200, content=CLAUDE_STREAM)

        service, store = _service(handler, [_claude_account("c1"), _claude_account("c2")])
        result = await service.handle_chat(OPENAI_BODY, "openai")

        assert result.status_code == 200
        assert keys == ["key-c1", "key-c2"]
        c1 = store.get("c1")
        assert c1.backoff_level == 1
        assert c1.rate_limited_until is not None
        assert c1.last_error.status == 429
        assert store.available("claude")[0].id == "c2"

    @pytest.mark.asyncio
    async def test_success_resets_account(self):
        account = _claude_account("c1").model_copy(update={"backoff_level": 4, "status": "error"})
        service, store = _service(lambda request: httpx.Response(200, content=CLAUDE_STREAM), [account])
        await service.handle_chat(OPENAI_BODY, "openai")
        assert store.get("c1").backoff_level == 0
        assert store.get("c1").status == "active"

    @pytest.mark.asyncio
    async def test_hard_client_error_is_returned_without_rotation(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": {"message": "messages: field required"}})

        service, store = _service(handler, [_claude_account("c1"), _claude_account("c2")])
        result = await service.handle_chat(OPENAI_BODY, "openai")

        assert result.status_code == 400
        assert result.error_text() == "messages: field required"
        assert len(calls) == 1
        assert store.get("c1").rate_limited_until is None

    @pytest.mark.asyncio
    async def test_all_accounts_failing_returns_last_error(self):
        service, store = _service(lambda request: httpx.Response(503, text="overloaded"), [_claude_account("c1")])
        result = await service.handle_chat(OPENAI_BODY, "openai")
        assert result.status_code == 503
        assert result.error_text() == "overloaded"

    @pytest.mark.asyncio
    async def test_network_error_rotates(self):
        def handler(request):
            if request.headers["x-api-key"] == "key-c1":
                raise httpx.ConnectError("refused")
            return httpx.Response(200, content=CLAUDE_STREAM)

        service, store = _service(handler, [_claude_account("c1"), _claude_account("c2")])
        result = await service.handle_chat(OPENAI_BODY, "openai")
        assert result.status_code == 200
        assert store.get("c1").last_error.status == 502

    @pytest.mark.asyncio
    async def test_error_body_read_failure_closes_response_and_rotates(self):
        streams = []

        def handler(request):
            if request.headers["x-api-key"] == "key-c1":
                stream = FailingStream()
                streams.append(stream)
                return httpx.Response(500, stream=stream)
            return httpx.Response(200, content=CLAUDE_STREAM)

        service, store = _service(handler, [_claude_account("c1"), _claude_account("c2")])
        result = await service.handle_chat(OPENAI_BODY, "openai")

        assert result.status_code == 200
        assert streams[0].closed is True
        assert store.get("c1").last_error.status == 500

    @pytest.mark.asyncio
    async def test_no_accounts(self):
        service, _ = _service(lambda request: httpx.Response(200), [])
        result = await service.handle_chat(OPENAI_BODY, "openai")
        assert result.status_code == 503

    @pytest.mark.asyncio
    async def test_invalid_model(self):
        service, _ = _service(lambda request: httpx.Response(200), [])
        result = await service.handle_chat({**OPENAI_BODY, "model": "unknown/model"}, "openai")
        assert result.status_code == 400

    @pytest.mark.asyncio
    async def test_non_stream_request_is_aggregated(self):
        account = Account(id="g1", provider="gemini", credentials=Credentials(api_key="gk"))
        service, _ = _service(lambda request: httpx.Response(200, content=GEMINI_STREAM), [account])
        body = {"model": "gemini/gemini-2.5-flash", "max_tokens": 100, "messages": [{"role": "user", "content": "salut"}]}

        result = await service.handle_chat(body, "claude")

        assert result.status_code == 200
        assert result.is_stream is False
        assert result.body["type"] == "message"
        assert result.body["content"] == [{"type": "text", "text": "Bonjour"}]
        assert result.body["stop_reason"] == "end_turn"
        assert result.body["usage"] == {"input_tokens": 4, "output_tokens": 1}

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_once_and_retries(self):
        auth_headers = []

        def handler(request):
            if request.url.host == "oauth2.googleapis.com":
                return httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600})
            auth_headers.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer stale":
                return httpx.Response(401, json={"error": {"message": "expired"}})
            return httpx.Response(200, content=GEMINI_STREAM)

        account = Account(
            id="ag1",
            provider="antigravity",
            credentials=Credentials(access_token="stale", refresh_token="rt", project_id="p"),
        )
        service, store = _service(handler, [account])
        body = {"model": "ag/gemini-3-pro", "messages": [{"role": "user", "content": "hi"}], "stream": True}

        result = await service.handle_chat(body, "openai")
        await _read(result.stream)

        assert result.status_code == 200
        assert auth_headers == ["Bearer stale", "Bearer fresh"]
        updated = store.get("ag1").credentials
        assert updated.access_token == "fresh"
        assert updated.refresh_token == "rt"
        assert updated.expires_at is not None


class TestCombo:
    @pytest.mark.asyncio
    async def test_fast_combo_uses_second_model(self):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            if request.url.host == "generativelanguage.googleapis.com":
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, content=CLAUDE_STREAM)

        accounts = [
            Account(id="g1", provider="gemini", credentials=Credentials(api_key="gk")),
            _claude_account("c1"),
        ]
        combos = [ComboDefinition(name="fast-combo", models=["gemini/gemini-2.5-flash", "claude/claude-haiku"])]
        service, _ = _service(handler, accounts, combos)

        result = await service.handle_chat({**OPENAI_BODY, "model": "fast-combo"}, "openai")

        assert result.status_code == 200
        assert hosts == ["generativelanguage.googleapis.com", "api.anthropic.com"]
