"""
Antigravity Executor Tests

Upstream calls go through httpx.MockTransport; sleeps are replaced with AsyncMock so
backoff schedules can be asserted without waiting.
"""

import asyncio
from unittest.mock import AsyncMock, call

import httpx
import pytest

from sse_gateway.common.errors import RequestAbortedError, TranslationError
from sse_gateway.config import Settings
from sse_gateway.executors import AntigravityExecutor, GeminiCLIExecutor
from sse_gateway.translator import Format, ProviderRequest

BASE_URLS = ["https://sandbox.test", "https://daily.test", "https://prod.test"]

BODY = ProviderRequest(
    format=Format.ANTIGRAVITY,
    body={
        "project": "p",
        "model": "gemini-3-pro",
        "request": {
            "contents": [{"role": "user", "parts": [{"text": "hi"}]}],
            "safetySettings": [{"category": "X", "threshold": "OFF"}],
            "tools": [{"functionDeclarations": [{"name": "f"}]}],
        },
    },
)


def _executor(handler, base_urls=None):
    settings = Settings(ANTIGRAVITY_BASE_URLS=base_urls or BASE_URLS)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = AntigravityExecutor(client=client, settings=settings)
    executor.sleep = AsyncMock()
    return executor


class Recorder:
    """Replays canned responses and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def hosts(self):
        return [r.url.host for r in self.requests]


class TestFallbackUrls:
    @pytest.mark.asyncio
    async def test_503_503_200_makes_three_requests(self):
        recorder = Recorder(httpx.Response(503), httpx.Response(503), httpx.Response(200, text="data: {}\n\n"))
        executor = _executor(recorder)

        result = await executor.execute("gemini-3-pro", BODY, True, {"access_token": "tok"})

        assert result.status_code == 200
        assert recorder.hosts == ["sandbox.test", "daily.test", "prod.test"]
        assert result.url == "https://prod.test/v1internal:streamGenerateContent?alt=sse"
        executor.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_last_url_failure_is_returned_to_caller(self):
        recorder = Recorder(httpx.Response(500), httpx.Response(500), httpx.Response(500, json={"error": "x"}))
        result = await _executor(recorder).execute("m", BODY)
        assert result.status_code == 500
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_hard_error_is_not_retried(self):
        recorder = Recorder(httpx.Response(400, json={"error": {"message": "bad"}}))
        result = await _executor(recorder).execute("m", BODY)
        assert result.status_code == 400
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error_advances_to_next_url(self):
        recorder = Recorder(httpx.ConnectError("refused"), httpx.Response(200))
        result = await _executor(recorder).execute("m", BODY)
        assert result.status_code == 200
        assert recorder.hosts == ["sandbox.test", "daily.test"]

    @pytest.mark.asyncio
    async def test_network_error_on_last_url_propagates(self):
        recorder = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(httpx.ConnectError):
            await _executor(recorder, base_urls=["https://only.test"]).execute("m", BODY)


class TestRateLimits:
    @pytest.mark.asyncio
    async def test_short_retry_after_retries_same_url(self):
        recorder = Recorder(httpx.Response(429, headers={"Retry-After": "2"}), httpx.Response(200))
        executor = _executor(recorder)

        result = await executor.execute("m", BODY)

        assert result.status_code == 200
        assert recorder.hosts == ["sandbox.test", "sandbox.test"]
        executor.sleep.assert_awaited_once_with(2000, None)

    @pytest.mark.asyncio
    async def test_quota_message_wait_retries_same_url(self):
        recorder = Recorder(
            httpx.Response(503, json={"error": {"message": "Quota will reset after 3s."}}),
            httpx.Response(200),
        )
        executor = _executor(recorder)
        await executor.execute("m", BODY)
        assert recorder.hosts == ["sandbox.test", "sandbox.test"]
        executor.sleep.assert_awaited_once_with(3000, None)

    @pytest.mark.asyncio
    async def test_long_retry_after_moves_to_next_url(self):
        recorder = Recorder(httpx.Response(429, headers={"Retry-After": "60"}), httpx.Response(200))
        executor = _executor(recorder)
        await executor.execute("m", BODY)
        assert recorder.hosts == ["sandbox.test", "daily.test"]
        executor.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_429_without_wait_auto_retries_with_backoff(self):
        recorder = Recorder(
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200),
        )
        executor = _executor(recorder)

        result = await executor.execute("m", BODY)

        assert result.status_code == 200
        assert recorder.hosts == ["sandbox.test", "sandbox.test", "sandbox.test", "daily.test"]
        assert executor.sleep.await_args_list == [call(2000, None), call(4000, None)]

    @pytest.mark.asyncio
    async def test_repeated_short_retry_after_is_capped_per_url(self):
        recorder = Recorder(
            *[httpx.Response(503, headers={"Retry-After": "1"}) for _ in range(4)],
            httpx.Response(200),
        )
        executor = _executor(recorder)

        result = await executor.execute("m", BODY)

        assert result.status_code == 200
        assert recorder.hosts == ["sandbox.test"] * 4 + ["daily.test"]
        assert executor.sleep.await_args_list == [call(1000, None)] * 3


class TestCancellation:
    @pytest.mark.asyncio
    async def test_set_signal_aborts_before_request(self):
        recorder = Recorder(httpx.Response(200))
        signal = asyncio.Event()
        signal.set()
        with pytest.raises(RequestAbortedError):
            await _executor(recorder).execute("m", BODY, True, {}, signal)
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_signal_interrupts_sleep(self):
        executor = AntigravityExecutor(client=httpx.AsyncClient(transport=httpx.MockTransport(Recorder())))
        signal = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, signal.set)
        with pytest.raises(RequestAbortedError):
            await executor.sleep(60_000, signal)


class TestRequestShaping:
    def test_transform_request_envelope(self):
        executor = AntigravityExecutor(settings=Settings())
        body = executor.transform_request("gemini-3-pro", BODY, True, {"project_id": "proj-9"})
        assert body["project"] == "proj-9"
        assert body["userAgent"] == "antigravity"
        assert body["requestType"] == "agent"
        assert body["requestId"].startswith("agent-")
        assert body["request"]["sessionId"]
        assert "safetySettings" not in body["request"]
        assert body["request"]["toolConfig"] == {"functionCallingConfig": {"mode": "VALIDATED"}}
        # the caller's body is not modified
        assert "safetySettings" in BODY.body["request"]

    def test_transform_request_rejects_other_formats(self):
        executor = AntigravityExecutor(settings=Settings())
        with pytest.raises(TranslationError):
            executor.transform_request("m", ProviderRequest(format=Format.CLAUDE, body={}), True, {})

    def test_headers(self):
        executor = AntigravityExecutor(settings=Settings(ANTIGRAVITY_USER_AGENT="ua/1"))
        headers = executor.build_headers({"access_token": "tok"})
        assert headers["Authorization"] == "Bearer tok"
        assert headers["User-Agent"] == "ua/1"
        assert headers["Accept"] == "text/event-stream"

    def test_gemini_cli_sets_project_and_model(self):
        executor = GeminiCLIExecutor(settings=Settings(GEMINI_CLI_BASE_URL="https://cli.test"))
        request = ProviderRequest(format=Format.GEMINI_CLI, body={"project": "x", "request": {}})
        body = executor.transform_request("gemini-2.5-pro", request, True, {"project_id": "mine"})
        assert body["project"] == "mine"
        assert body["model"] == "gemini-2.5-pro"
        assert executor.build_url("gemini-2.5-pro", False) == "https://cli.test/v1internal:generateContent"
