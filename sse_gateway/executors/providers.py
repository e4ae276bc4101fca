"""
Executors for API-key style providers (single base URL each).
"""

from __future__ import annotations

from typing import Any

from sse_gateway.executors.base import BaseExecutor
from sse_gateway.translator.formats import Format
from sse_gateway.translator.types import ProviderRequest


class GeminiExecutor(BaseExecutor):
    provider = "gemini"
    accepts = frozenset({Format.GEMINI})

    def get_base_urls(self) -> list[str]:
        return [self.settings.GEMINI_BASE_URL]

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        suffix = "streamGenerateContent?alt=sse" if stream else "generateContent"
        return f"{self.get_base_urls()[0].rstrip('/')}/v1beta/models/{model}:{suffix}"

    def build_headers(self, credentials: dict[str, Any], stream: bool = True) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if credentials.get("api_key"):
            headers["x-goog-api-key"] = credentials["api_key"]
        elif credentials.get("access_token"):
            headers["Authorization"] = f"Bearer {credentials['access_token']}"
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers


class ClaudeExecutor(BaseExecutor):
    provider = "claude"
    accepts = frozenset({Format.CLAUDE})

    def get_base_urls(self) -> list[str]:
        return [self.settings.CLAUDE_BASE_URL]

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        return f"{self.get_base_urls()[0].rstrip('/')}/v1/messages"

    def build_headers(self, credentials: dict[str, Any], stream: bool = True) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": self.settings.CLAUDE_API_VERSION,
        }
        if credentials.get("api_key"):
            headers["x-api-key"] = credentials["api_key"]
        elif credentials.get("access_token"):
            headers["Authorization"] = f"Bearer {credentials['access_token']}"
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def transform_request(
        self,
        model: str,
        request: "ProviderRequest | dict[str, Any]",
        stream: bool,
        credentials: dict[str, Any],
    ) -> dict[str, Any]:
        body = super().transform_request(model, request, stream, credentials)
        body["model"] = model
        body["stream"] = stream
        return body


class OpenAIExecutor(BaseExecutor):
    provider = "openai"
    accepts = frozenset({Format.OPENAI})

    def get_base_urls(self) -> list[str]:
        return [self.settings.OPENAI_BASE_URL]

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        return f"{self.get_base_urls()[0].rstrip('/')}/v1/chat/completions"

    def transform_request(
        self,
        model: str,
        request: "ProviderRequest | dict[str, Any]",
        stream: bool,
        credentials: dict[str, Any],
    ) -> dict[str, Any]:
        body = super().transform_request(model, request, stream, credentials)
        body["model"] = model
        body["stream"] = stream
        if stream:
            # Ask for a trailing usage chunk
            body["stream_options"] = {**(body.get("stream_options") or {}), "include_usage": True}
        return body


class OpenAIResponsesExecutor(BaseExecutor):
    provider = "openai-responses"
    accepts = frozenset({Format.OPENAI_RESPONSES})

    def get_base_urls(self) -> list[str]:
        return [self.settings.OPENAI_RESPONSES_BASE_URL]

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        return f"{self.get_base_urls()[0].rstrip('/')}/v1/responses"

    def transform_request(
        self,
        model: str,
        request: "ProviderRequest | dict[str, Any]",
        stream: bool,
        credentials: dict[str, Any],
    ) -> dict[str, Any]:
        body = super().transform_request(model, request, stream, credentials)
        body["model"] = model
        body["stream"] = True
        body["store"] = False
        body.setdefault("instructions", "")
        return body
