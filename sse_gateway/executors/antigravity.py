"""
Antigravity Executor

Cloud Code (sandbox/daily/prod) executor with per-URL rate-limit handling:

- 429/503 with an advertised wait of at most EXECUTOR_MAX_RETRY_AFTER_MS: sleep, same URL
- 429 without any wait: up to EXECUTOR_MAX_AUTO_RETRIES backoffs (2s, 4s, capped), same URL
- otherwise: next fallback URL
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from sse_gateway.common.errors import ExecutorExhaustedError
from sse_gateway.common.retry_after import extract_error_message, parse_quota_reset, parse_retry_headers
from sse_gateway.executors.base import BaseExecutor, ExecutorResult
from sse_gateway.translator.formats import Format
from sse_gateway.translator.helpers.gemini import (
    generate_agent_request_id,
    generate_project_id,
    generate_session_id,
)
from sse_gateway.translator.types import ProviderRequest

logger = logging.getLogger(__name__)


class CloudCodeExecutor(BaseExecutor):
    """Shared Cloud Code (v1internal) URL scheme."""

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        base_urls = self.get_base_urls()
        base_url = base_urls[url_index] if url_index < len(base_urls) else base_urls[0]
        path = "/v1internal:streamGenerateContent?alt=sse" if stream else "/v1internal:generateContent"
        return f"{base_url.rstrip('/')}{path}"


class AntigravityExecutor(CloudCodeExecutor):
    provider = "antigravity"
    accepts = frozenset({Format.ANTIGRAVITY})

    def get_base_urls(self) -> list[str]:
        return list(self.settings.ANTIGRAVITY_BASE_URLS)

    def oauth_client(self) -> Optional[tuple[str, str]]:
        return self.settings.ANTIGRAVITY_CLIENT_ID, self.settings.ANTIGRAVITY_CLIENT_SECRET

    def build_headers(self, credentials: dict[str, Any], stream: bool = True) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credentials.get('access_token', '')}",
            "User-Agent": self.settings.ANTIGRAVITY_USER_AGENT,
        }
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
        inner = dict(body.get("request") or {})
        inner["sessionId"] = inner.get("sessionId") or generate_session_id()
        inner.pop("safetySettings", None)
        if inner.get("tools"):
            inner["toolConfig"] = {"functionCallingConfig": {"mode": "VALIDATED"}}

        return {
            **body,
            "project": credentials.get("project_id") or generate_project_id(),
            "model": model,
            "userAgent": "antigravity",
            "requestType": "agent",
            "requestId": generate_agent_request_id(),
            "request": inner,
        }

    async def _derive_wait_ms(self, response: httpx.Response) -> Optional[int]:
        wait_ms = parse_retry_headers(response.headers)
        if wait_ms:
            return wait_ms
        try:
            await response.aread()
        except httpx.RequestError:
            await response.aclose()
            raise
        return parse_quota_reset(extract_error_message(response.text))

    async def execute(
        self,
        model: str,
        body: "ProviderRequest | dict[str, Any]",
        stream: bool = True,
        credentials: Optional[dict[str, Any]] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> ExecutorResult:
        credentials = credentials or {}
        fallback_count = self.get_fallback_count()
        max_wait_ms = self.settings.EXECUTOR_MAX_RETRY_AFTER_MS
        max_auto_retries = self.settings.EXECUTOR_MAX_AUTO_RETRIES
        max_wait_retries = self.settings.EXECUTOR_MAX_RETRY_AFTER_RETRIES
        auto_retries: dict[int, int] = {}
        wait_retries: dict[int, int] = {}
        last_status = 0

        url_index = 0
        while url_index < fallback_count:
            url = self.build_url(model, stream, url_index)
            headers = self.build_headers(credentials, stream)
            transformed = self.transform_request(model, body, stream, credentials)

            try:
                response = await self.send(url, headers, transformed, signal)
            except httpx.RequestError as e:
                if url_index + 1 < fallback_count:
                    logger.debug("Network error on %s, trying fallback %d: %s", url, url_index + 1, e)
                    url_index += 1
                    continue
                raise

            status = response.status_code
            if status in (429, 503):
                wait_ms = await self._derive_wait_ms(response)

                waited = wait_retries.get(url_index, 0)
                if wait_ms and wait_ms <= max_wait_ms and waited < max_wait_retries:
                    wait_retries[url_index] = waited + 1
                    logger.debug(
                        "%s with retry-after %dms, retry %d/%d on %s", status, wait_ms, waited + 1, max_wait_retries, url
                    )
                    await response.aclose()
                    await self.sleep(wait_ms, signal)
                    continue

                attempts = auto_retries.get(url_index, 0)
                if status == 429 and not wait_ms and attempts < max_auto_retries:
                    attempts += 1
                    auto_retries[url_index] = attempts
                    backoff_ms = min(1000 * (2**attempts), max_wait_ms)
                    logger.debug(
                        "429 auto retry %d/%d after %dms on %s", attempts, max_auto_retries, backoff_ms, url
                    )
                    await response.aclose()
                    await self.sleep(backoff_ms, signal)
                    continue

                logger.debug(
                    "%s, retry-after %s, trying fallback",
                    status,
                    f"not honoured ({wait_ms}ms)" if wait_ms else "missing",
                )
                last_status = status
                if url_index + 1 < fallback_count:
                    await response.aclose()
                    url_index += 1
                    continue

            if self.should_retry(status, url_index):
                logger.debug("Status %s on %s, trying fallback %d", status, url, url_index + 1)
                last_status = status
                await response.aclose()
                url_index += 1
                continue

            return ExecutorResult(response=response, url=url, headers=headers, body=transformed)

        raise ExecutorExhaustedError(fallback_count, last_status)


class GeminiCLIExecutor(CloudCodeExecutor):
    provider = "gemini-cli"
    accepts = frozenset({Format.GEMINI_CLI})

    def get_base_urls(self) -> list[str]:
        return [self.settings.GEMINI_CLI_BASE_URL]

    def oauth_client(self) -> Optional[tuple[str, str]]:
        return self.settings.GEMINI_CLI_CLIENT_ID, self.settings.GEMINI_CLI_CLIENT_SECRET

    def transform_request(
        self,
        model: str,
        request: "ProviderRequest | dict[str, Any]",
        stream: bool,
        credentials: dict[str, Any],
    ) -> dict[str, Any]:
        body = super().transform_request(model, request, stream, credentials)
        if credentials.get("project_id"):
            body["project"] = credentials["project_id"]
        body["model"] = model
        return body
