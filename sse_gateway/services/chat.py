"""
Chat Service Module

Orchestrates one client request: combo expansion, account rotation, translation,
upstream execution and response shaping.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, AsyncGenerator, Optional

import httpx

from sse_gateway.common.errors import ExecutorExhaustedError, ValidationError
from sse_gateway.common.retry_after import extract_error_message
from sse_gateway.common.time import utc_now
from sse_gateway.domain.account import Account
from sse_gateway.domain.chat_result import ChatResult
from sse_gateway.executors import BaseExecutor, ExecutorResult, get_executor
from sse_gateway.services.account_fallback import (
    apply_error_state,
    check_fallback_error,
    reset_account_state,
)
from sse_gateway.services.account_store import InMemoryAccountStore
from sse_gateway.services.combo import get_combo_models_from_data, handle_combo_chat
from sse_gateway.transformer import (
    StreamingResponseTransformer,
    aggregate_openai_chunks,
    collect_pivot_chunks,
    render_completion,
)
from sse_gateway.translator import Format, Translator, get_translator

logger = logging.getLogger(__name__)

# Wire format spoken by each provider
PROVIDER_FORMATS: dict[str, Format] = {
    "antigravity": Format.ANTIGRAVITY,
    "gemini-cli": Format.GEMINI_CLI,
    "gemini": Format.GEMINI,
    "claude": Format.CLAUDE,
    "openai": Format.OPENAI,
    "openai-responses": Format.OPENAI_RESPONSES,
}

PROVIDER_ALIASES: dict[str, str] = {
    "ag": "antigravity",
    "gc": "gemini-cli",
    "anthropic": "claude",
    "cc": "claude",
    "codex": "openai-responses",
    "cx": "openai-responses",
}

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def parse_model(model_str: str) -> tuple[str, str]:
    """
    Split ``provider/model`` and resolve provider aliases.

    Raises:
        ValidationError: Missing provider prefix or unknown provider
    """
    if not model_str or "/" not in model_str:
        raise ValidationError(
            message=f"Invalid model format: {model_str!r}, expected provider/model",
            code="invalid_model",
        )
    provider, model = model_str.split("/", 1)
    provider = PROVIDER_ALIASES.get(provider.lower(), provider.lower())
    if provider not in PROVIDER_FORMATS:
        raise ValidationError(message=f"Unknown provider: {provider}", code="invalid_model")
    return provider, model


class ChatService:
    """
    Chat Service

    Rotates through a provider's usable accounts in store order. Each failure is
    classified; retryable ones put the account on cooldown and move to the next
    account, hard client errors are returned verbatim.
    """

    def __init__(
        self,
        store: InMemoryAccountStore,
        translator: Optional[Translator] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.translator = translator or get_translator()
        self._client = client
        self._executors: dict[str, BaseExecutor] = {}

    def get_executor(self, provider: str) -> BaseExecutor:
        if provider not in self._executors:
            self._executors[provider] = get_executor(provider, client=self._client)
        return self._executors[provider]

    async def aclose(self) -> None:
        for executor in self._executors.values():
            await executor.aclose()
        self._executors.clear()

    async def handle_chat(
        self,
        body: dict[str, Any],
        source_format: "Format | str",
        signal: Optional[asyncio.Event] = None,
    ) -> ChatResult:
        """Dispatch a client request, expanding combo names first."""
        source = Format.from_string(source_format)
        model_str = body.get("model") or ""
        models = get_combo_models_from_data(model_str, self.store.combos)
        if models:
            logger.info("Resolved combo %s -> %s", model_str, models)

            async def single(combo_body: dict[str, Any], combo_model: str) -> ChatResult:
                return await self.handle_single_model(combo_body, combo_model, source, signal)

            return await handle_combo_chat(body, models, single)
        return await self.handle_single_model(body, model_str, source, signal)

    async def handle_single_model(
        self,
        body: dict[str, Any],
        model_str: str,
        source_format: "Format | str",
        signal: Optional[asyncio.Event] = None,
    ) -> ChatResult:
        source = Format.from_string(source_format)
        try:
            provider, model = parse_model(model_str)
        except ValidationError as e:
            return ChatResult(status_code=400, body=e.to_dict())

        target = PROVIDER_FORMATS[provider]
        client_stream = bool(body.get("stream"))
        executor = self.get_executor(provider)

        tried: set[str] = set()
        last_failure: Optional[ChatResult] = None

        while True:
            candidates = self.store.available(provider, exclude_ids=tried)
            if not candidates:
                break
            account = candidates[0]
            tried.add(account.id)

            result = await self._attempt(executor, account, body, source, target, provider, model, signal)
            status, payload = result

            if isinstance(payload, ExecutorResult):
                await self.store.update(account.id, reset_account_state)
                return await self._success(payload, source, target, model, client_stream)

            error_text = payload
            decision = check_fallback_error(status, error_text, account.backoff_level)
            failure = self._failure(status, error_text)
            if not decision.should_fallback:
                logger.warning(
                    "Hard client error, not rotating: provider=%s account=%s status=%s",
                    provider,
                    account.id,
                    status,
                )
                return failure

            await self.store.update(
                account.id, lambda current: apply_error_state(current, status, error_text)
            )
            logger.warning(
                "Account failed, rotating: provider=%s account=%s status=%s kind=%s cooldown_ms=%s",
                provider,
                account.id,
                status,
                decision.kind.value,
                decision.cooldown_ms,
            )
            last_failure = failure

        if last_failure is not None:
            return last_failure
        return ChatResult.error(503, f"No available accounts for provider {provider}", "service_error")

    async def _attempt(
        self,
        executor: BaseExecutor,
        account: Account,
        body: dict[str, Any],
        source: Format,
        target: Format,
        provider: str,
        model: str,
        signal: Optional[asyncio.Event],
    ) -> tuple[int, "ExecutorResult | str"]:
        """
        Run one account: (status, ExecutorResult) on success, (status, error text) on failure.

        A 401 triggers one credential refresh and retry on the same account.
        """
        credentials = account.credentials.model_dump()
        refreshed = False

        while True:
            request = self.translator.build_provider_request(
                source, target, model, body, stream=True, credentials=credentials, provider=provider
            )
            try:
                result = await executor.execute(model, request, True, credentials, signal)
            except ExecutorExhaustedError as e:
                return e.last_status or 502, e.message
            except httpx.RequestError as e:
                logger.warning("Network error: provider=%s account=%s error=%s", provider, account.id, e)
                return 502, f"Network error: {e}"

            status = result.status_code
            if 200 <= status < 300:
                return status, result

            try:
                await result.response.aread()
                raw = result.response.text
            except httpx.RequestError as e:
                logger.warning("Failed to read error body: provider=%s status=%s error=%s", provider, status, e)
                raw = ""
            finally:
                await result.response.aclose()
            error_text = extract_error_message(raw) or raw[:1000] or str(status)

            if status == 401 and not refreshed:
                refreshed = True
                new_credentials = await executor.refresh_credentials(credentials)
                if new_credentials:
                    credentials = await self._store_credentials(account.id, new_credentials)
                    continue

            return status, error_text

    async def _store_credentials(self, account_id: str, tokens: dict[str, Any]) -> dict[str, Any]:
        update: dict[str, Any] = {
            "access_token": tokens.get("access_token"),
            "refresh_token": tokens.get("refresh_token"),
        }
        if tokens.get("expires_in"):
            update["expires_at"] = utc_now() + timedelta(seconds=int(tokens["expires_in"]))

        def apply(current: Account) -> Account:
            return current.model_copy(
                update={"credentials": current.credentials.model_copy(update=update)}
            )

        updated = await self.store.update(account_id, apply)
        return updated.credentials.model_dump()

    @staticmethod
    def _failure(status: int, error_text: str) -> ChatResult:
        return ChatResult.error(status, error_text)

    async def _success(
        self,
        result: ExecutorResult,
        source: Format,
        target: Format,
        model: str,
        client_stream: bool,
    ) -> ChatResult:
        if client_stream:
            transformer = StreamingResponseTransformer(source, target, model=model, translator=self.translator)
            return ChatResult(
                status_code=200,
                stream=_close_after(transformer.transform(result.response.aiter_bytes()), result.response),
                headers=dict(SSE_HEADERS),
            )

        try:
            chunks = await collect_pivot_chunks(result.response.aiter_bytes(), target, self.translator)
        finally:
            await result.response.aclose()
        completion = aggregate_openai_chunks(chunks, model)
        return ChatResult(status_code=200, body=render_completion(completion, source))


async def _close_after(stream: AsyncGenerator[bytes, None], response: httpx.Response) -> AsyncGenerator[bytes, None]:
    try:
        async for data in stream:
            yield data
    finally:
        await response.aclose()
