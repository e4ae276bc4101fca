"""
Upstream Executor Base Class

An executor sends one translated request to a provider, walking an ordered list of
fallback base URLs. The generic loop advances on transient statuses and network
errors; providers override the URL, header and body hooks.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Optional, TypeVar

import httpx

from sse_gateway.common.errors import ExecutorExhaustedError, RequestAbortedError, TranslationError
from sse_gateway.config import Settings, get_settings
from sse_gateway.translator.formats import Format
from sse_gateway.translator.types import ProviderRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses worth another fallback URL
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass
class ExecutorResult:
    """
    Response returned by an executor.

    ``response`` is opened in streaming mode; the caller reads it with
    ``aiter_bytes()`` and must ``aclose()`` it.
    """

    response: httpx.Response
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return self.response.status_code


class BaseExecutor:
    """
    Provider executor base.

    Subclasses set ``provider``, ``accepts`` (the request formats they can send) and
    override ``get_base_urls``/``build_url``/``build_headers``/``transform_request``.
    """

    provider: str = ""
    accepts: frozenset = frozenset()

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    def get_base_urls(self) -> list[str]:
        return []

    def get_fallback_count(self) -> int:
        return max(len(self.get_base_urls()), 1)

    def build_url(self, model: str, stream: bool, url_index: int = 0) -> str:
        raise NotImplementedError

    def build_headers(self, credentials: dict[str, Any], stream: bool = True) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = credentials.get("access_token") or credentials.get("api_key")
        if token:
            headers["Authorization"] = f"Bearer {token}"
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
        """Return the body to send. Rejects requests written in a format this provider does not speak."""
        if isinstance(request, ProviderRequest):
            if self.accepts and request.format not in self.accepts:
                raise TranslationError(
                    f"{self.provider} cannot send a {request.format.value} request",
                    source_format=request.format.value,
                    target_format=self.provider,
                )
            return dict(request.body)
        return dict(request)

    def should_retry(self, status: int, url_index: int) -> bool:
        """Transient status with another fallback URL left."""
        return status in TRANSIENT_STATUSES and url_index + 1 < self.get_fallback_count()

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def oauth_client(self) -> Optional[tuple[str, str]]:
        """(client_id, client_secret) for OAuth refresh, or None when unsupported."""
        return None

    async def refresh_credentials(self, credentials: dict[str, Any]) -> Optional[dict[str, Any]]:
        """
        Refresh an OAuth access token.

        Failures never raise; they return None and the caller keeps the old credentials.
        """
        oauth = self.oauth_client()
        refresh_token = credentials.get("refresh_token")
        if oauth is None or not refresh_token:
            return None

        client_id, client_secret = oauth
        try:
            response = await self.client.post(
                self.settings.GOOGLE_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Accept": "application/json"},
            )
            if response.status_code >= 400:
                logger.warning(
                    "Token refresh failed: provider=%s status=%s", self.provider, response.status_code
                )
                return None
            tokens = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Token refresh error: provider=%s error=%s", self.provider, e)
            return None

        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            return None

        logger.info("Token refreshed: provider=%s", self.provider)
        return {
            "access_token": tokens["access_token"],
            "refresh_token": tokens.get("refresh_token") or refresh_token,
            "expires_in": tokens.get("expires_in"),
            "project_id": credentials.get("project_id"),
        }

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _abortable(self, awaitable: Awaitable[T], signal: Optional[asyncio.Event]) -> T:
        """Await ``awaitable`` unless ``signal`` fires first, then raise RequestAbortedError."""
        if signal is None:
            return await awaitable
        task = asyncio.ensure_future(awaitable)
        if signal.is_set():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            raise RequestAbortedError()

        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise RequestAbortedError()

    async def sleep(self, ms: float, signal: Optional[asyncio.Event] = None) -> None:
        await self._abortable(asyncio.sleep(ms / 1000), signal)

    async def send(
        self,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any],
        signal: Optional[asyncio.Event] = None,
    ) -> httpx.Response:
        logger.debug(
            "Upstream request: provider=%s url=%s body=%s",
            self.provider,
            url,
            json.dumps(body, ensure_ascii=False)[:2000],
        )
        request = self.client.build_request("POST", url, headers=headers, json=body)
        return await self._abortable(self.client.send(request, stream=True), signal)

    async def execute(
        self,
        model: str,
        body: "ProviderRequest | dict[str, Any]",
        stream: bool = True,
        credentials: Optional[dict[str, Any]] = None,
        signal: Optional[asyncio.Event] = None,
    ) -> ExecutorResult:
        """
        Send the request, advancing through fallback URLs on transient failures.

        Raises:
            RequestAbortedError: The signal fired during the call
            httpx.RequestError: Network failure on the last fallback URL
            ExecutorExhaustedError: No URL produced a returnable response
        """
        credentials = credentials or {}
        fallback_count = self.get_fallback_count()
        last_status = 0

        for url_index in range(fallback_count):
            url = self.build_url(model, stream, url_index)
            headers = self.build_headers(credentials, stream)
            transformed = self.transform_request(model, body, stream, credentials)

            try:
                response = await self.send(url, headers, transformed, signal)
            except httpx.RequestError as e:
                if url_index + 1 < fallback_count:
                    logger.debug("Network error on %s, trying fallback %d: %s", url, url_index + 1, e)
                    continue
                raise

            if self.should_retry(response.status_code, url_index):
                logger.debug(
                    "Status %s on %s, trying fallback %d", response.status_code, url, url_index + 1
                )
                last_status = response.status_code
                await response.aclose()
                continue

            return ExecutorResult(response=response, url=url, headers=headers, body=transformed)

        raise ExecutorExhaustedError(fallback_count, last_status)
