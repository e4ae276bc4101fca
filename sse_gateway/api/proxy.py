"""
Proxy API

Client-facing endpoints for the OpenAI, Anthropic and Responses wire formats.
"""

import asyncio
import contextlib
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from sse_gateway.api.deps import ChatServiceDep
from sse_gateway.common.errors import ValidationError
from sse_gateway.domain.chat_result import ChatResult
from sse_gateway.translator import Format

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Proxy"])

# Seconds between client disconnect checks while waiting on upstream
DISCONNECT_POLL_INTERVAL = 0.5


async def _read_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError(message="Request body must be valid JSON", code="invalid_json")
    if not isinstance(body, dict):
        raise ValidationError(message="Request body must be a JSON object", code="invalid_json")
    return body


async def _watch_disconnect(request: Request, signal: asyncio.Event) -> None:
    while not signal.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected: path=%s", request.url.path)
            signal.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


def _to_response(result: ChatResult) -> Response:
    if result.is_stream:
        return StreamingResponse(
            result.stream,
            status_code=result.status_code,
            headers=result.headers,
            media_type="text/event-stream",
        )
    content = result.body
    if isinstance(content, (dict, list)):
        return JSONResponse(content=content, status_code=result.status_code, headers=result.headers)
    return Response(content=content, status_code=result.status_code, headers=result.headers)


async def _handle_proxy_request(
    request: Request,
    service: ChatServiceDep,
    source_format: Format,
    body: dict[str, Any],
) -> Response:
    """
    Handle generic proxy request logic

    The signal fires when the client goes away before the upstream answers, aborting
    the in-flight call and any backoff sleep.
    """
    signal = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, signal))
    try:
        result = await service.handle_chat(body, source_format, signal)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    if not result.ok:
        logger.warning(
            "Request failed: format=%s model=%s status=%s",
            source_format.value,
            body.get("model"),
            result.status_code,
        )
    return _to_response(result)


@router.post("/v1/chat/completions")
async def chat_completions(request: Request, service: ChatServiceDep):
    """
    OpenAI Chat Completions API Proxy
    """
    body = await _read_body(request)
    return await _handle_proxy_request(request, service, Format.OPENAI, body)


@router.post("/v1/messages")
async def messages(request: Request, service: ChatServiceDep):
    """
    Anthropic Messages API Proxy
    """
    body = await _read_body(request)
    return await _handle_proxy_request(request, service, Format.CLAUDE, body)


@router.post("/v1/responses")
async def responses(request: Request, service: ChatServiceDep):
    """
    OpenAI Responses API Proxy

    Responses clients are always answered with an event stream.
    """
    body = await _read_body(request)
    body["stream"] = True
    return await _handle_proxy_request(request, service, Format.OPENAI_RESPONSES, body)
