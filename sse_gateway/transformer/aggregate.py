"""
Non-streaming responses built from a streamed upstream.

Providers are always called in streaming mode. For clients that asked for a single
JSON body, the stream is translated to pivot chunks, folded into one
``chat.completion`` and rendered in the client's format.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, AsyncIterator, Iterable, Optional

from sse_gateway.common.sse import SSEDecoder
from sse_gateway.transformer.stream import parse_event_json
from sse_gateway.translator import Format, Translator, get_translator
from sse_gateway.translator.helpers.finish import openai_to_claude_finish, openai_to_gemini_finish
from sse_gateway.translator.helpers.gemini import try_parse_json
from sse_gateway.translator.response.openai_responses import openai_usage_to_responses
from sse_gateway.translator.response.openai_to_claude import openai_usage_to_claude
from sse_gateway.translator.response.openai_to_gemini import openai_usage_to_gemini
from sse_gateway.translator.state import merge_usage


async def collect_pivot_chunks(
    upstream: AsyncIterator[bytes],
    target: "Format | str",
    translator: Optional[Translator] = None,
) -> list[dict[str, Any]]:
    """Drain a provider SSE stream into pivot (OpenAI chat) chunks."""
    translator = translator or get_translator()
    target = Format.from_string(target)
    state = translator.init_state(Format.OPENAI)
    decoder = SSEDecoder()
    chunks: list[dict[str, Any]] = []

    async for data in upstream:
        for event in decoder.feed(data):
            chunk = parse_event_json(event)
            if chunk is not None:
                chunks.extend(translator.translate_response(target, Format.OPENAI, chunk, state))
    for event in decoder.flush():
        chunk = parse_event_json(event)
        if chunk is not None:
            chunks.extend(translator.translate_response(target, Format.OPENAI, chunk, state))
    chunks.extend(translator.translate_response(target, Format.OPENAI, None, state))
    return chunks


def aggregate_openai_chunks(chunks: Iterable[dict[str, Any]], model: Optional[str] = None) -> dict[str, Any]:
    """Fold chat completion chunks into a single ``chat.completion`` object."""
    completion_id: Optional[str] = None
    created: Optional[int] = None
    content: list[str] = []
    reasoning: list[str] = []
    tool_calls: dict[int, dict[str, Any]] = {}
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None

    for chunk in chunks:
        completion_id = completion_id or chunk.get("id")
        created = created or chunk.get("created")
        model = model or chunk.get("model")
        if chunk.get("usage"):
            usage = merge_usage(usage, chunk["usage"])
        for choice in chunk.get("choices") or []:
            delta = choice.get("delta") or {}
            if isinstance(delta.get("content"), str):
                content.append(delta["content"])
            if isinstance(delta.get("reasoning_content"), str):
                reasoning.append(delta["reasoning_content"])
            for tc in delta.get("tool_calls") or []:
                entry = tool_calls.setdefault(
                    tc.get("index", 0),
                    {"id": "", "type": "function", "function": {"name": "", "arguments": ""}},
                )
                if tc.get("id"):
                    entry["id"] = tc["id"]
                fn = tc.get("function") or {}
                if fn.get("name"):
                    entry["function"]["name"] = fn["name"]
                if fn.get("arguments"):
                    entry["function"]["arguments"] += fn["arguments"]
            if choice.get("finish_reason"):
                finish_reason = choice["finish_reason"]

    message: dict[str, Any] = {"role": "assistant", "content": "".join(content) or None}
    if reasoning:
        message["reasoning_content"] = "".join(reasoning)
    if tool_calls:
        message["tool_calls"] = [tool_calls[i] for i in sorted(tool_calls)]

    completion: dict[str, Any] = {
        "id": completion_id or f"chatcmpl-{uuid.uuid4().hex}",
        "object": "chat.completion",
        "created": created or int(time.time()),
        "model": model or "",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason or "stop"}],
    }
    if usage:
        completion["usage"] = usage
    return completion


def _to_claude(completion: dict[str, Any]) -> dict[str, Any]:
    choice = completion["choices"][0]
    message = choice["message"]
    content: list[dict[str, Any]] = []
    if message.get("reasoning_content"):
        content.append({"type": "thinking", "thinking": message["reasoning_content"], "signature": ""})
    if message.get("content"):
        content.append({"type": "text", "text": message["content"]})
    for tc in message.get("tool_calls") or []:
        args = try_parse_json(tc["function"]["arguments"] or "{}")
        content.append(
            {
                "type": "tool_use",
                "id": tc["id"],
                "name": tc["function"]["name"],
                "input": args if isinstance(args, dict) else {},
            }
        )
    return {
        "id": f"msg_{completion['id'].removeprefix('chatcmpl-')}",
        "type": "message",
        "role": "assistant",
        "model": completion["model"],
        "content": content,
        "stop_reason": openai_to_claude_finish(choice.get("finish_reason")),
        "stop_sequence": None,
        "usage": openai_usage_to_claude(completion.get("usage")),
    }


def _to_responses(completion: dict[str, Any]) -> dict[str, Any]:
    choice = completion["choices"][0]
    message = choice["message"]
    response_id = f"resp_{completion['id'].removeprefix('chatcmpl-')}"
    output: list[dict[str, Any]] = []
    if message.get("reasoning_content"):
        output.append(
            {
                "id": f"rs_{response_id}_{len(output)}",
                "type": "reasoning",
                "summary": [{"type": "summary_text", "text": message["reasoning_content"]}],
            }
        )
    if message.get("content"):
        output.append(
            {
                "id": f"msg_{response_id}_{len(output)}",
                "type": "message",
                "role": "assistant",
                "status": "completed",
                "content": [{"type": "output_text", "annotations": [], "text": message["content"]}],
            }
        )
    for tc in message.get("tool_calls") or []:
        output.append(
            {
                "id": f"fc_{tc['id']}",
                "type": "function_call",
                "call_id": tc["id"],
                "name": tc["function"]["name"],
                "arguments": tc["function"]["arguments"],
                "status": "completed",
            }
        )
    response: dict[str, Any] = {
        "id": response_id,
        "object": "response",
        "created_at": completion["created"],
        "status": "incomplete" if choice.get("finish_reason") == "length" else "completed",
        "model": completion["model"],
        "output": output,
    }
    usage = openai_usage_to_responses(completion.get("usage"))
    if usage:
        response["usage"] = usage
    return response


def _to_gemini(completion: dict[str, Any]) -> dict[str, Any]:
    choice = completion["choices"][0]
    message = choice["message"]
    parts: list[dict[str, Any]] = []
    if message.get("reasoning_content"):
        parts.append({"text": message["reasoning_content"], "thought": True})
    if message.get("content"):
        parts.append({"text": message["content"]})
    for tc in message.get("tool_calls") or []:
        args = try_parse_json(tc["function"]["arguments"] or "{}")
        parts.append(
            {"functionCall": {"id": tc["id"], "name": tc["function"]["name"], "args": args if isinstance(args, dict) else {}}}
        )
    result: dict[str, Any] = {
        "candidates": [
            {
                "content": {"role": "model", "parts": parts},
                "finishReason": openai_to_gemini_finish(choice.get("finish_reason")),
                "index": 0,
            }
        ],
        "modelVersion": completion["model"],
    }
    usage = openai_usage_to_gemini(completion.get("usage"))
    if usage:
        result["usageMetadata"] = usage
    return result


def render_completion(completion: dict[str, Any], fmt: "Format | str") -> dict[str, Any]:
    """Render a ``chat.completion`` as the non-streaming body of ``fmt``."""
    fmt = Format.from_string(fmt)
    if fmt == Format.CLAUDE:
        return _to_claude(completion)
    if fmt == Format.OPENAI_RESPONSES:
        return _to_responses(completion)
    if fmt in (Format.GEMINI, Format.GEMINI_CLI, Format.ANTIGRAVITY):
        return _to_gemini(completion)
    return completion
