"""
Claude Messages stream -> OpenAI chat chunks.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sse_gateway.translator.helpers.finish import claude_to_openai_finish
from sse_gateway.translator.helpers.openai import create_openai_chunk
from sse_gateway.translator.state import StreamState, ToolCallBuffer, UpstreamState, merge_usage

logger = logging.getLogger(__name__)


def claude_usage_to_openai(usage: Any) -> dict[str, Any]:
    if not isinstance(usage, dict):
        return {}
    cache_read = usage.get("cache_read_input_tokens") or 0
    cache_creation = usage.get("cache_creation_input_tokens") or 0
    prompt = (usage.get("input_tokens") or 0) + cache_read + cache_creation
    completion = usage.get("output_tokens") or 0
    out: dict[str, Any] = {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
    }
    if cache_read:
        out["prompt_tokens_details"] = {"cached_tokens": cache_read}
    return out


def _chunk(up: UpstreamState, delta: dict[str, Any], finish: Optional[str] = None, usage=None) -> dict[str, Any]:
    return create_openai_chunk(up.message_id, up.model, up.created, delta, finish, usage)


def _finish(up: UpstreamState) -> list[dict[str, Any]]:
    if up.finish_sent or not up.role_sent:
        return []
    up.finish_sent = True
    usage = claude_usage_to_openai(up.usage) if up.usage else None
    return [_chunk(up, {}, up.finish_reason or "stop", usage)]


def _ensure_started(up: UpstreamState, results: list[dict[str, Any]]) -> None:
    if up.message_id is None:
        up.message_id = f"chatcmpl-{uuid.uuid4().hex}"
    if not up.role_sent:
        up.role_sent = True
        results.append(_chunk(up, {"role": "assistant", "content": ""}))


def claude_to_openai_response(chunk: Optional[dict[str, Any]], state: StreamState) -> list[dict[str, Any]]:
    up = state.upstream
    if chunk is None:
        return _finish(up)

    event_type = chunk.get("type")
    results: list[dict[str, Any]] = []

    if event_type == "message_start":
        message = chunk.get("message") or {}
        if message.get("id"):
            up.message_id = f"chatcmpl-{message['id']}"
        up.model = message.get("model") or up.model
        up.usage = merge_usage(up.usage, message.get("usage"))
        _ensure_started(up, results)

    elif event_type == "content_block_start":
        _ensure_started(up, results)
        block = chunk.get("content_block") or {}
        if block.get("type") == "tool_use":
            index = up.tool_counter
            up.tool_counter += 1
            up.tool_blocks[chunk.get("index")] = ToolCallBuffer(
                id=block.get("id") or f"call_{uuid.uuid4().hex[:24]}",
                name=block.get("name") or "",
                block_index=index,
            )
            buffer = up.tool_blocks[chunk.get("index")]
            results.append(
                _chunk(
                    up,
                    {
                        "tool_calls": [
                            {
                                "index": index,
                                "id": buffer.id,
                                "type": "function",
                                "function": {"name": buffer.name, "arguments": ""},
                            }
                        ]
                    },
                )
            )
        elif block.get("type") == "text" and block.get("text"):
            results.append(_chunk(up, {"content": block["text"]}))

    elif event_type == "content_block_delta":
        _ensure_started(up, results)
        delta = chunk.get("delta") or {}
        delta_type = delta.get("type")
        if delta_type == "text_delta" and delta.get("text"):
            results.append(_chunk(up, {"content": delta["text"]}))
        elif delta_type == "thinking_delta" and delta.get("thinking"):
            results.append(_chunk(up, {"reasoning_content": delta["thinking"]}))
        elif delta_type == "input_json_delta":
            buffer = up.tool_blocks.get(chunk.get("index"))
            partial = delta.get("partial_json") or ""
            if buffer is not None and partial:
                buffer.arguments += partial
                results.append(
                    _chunk(
                        up,
                        {"tool_calls": [{"index": buffer.block_index, "function": {"arguments": partial}}]},
                    )
                )

    elif event_type == "message_delta":
        delta = chunk.get("delta") or {}
        if delta.get("stop_reason"):
            up.finish_reason = claude_to_openai_finish(delta["stop_reason"])
        usage = chunk.get("usage")
        if usage:
            up.usage = merge_usage(up.usage, usage)
        if up.finish_reason and usage:
            results.extend(_finish(up))

    elif event_type == "message_stop":
        results.extend(_finish(up))

    elif event_type == "error":
        logger.warning("Upstream Claude stream error: %s", chunk.get("error"))

    return results
