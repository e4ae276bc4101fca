"""
OpenAI chat chunks -> Claude Messages stream events.

Pivot tool calls may interleave argument fragments across indexes, while a Claude
block cannot receive deltas once stopped. Tool calls are therefore buffered and
emitted as complete tool_use blocks when the next text or thinking block opens,
or at finish.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sse_gateway.translator.helpers.finish import openai_to_claude_finish
from sse_gateway.translator.state import StreamState, ToolCallBuffer, merge_usage

logger = logging.getLogger(__name__)


def openai_usage_to_claude(usage: Optional[dict[str, Any]]) -> dict[str, Any]:
    if not usage:
        return {"output_tokens": 0}
    cached = (usage.get("prompt_tokens_details") or {}).get("cached_tokens") or 0
    out: dict[str, Any] = {
        "input_tokens": max((usage.get("prompt_tokens") or 0) - cached, 0),
        "output_tokens": usage.get("completion_tokens") or 0,
    }
    if cached:
        out["cache_read_input_tokens"] = cached
    return out


def _close_block(state: StreamState, events: list[dict[str, Any]]) -> None:
    if state.block_kind is None:
        return
    events.append({"type": "content_block_stop", "index": state.block_index})
    state.block_kind = None
    state.block_index = None


def _open_block(state: StreamState, kind: str, content_block: dict[str, Any], events: list[dict[str, Any]]) -> int:
    _close_block(state, events)
    index = state.next_block_index()
    state.block_kind = kind
    state.block_index = index
    events.append({"type": "content_block_start", "index": index, "content_block": content_block})
    return index


def _start(state: StreamState, chunk: dict[str, Any], events: list[dict[str, Any]]) -> None:
    if state.message_started:
        return
    state.message_started = True
    chunk_id = chunk.get("id") or ""
    state.message_id = f"msg_{chunk_id.removeprefix('chatcmpl-') or uuid.uuid4().hex}"
    state.model = chunk.get("model") or state.model
    events.append(
        {
            "type": "message_start",
            "message": {
                "id": state.message_id,
                "type": "message",
                "role": "assistant",
                "model": state.model or "",
                "content": [],
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": 0, "output_tokens": 0},
            },
        }
    )


def _finish(state: StreamState, events: list[dict[str, Any]]) -> None:
    if state.finish_reason_sent or not state.message_started:
        return
    _flush_tool_calls(state, events)
    _close_block(state, events)
    state.finish_reason_sent = True
    events.append(
        {
            "type": "message_delta",
            "delta": {"stop_reason": state.finish_reason or "end_turn", "stop_sequence": None},
            "usage": openai_usage_to_claude(state.usage),
        }
    )
    events.append({"type": "message_stop"})


def _flush_tool_calls(state: StreamState, events: list[dict[str, Any]]) -> None:
    for index in sorted(state.tool_calls):
        buffer = state.tool_calls[index]
        if buffer.block_index >= 0:
            continue
        buffer.block_index = _open_block(
            state,
            "tool_use",
            {"type": "tool_use", "id": buffer.id, "name": buffer.name, "input": {}},
            events,
        )
        if buffer.arguments:
            events.append(
                {
                    "type": "content_block_delta",
                    "index": buffer.block_index,
                    "delta": {"type": "input_json_delta", "partial_json": buffer.arguments},
                }
            )
        _close_block(state, events)


def _tool_call_delta(state: StreamState, tool_call: dict[str, Any], events: list[dict[str, Any]]) -> None:
    index = tool_call.get("index", 0)
    fn = tool_call.get("function") or {}
    buffer = state.tool_calls.get(index)
    if buffer is None:
        _close_block(state, events)
        buffer = ToolCallBuffer(
            id=tool_call.get("id") or f"toolu_{uuid.uuid4().hex[:24]}",
            name=fn.get("name") or "",
        )
        state.tool_calls[index] = buffer
    arguments = fn.get("arguments")
    if not arguments:
        return
    if buffer.block_index >= 0:
        logger.debug("Dropping arguments for already emitted tool call: id=%s", buffer.id)
        return
    buffer.arguments += arguments


def openai_to_claude_response(chunk: Optional[dict[str, Any]], state: StreamState) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []

    if chunk is None:
        _flush_tool_calls(state, events)
        _close_block(state, events)
        _finish(state, events)
        return events

    _start(state, chunk, events)

    if chunk.get("usage"):
        state.usage = merge_usage(state.usage, chunk["usage"])

    choices = chunk.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    delta = choice.get("delta") or {}

    reasoning = delta.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        _flush_tool_calls(state, events)
        if state.block_kind != "thinking":
            _open_block(state, "thinking", {"type": "thinking", "thinking": "", "signature": ""}, events)
        state.thinking_buffer += reasoning
        events.append(
            {
                "type": "content_block_delta",
                "index": state.block_index,
                "delta": {"type": "thinking_delta", "thinking": reasoning},
            }
        )

    content = delta.get("content")
    if isinstance(content, str) and content:
        _flush_tool_calls(state, events)
        if state.block_kind != "text":
            _open_block(state, "text", {"type": "text", "text": ""}, events)
        events.append(
            {
                "type": "content_block_delta",
                "index": state.block_index,
                "delta": {"type": "text_delta", "text": content},
            }
        )

    for tool_call in delta.get("tool_calls") or []:
        if isinstance(tool_call, dict):
            _tool_call_delta(state, tool_call, events)

    if choice.get("finish_reason") and state.finish_reason is None:
        state.finish_reason = openai_to_claude_finish(choice["finish_reason"])
        _flush_tool_calls(state, events)
        _close_block(state, events)

    if state.finish_reason and chunk.get("usage"):
        _finish(state, events)

    return events
