"""
OpenAI chat chunks -> Gemini streamGenerateContent chunks.

Gemini carries complete ``functionCall`` args, so tool call arguments are buffered and
emitted once the call is finished.
"""

from __future__ import annotations

from typing import Any, Optional

from sse_gateway.translator.helpers.finish import openai_to_gemini_finish
from sse_gateway.translator.helpers.gemini import try_parse_json
from sse_gateway.translator.state import StreamState, ToolCallBuffer, merge_usage


def openai_usage_to_gemini(usage: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not usage:
        return None
    prompt = usage.get("prompt_tokens") or 0
    completion = usage.get("completion_tokens") or 0
    out: dict[str, Any] = {
        "promptTokenCount": prompt,
        "candidatesTokenCount": completion,
        "totalTokenCount": usage.get("total_tokens") or prompt + completion,
    }
    reasoning = (usage.get("completion_tokens_details") or {}).get("reasoning_tokens")
    if reasoning:
        out["thoughtsTokenCount"] = reasoning
        out["candidatesTokenCount"] = max(completion - reasoning, 0)
    cached = (usage.get("prompt_tokens_details") or {}).get("cached_tokens")
    if cached:
        out["cachedContentTokenCount"] = cached
    return out


def _gemini_chunk(state: StreamState, parts: list[dict[str, Any]], finish: Optional[str] = None) -> dict[str, Any]:
    candidate: dict[str, Any] = {"content": {"role": "model", "parts": parts}, "index": 0}
    if finish:
        candidate["finishReason"] = finish
    chunk: dict[str, Any] = {"candidates": [candidate], "modelVersion": state.model or ""}
    if state.message_id:
        chunk["responseId"] = state.message_id
    return chunk


def _emit_tool_calls(state: StreamState, results: list[dict[str, Any]]) -> None:
    parts = []
    for index in sorted(state.tool_calls):
        buffer = state.tool_calls[index]
        if buffer.block_index >= 0:
            continue
        buffer.block_index = index
        args = try_parse_json(buffer.arguments or "{}")
        parts.append(
            {"functionCall": {"id": buffer.id, "name": buffer.name, "args": args if isinstance(args, dict) else {}}}
        )
    if parts:
        results.append(_gemini_chunk(state, parts))


def _finish(state: StreamState, results: list[dict[str, Any]]) -> None:
    if state.finish_reason_sent or not state.message_started:
        return
    state.finish_reason_sent = True
    chunk = _gemini_chunk(state, [], state.finish_reason or "STOP")
    usage = openai_usage_to_gemini(state.usage)
    if usage:
        chunk["usageMetadata"] = usage
    results.append(chunk)


def openai_to_gemini_response(chunk: Optional[dict[str, Any]], state: StreamState) -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []

    if chunk is None:
        _emit_tool_calls(state, results)
        _finish(state, results)
        return results

    if not state.message_started:
        state.message_started = True
        state.message_id = chunk.get("id")
        state.model = chunk.get("model") or state.model

    if chunk.get("usage"):
        state.usage = merge_usage(state.usage, chunk["usage"])

    choices = chunk.get("choices") or []
    choice = choices[0] if choices and isinstance(choices[0], dict) else {}
    delta = choice.get("delta") or {}

    parts: list[dict[str, Any]] = []
    reasoning = delta.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        parts.append({"text": reasoning, "thought": True})
    content = delta.get("content")
    if isinstance(content, str) and content:
        parts.append({"text": content})
    if parts:
        results.append(_gemini_chunk(state, parts))

    for tool_call in delta.get("tool_calls") or []:
        if not isinstance(tool_call, dict):
            continue
        fn = tool_call.get("function") or {}
        index = tool_call.get("index", 0)
        buffer = state.tool_calls.get(index)
        if buffer is None:
            buffer = ToolCallBuffer(id=tool_call.get("id") or "", name=fn.get("name") or "")
            state.tool_calls[index] = buffer
        if fn.get("arguments"):
            buffer.arguments += fn["arguments"]

    if choice.get("finish_reason") and state.finish_reason is None:
        state.finish_reason = openai_to_gemini_finish(choice["finish_reason"])
        _emit_tool_calls(state, results)

    if state.finish_reason and chunk.get("usage"):
        _finish(state, results)

    return results
