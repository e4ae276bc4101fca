"""
Gemini stream -> OpenAI chat chunks.

Handles plain Gemini chunks and Cloud Code chunks wrapped as ``{"response": {...}}``.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Optional

from sse_gateway.translator.helpers.finish import gemini_to_openai_finish
from sse_gateway.translator.helpers.openai import create_openai_chunk
from sse_gateway.translator.state import StreamState, UpstreamState, merge_usage


def gemini_usage_to_openai(usage: Any) -> dict[str, Any]:
    if not isinstance(usage, dict):
        return {}
    prompt = usage.get("promptTokenCount", 0)
    thoughts = usage.get("thoughtsTokenCount", 0)
    completion = usage.get("candidatesTokenCount", 0) + thoughts
    out: dict[str, Any] = {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": usage.get("totalTokenCount", prompt + completion),
    }
    cached = usage.get("cachedContentTokenCount")
    if isinstance(cached, int):
        out["prompt_tokens_details"] = {"cached_tokens": cached}
    if thoughts:
        out["completion_tokens_details"] = {"reasoning_tokens": thoughts}
    return out


def _chunk(up: UpstreamState, delta: dict[str, Any], finish: Optional[str] = None, usage=None) -> dict[str, Any]:
    return create_openai_chunk(up.message_id, up.model, up.created, delta, finish, usage)


def _finish(up: UpstreamState) -> list[dict[str, Any]]:
    if up.finish_sent or not up.role_sent:
        return []
    up.finish_sent = True
    usage = gemini_usage_to_openai(up.usage) if up.usage else None
    return [_chunk(up, {}, up.finish_reason or "stop", usage)]


def gemini_to_openai_response(chunk: Optional[dict[str, Any]], state: StreamState) -> list[dict[str, Any]]:
    up = state.upstream
    if chunk is None:
        return _finish(up)

    if isinstance(chunk.get("response"), dict):
        chunk = chunk["response"]

    results: list[dict[str, Any]] = []
    if up.message_id is None:
        up.message_id = f"chatcmpl-{chunk.get('responseId') or uuid.uuid4().hex}"
    if not up.model and chunk.get("modelVersion"):
        up.model = chunk["modelVersion"]
    if not up.role_sent:
        up.role_sent = True
        results.append(_chunk(up, {"role": "assistant", "content": ""}))

    candidates = chunk.get("candidates") or []
    candidate = candidates[0] if candidates and isinstance(candidates[0], dict) else {}

    for part in (candidate.get("content") or {}).get("parts") or []:
        if not isinstance(part, dict):
            continue
        fc = part.get("functionCall")
        if isinstance(fc, dict) and fc.get("name"):
            index = up.tool_counter
            up.tool_counter += 1
            call_id = fc.get("id") or f"{fc['name']}-{int(time.time() * 1000)}-{index}"
            results.append(
                _chunk(
                    up,
                    {
                        "tool_calls": [
                            {
                                "index": index,
                                "id": call_id,
                                "type": "function",
                                "function": {
                                    "name": fc["name"],
                                    "arguments": json.dumps(fc.get("args") or {}, ensure_ascii=False),
                                },
                            }
                        ]
                    },
                )
            )
            continue

        text = part.get("text")
        if isinstance(text, str) and text:
            key = "reasoning_content" if part.get("thought") is True else "content"
            results.append(_chunk(up, {key: text}))

    usage = chunk.get("usageMetadata")
    if usage:
        up.usage = merge_usage(up.usage, usage)

    reason = candidate.get("finishReason")
    if reason and up.finish_reason is None:
        finish = gemini_to_openai_finish(reason)
        if up.tool_counter > 0 and finish == "stop":
            finish = "tool_calls"
        up.finish_reason = finish

    # Finish waits for usage so it can be attached; flush sends it otherwise
    if up.finish_reason and usage:
        results.extend(_finish(up))

    return results
