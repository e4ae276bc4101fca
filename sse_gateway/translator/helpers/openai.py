"""
Pivot (OpenAI chat completions) body helpers.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

# Top-level fields understood by OpenAI-compatible chat endpoints
OPENAI_REQUEST_FIELDS = frozenset(
    {
        "model",
        "messages",
        "tools",
        "tool_choice",
        "parallel_tool_calls",
        "temperature",
        "top_p",
        "n",
        "stop",
        "max_tokens",
        "max_completion_tokens",
        "presence_penalty",
        "frequency_penalty",
        "logit_bias",
        "logprobs",
        "top_logprobs",
        "seed",
        "user",
        "stream",
        "stream_options",
        "response_format",
        "reasoning_effort",
    }
)

OPENAI_MESSAGE_FIELDS = frozenset({"role", "content", "name", "tool_calls", "tool_call_id"})


def filter_to_openai_format(body: dict[str, Any]) -> dict[str, Any]:
    """
    Drop fields foreign to the OpenAI chat shape (returns a new dict).

    Message-level extras (e.g. reasoning_content, cache_control) are removed too.
    """
    result = {key: value for key, value in body.items() if key in OPENAI_REQUEST_FIELDS}

    messages = result.get("messages")
    if isinstance(messages, list):
        cleaned: list[Any] = []
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            clean_msg = {k: v for k, v in msg.items() if k in OPENAI_MESSAGE_FIELDS}
            if isinstance(clean_msg.get("content"), list):
                clean_msg["content"] = [
                    {k: v for k, v in block.items() if k != "cache_control"}
                    if isinstance(block, dict)
                    else block
                    for block in clean_msg["content"]
                ]
            cleaned.append(clean_msg)
        result["messages"] = cleaned

    return result


def normalize_thinking_config(body: dict[str, Any]) -> dict[str, Any]:
    """Remove a Claude-style thinking config when the last message is not a user turn, in place."""
    messages = body.get("messages")
    if "thinking" not in body or not isinstance(messages, list) or not messages:
        return body
    last = messages[-1]
    if not isinstance(last, dict) or last.get("role") != "user":
        body.pop("thinking", None)
    return body


def extract_text_content(content: Any) -> str:
    """Flatten string or text-block content into plain text."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return "" if content is None else str(content)
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") in ("text", "input_text", "output_text"):
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)
    return "".join(parts)


def create_openai_chunk(
    response_id: Optional[str],
    model: Optional[str],
    created: int,
    delta: dict[str, Any],
    finish_reason: Optional[str] = None,
    usage: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Create an OpenAI chat completion chunk."""
    chunk: dict[str, Any] = {
        "id": response_id or f"chatcmpl-{uuid.uuid4().hex}",
        "object": "chat.completion.chunk",
        "created": created,
        "model": model or "",
        "choices": [
            {
                "index": 0,
                "delta": delta,
                "finish_reason": finish_reason,
            }
        ],
    }
    if usage:
        chunk["usage"] = usage
    return chunk
