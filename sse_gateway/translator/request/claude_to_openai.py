"""
Claude Messages -> OpenAI chat request conversion.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from sse_gateway.common.errors import TranslationError


def _image_part(block: dict[str, Any]) -> Optional[dict[str, Any]]:
    source = block.get("source") or {}
    if source.get("type") == "base64":
        url = f"data:{source.get('media_type', 'image/png')};base64,{source.get('data', '')}"
    elif source.get("type") == "url":
        url = source.get("url")
    else:
        return None
    return {"type": "image_url", "image_url": {"url": url}}


def _tool_result_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            block.get("text", "") if block.get("type") == "text" else json.dumps(block, ensure_ascii=False)
            for block in content
            if isinstance(block, dict)
        )
    if content is None:
        return ""
    return json.dumps(content, ensure_ascii=False)


def _convert_user(content: Any, messages: list[dict[str, Any]]) -> None:
    if isinstance(content, str):
        messages.append({"role": "user", "content": content})
        return

    parts: list[dict[str, Any]] = []
    for block in content or []:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "tool_result":
            # Tool results answer the previous assistant turn, so they come first
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": block.get("tool_use_id"),
                    "content": _tool_result_text(block.get("content")),
                }
            )
        elif block_type == "text":
            parts.append({"type": "text", "text": block.get("text", "")})
        elif block_type == "image":
            image = _image_part(block)
            if image is not None:
                parts.append(image)

    if parts:
        if len(parts) == 1 and parts[0]["type"] == "text":
            messages.append({"role": "user", "content": parts[0]["text"]})
        else:
            messages.append({"role": "user", "content": parts})


def _convert_assistant(content: Any, messages: list[dict[str, Any]]) -> None:
    if isinstance(content, str):
        messages.append({"role": "assistant", "content": content})
        return

    text_parts: list[str] = []
    reasoning_parts: list[str] = []
    signature: Optional[str] = None
    tool_calls: list[dict[str, Any]] = []
    for block in content or []:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text_parts.append(block.get("text", ""))
        elif block_type == "thinking":
            reasoning_parts.append(block.get("thinking", ""))
            signature = block.get("signature") or signature
        elif block_type == "tool_use":
            tool_calls.append(
                {
                    "id": block.get("id"),
                    "type": "function",
                    "function": {
                        "name": block.get("name"),
                        "arguments": json.dumps(block.get("input") or {}, ensure_ascii=False),
                    },
                }
            )

    msg: dict[str, Any] = {"role": "assistant", "content": "".join(text_parts) or None}
    if reasoning_parts:
        msg["reasoning_content"] = "".join(reasoning_parts)
        if signature:
            msg["reasoning_signature"] = signature
    if tool_calls:
        msg["tool_calls"] = tool_calls
    if msg["content"] is None and not tool_calls and not reasoning_parts:
        return
    messages.append(msg)


def _tool_choice(choice: Any) -> Any:
    if not isinstance(choice, dict):
        return None
    choice_type = choice.get("type")
    if choice_type == "auto":
        return "auto"
    if choice_type == "any":
        return "required"
    if choice_type == "none":
        return "none"
    if choice_type == "tool" and choice.get("name"):
        return {"type": "function", "function": {"name": choice["name"]}}
    return None


def claude_to_openai_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert a Claude Messages body into an OpenAI chat body."""
    if not isinstance(body.get("messages"), list):
        raise TranslationError("Claude request missing messages array", "claude", "openai")

    messages: list[dict[str, Any]] = []

    system = body.get("system")
    if isinstance(system, str) and system:
        messages.append({"role": "system", "content": system})
    elif isinstance(system, list):
        text = "\n".join(b.get("text", "") for b in system if isinstance(b, dict) and b.get("text"))
        if text:
            messages.append({"role": "system", "content": text})

    for msg in body["messages"]:
        if not isinstance(msg, dict):
            continue
        if msg.get("role") == "assistant":
            _convert_assistant(msg.get("content"), messages)
        else:
            _convert_user(msg.get("content"), messages)

    result: dict[str, Any] = {"model": model, "messages": messages, "stream": stream}

    for key in ("max_tokens", "temperature", "top_p", "top_k"):
        if body.get(key) is not None:
            result[key] = body[key]
    if body.get("stop_sequences"):
        result["stop"] = list(body["stop_sequences"])

    tools = [
        {
            "type": "function",
            "function": {
                "name": tool.get("name"),
                "description": tool.get("description") or "",
                "parameters": tool.get("input_schema") or {"type": "object", "properties": {}},
            },
        }
        for tool in body.get("tools") or []
        if isinstance(tool, dict) and tool.get("name")
    ]
    if tools:
        result["tools"] = tools
        choice = _tool_choice(body.get("tool_choice"))
        if choice is not None:
            result["tool_choice"] = choice

    if isinstance(body.get("thinking"), dict):
        result["thinking"] = body["thinking"]

    metadata = body.get("metadata")
    if isinstance(metadata, dict) and isinstance(metadata.get("user_id"), str):
        result["user"] = metadata["user_id"]

    return result
