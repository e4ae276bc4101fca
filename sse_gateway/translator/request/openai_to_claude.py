"""
OpenAI chat -> Claude Messages request conversion.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sse_gateway.translator.helpers.claude import DEFAULT_MAX_TOKENS
from sse_gateway.translator.helpers.gemini import try_parse_json
from sse_gateway.translator.helpers.openai import extract_text_content

logger = logging.getLogger(__name__)


def _image_block(url: str) -> dict[str, Any]:
    if url.startswith("data:") and ";base64," in url:
        prefix, data = url.split(";base64,", 1)
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": prefix[5:] or "image/png", "data": data},
        }
    return {"type": "image", "source": {"type": "url", "url": url}}


def _content_blocks(content: Any) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    blocks: list[dict[str, Any]] = []
    if not isinstance(content, list):
        return blocks
    for part in content:
        if isinstance(part, str):
            if part:
                blocks.append({"type": "text", "text": part})
            continue
        if not isinstance(part, dict):
            continue
        part_type = part.get("type")
        if part_type in ("text", "input_text", "output_text"):
            if part.get("text"):
                blocks.append({"type": "text", "text": part["text"]})
        elif part_type == "image_url":
            image_url = part.get("image_url")
            url = image_url.get("url") if isinstance(image_url, dict) else image_url
            if isinstance(url, str) and url:
                blocks.append(_image_block(url))
        elif part_type in ("image", "tool_use", "tool_result", "thinking"):
            # Claude-native blocks pass through
            blocks.append(part)
    return blocks


def _tool_choice(choice: Any) -> Optional[dict[str, Any]]:
    if choice == "auto":
        return {"type": "auto"}
    if choice == "required":
        return {"type": "any"}
    if choice == "none":
        return {"type": "none"}
    if isinstance(choice, dict):
        fn = choice.get("function")
        if isinstance(fn, dict) and fn.get("name"):
            return {"type": "tool", "name": fn["name"]}
    return None


def _append(messages: list[dict[str, Any]], role: str, blocks: list[dict[str, Any]]) -> None:
    """Append blocks, merging into the previous message when the role repeats."""
    if not blocks:
        return
    if messages and messages[-1]["role"] == role:
        messages[-1]["content"].extend(blocks)
    else:
        messages.append({"role": role, "content": blocks})


def openai_to_claude_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert an OpenAI chat body into a Claude Messages body."""
    result: dict[str, Any] = {
        "model": model,
        "messages": [],
        "max_tokens": body.get("max_tokens") or body.get("max_completion_tokens") or DEFAULT_MAX_TOKENS,
        "stream": stream,
    }

    system_parts: list[str] = []
    messages: list[dict[str, Any]] = result["messages"]

    for msg in body.get("messages") or []:
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")
        content = msg.get("content")

        if role in ("system", "developer"):
            text = extract_text_content(content)
            if text:
                system_parts.append(text)

        elif role == "user":
            _append(messages, "user", _content_blocks(content))

        elif role == "assistant":
            blocks: list[dict[str, Any]] = []
            reasoning = msg.get("reasoning_content")
            if isinstance(reasoning, str) and reasoning and msg.get("reasoning_signature"):
                blocks.append(
                    {"type": "thinking", "thinking": reasoning, "signature": msg["reasoning_signature"]}
                )
            blocks.extend(_content_blocks(content))
            for tc in msg.get("tool_calls") or []:
                if not isinstance(tc, dict):
                    continue
                fn = tc.get("function") or {}
                args = try_parse_json(fn.get("arguments") or "{}")
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tc.get("id"),
                        "name": fn.get("name"),
                        "input": args if isinstance(args, dict) else {},
                    }
                )
            _append(messages, "assistant", blocks)

        elif role == "tool":
            tool_content = content
            if isinstance(tool_content, list):
                tool_content = extract_text_content(tool_content)
            _append(
                messages,
                "user",
                [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg.get("tool_call_id"),
                        "content": tool_content if tool_content is not None else "",
                    }
                ],
            )

    if system_parts:
        result["system"] = "\n\n".join(system_parts)

    for src, dst in (("temperature", "temperature"), ("top_p", "top_p"), ("top_k", "top_k")):
        if body.get(src) is not None:
            result[dst] = body[src]

    stop = body.get("stop")
    if stop:
        result["stop_sequences"] = [stop] if isinstance(stop, str) else list(stop)

    tools = []
    for tool in body.get("tools") or []:
        if not isinstance(tool, dict):
            continue
        if tool.get("type") == "function" and isinstance(tool.get("function"), dict):
            fn = tool["function"]
            tools.append(
                {
                    "name": fn.get("name"),
                    "description": fn.get("description") or "",
                    "input_schema": fn.get("parameters") or {"type": "object", "properties": {}},
                }
            )
        elif tool.get("name") and tool.get("input_schema"):
            tools.append(tool)
    if tools:
        result["tools"] = tools

    choice = _tool_choice(body.get("tool_choice"))
    if choice is not None and tools:
        result["tool_choice"] = choice

    if isinstance(body.get("thinking"), dict):
        result["thinking"] = body["thinking"]

    user = body.get("user")
    if isinstance(user, str) and user:
        result["metadata"] = {"user_id": user}

    return result
