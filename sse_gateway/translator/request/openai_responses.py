"""
OpenAI Responses <-> OpenAI chat request conversion.

Responses bodies carry ``instructions`` plus an ``input`` item list; chat bodies carry
``messages``. Some clients send input items without a ``type``; those with a ``role``
are treated as messages.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from sse_gateway.translator.helpers.openai import extract_text_content

# Responses-only request fields with no chat equivalent
RESPONSES_ONLY_FIELDS = (
    "input",
    "instructions",
    "include",
    "prompt_cache_key",
    "store",
    "reasoning",
    "previous_response_id",
    "truncation",
    "text",
    "max_output_tokens",
)


def _message_content(content: Any) -> Any:
    if not isinstance(content, list):
        return content
    converted = []
    for part in content:
        if isinstance(part, dict) and part.get("type") in ("input_text", "output_text"):
            converted.append({"type": "text", "text": part.get("text", "")})
        elif isinstance(part, dict) and part.get("type") == "input_image":
            converted.append({"type": "image_url", "image_url": {"url": part.get("image_url")}})
        else:
            converted.append(part)
    return converted


def openai_responses_to_openai_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert a Responses body into a chat body. Bodies without ``input`` pass through."""
    if "input" not in body:
        return body

    result = dict(body)
    messages: list[dict[str, Any]] = []

    if body.get("instructions"):
        messages.append({"role": "system", "content": body["instructions"]})

    input_items = body["input"]
    if isinstance(input_items, str):
        input_items = [{"type": "message", "role": "user", "content": input_items}]

    # Consecutive function_call items become one assistant message
    assistant: Optional[dict[str, Any]] = None

    for item in input_items or []:
        if not isinstance(item, dict):
            continue
        item_type = item.get("type") or ("message" if item.get("role") else None)

        if item_type == "message":
            if assistant is not None:
                messages.append(assistant)
                assistant = None
            messages.append({"role": item.get("role"), "content": _message_content(item.get("content"))})

        elif item_type == "function_call":
            if assistant is None:
                assistant = {"role": "assistant", "content": None, "tool_calls": []}
            assistant["tool_calls"].append(
                {
                    "id": item.get("call_id"),
                    "type": "function",
                    "function": {"name": item.get("name"), "arguments": item.get("arguments")},
                }
            )

        elif item_type == "function_call_output":
            if assistant is not None:
                messages.append(assistant)
                assistant = None
            output = item.get("output")
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": item.get("call_id"),
                    "content": output if isinstance(output, str) else json.dumps(output, ensure_ascii=False),
                }
            )

        # reasoning items are display-only and dropped

    if assistant is not None:
        messages.append(assistant)

    result["messages"] = messages

    if isinstance(body.get("tools"), list):
        tools = []
        for tool in body["tools"]:
            if not isinstance(tool, dict):
                continue
            if tool.get("function"):
                tools.append(tool)
                continue
            fn = {k: tool[k] for k in ("name", "description", "parameters", "strict") if k in tool}
            tools.append({"type": "function", "function": fn})
        result["tools"] = tools

    reasoning = body.get("reasoning")
    if isinstance(reasoning, dict) and reasoning.get("effort"):
        result["reasoning_effort"] = reasoning["effort"]
    if body.get("max_output_tokens") is not None:
        result["max_tokens"] = body["max_output_tokens"]

    for key in RESPONSES_ONLY_FIELDS:
        result.pop(key, None)

    return result


def _responses_content(role: str, content: Any) -> list[dict[str, Any]]:
    content_type = "input_text" if role == "user" else "output_text"
    if isinstance(content, str):
        return [{"type": content_type, "text": content}]
    if not isinstance(content, list):
        return []
    converted = []
    for part in content:
        if isinstance(part, dict) and part.get("type") == "text":
            converted.append({"type": content_type, "text": part.get("text", "")})
        elif isinstance(part, dict) and part.get("type") == "image_url":
            image_url = part.get("image_url")
            url = image_url.get("url") if isinstance(image_url, dict) else image_url
            if role == "user":
                converted.append({"type": "input_image", "image_url": url})
            else:
                converted.append({"type": content_type, "text": "[Image content]"})
        else:
            converted.append(part)
    return converted


def openai_to_openai_responses_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert a chat body into a Responses body (always streamed, never stored)."""
    result: dict[str, Any] = {"model": model, "input": [], "stream": True, "store": False}
    instructions: Optional[str] = None

    for msg in body.get("messages") or []:
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")

        if role in ("system", "developer"):
            # First system message wins
            if instructions is None:
                content = msg.get("content")
                instructions = content if isinstance(content, str) else extract_text_content(content)
            continue

        if role in ("user", "assistant"):
            content = _responses_content(role, msg.get("content"))
            if content or role == "user":
                result["input"].append({"type": "message", "role": role, "content": content})

        if role == "assistant":
            for tc in msg.get("tool_calls") or []:
                fn = tc.get("function") or {}
                result["input"].append(
                    {
                        "type": "function_call",
                        "call_id": tc.get("id"),
                        "name": fn.get("name") or "",
                        "arguments": fn.get("arguments") or "{}",
                    }
                )

        if role == "tool":
            content = msg.get("content")
            result["input"].append(
                {
                    "type": "function_call_output",
                    "call_id": msg.get("tool_call_id"),
                    "output": content if isinstance(content, str) else extract_text_content(content),
                }
            )

    # Empty instructions are filled in by the executor
    result["instructions"] = instructions or ""

    if isinstance(body.get("tools"), list):
        tools = []
        for tool in body["tools"]:
            if isinstance(tool, dict) and tool.get("type") == "function" and isinstance(tool.get("function"), dict):
                fn = tool["function"]
                converted = {"type": "function"}
                converted.update(
                    {k: fn[k] for k in ("name", "description", "parameters", "strict") if k in fn}
                )
                tools.append(converted)
            else:
                tools.append(tool)
        result["tools"] = tools

    for key in ("temperature", "max_tokens", "top_p", "tool_choice", "parallel_tool_calls"):
        if body.get(key) is not None:
            result[key] = body[key]
    if body.get("reasoning_effort"):
        result["reasoning"] = {"effort": body["reasoning_effort"]}

    return result
