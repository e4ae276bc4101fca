"""
Gemini -> OpenAI chat request conversion.

Accepts plain generateContent bodies and Cloud Code envelopes (``{"request": {...}}``).
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional

from sse_gateway.common.errors import TranslationError


def _text_of(parts: Any) -> str:
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def _inline_image(part: dict[str, Any]) -> Optional[dict[str, Any]]:
    inline = part.get("inlineData")
    if isinstance(inline, dict) and inline.get("data"):
        url = f"data:{inline.get('mimeType', 'image/png')};base64,{inline['data']}"
        return {"type": "image_url", "image_url": {"url": url}}
    file_data = part.get("fileData")
    if isinstance(file_data, dict) and file_data.get("fileUri"):
        return {"type": "image_url", "image_url": {"url": file_data["fileUri"]}}
    return None


def _tool_choice(tool_config: Any) -> Any:
    if not isinstance(tool_config, dict):
        return None
    fc = tool_config.get("functionCallingConfig")
    if not isinstance(fc, dict):
        return None
    mode = fc.get("mode")
    if mode == "NONE":
        return "none"
    if mode == "ANY":
        allowed = fc.get("allowedFunctionNames")
        if isinstance(allowed, list) and allowed and isinstance(allowed[0], str):
            return {"type": "function", "function": {"name": allowed[0]}}
        return "required"
    if mode == "AUTO":
        return "auto"
    return None


def gemini_to_openai_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert a Gemini body into an OpenAI chat body."""
    if isinstance(body.get("request"), dict) and "contents" not in body:
        body = body["request"]

    contents = body.get("contents")
    if not isinstance(contents, list):
        raise TranslationError("Gemini request missing contents array", "gemini", "openai")

    messages: list[dict[str, Any]] = []

    system_text = _text_of((body.get("systemInstruction") or {}).get("parts"))
    if system_text:
        messages.append({"role": "system", "content": system_text})

    # Calls without ids get `<name>-<ms>-<n>` ids; results are matched by id, then by name
    pending_by_name: dict[str, list[str]] = {}
    counter = 0

    for content in contents:
        if not isinstance(content, dict):
            continue
        role = "assistant" if content.get("role") == "model" else "user"
        blocks: list[dict[str, Any]] = []
        reasoning: list[str] = []
        tool_calls: list[dict[str, Any]] = []

        for part in content.get("parts") or []:
            if not isinstance(part, dict):
                continue

            fc = part.get("functionCall")
            if isinstance(fc, dict) and fc.get("name"):
                call_id = fc.get("id")
                if not call_id:
                    call_id = f"{fc['name']}-{int(time.time() * 1000)}-{counter}"
                    counter += 1
                pending_by_name.setdefault(fc["name"], []).append(call_id)
                tool_calls.append(
                    {
                        "id": call_id,
                        "type": "function",
                        "function": {
                            "name": fc["name"],
                            "arguments": json.dumps(fc.get("args") or {}, ensure_ascii=False),
                        },
                    }
                )
                continue

            fr = part.get("functionResponse")
            if isinstance(fr, dict):
                name = fr.get("name") or ""
                call_id = fr.get("id")
                queue = pending_by_name.get(name) or []
                if call_id in queue:
                    queue.remove(call_id)
                elif not call_id:
                    call_id = queue.pop(0) if queue else name
                response = fr.get("response")
                if isinstance(response, dict) and set(response) == {"result"}:
                    response = response["result"]
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call_id,
                        "content": response if isinstance(response, str) else json.dumps(response, ensure_ascii=False),
                    }
                )
                continue

            if isinstance(part.get("text"), str):
                if part.get("thought") is True:
                    reasoning.append(part["text"])
                else:
                    blocks.append({"type": "text", "text": part["text"]})
                continue

            image = _inline_image(part)
            if image is not None:
                blocks.append(image)

        if not blocks and not tool_calls and not reasoning:
            continue

        msg: dict[str, Any] = {"role": role}
        if len(blocks) == 1 and blocks[0]["type"] == "text":
            msg["content"] = blocks[0]["text"]
        elif blocks:
            msg["content"] = blocks
        else:
            msg["content"] = None if role == "assistant" else ""
        if reasoning:
            msg["reasoning_content"] = "".join(reasoning)
        if tool_calls:
            msg["tool_calls"] = tool_calls
        messages.append(msg)

    result: dict[str, Any] = {"model": model, "messages": messages, "stream": stream}

    generation = body.get("generationConfig")
    if isinstance(generation, dict):
        for src, dst in (("temperature", "temperature"), ("topP", "top_p"), ("topK", "top_k")):
            if generation.get(src) is not None:
                result[dst] = generation[src]
        if isinstance(generation.get("maxOutputTokens"), int):
            result["max_tokens"] = generation["maxOutputTokens"]
        stop_sequences = generation.get("stopSequences")
        if isinstance(stop_sequences, list):
            result["stop"] = [s for s in stop_sequences if isinstance(s, str)]
        thinking = generation.get("thinkingConfig")
        if isinstance(thinking, dict) and thinking.get("thinkingBudget"):
            result["thinking"] = {"type": "enabled", "budget_tokens": thinking["thinkingBudget"]}

    tools: list[dict[str, Any]] = []
    for tool in body.get("tools") or []:
        if not isinstance(tool, dict):
            continue
        for decl in tool.get("functionDeclarations") or []:
            if not isinstance(decl, dict) or not decl.get("name"):
                continue
            fn: dict[str, Any] = {"name": decl["name"]}
            if isinstance(decl.get("description"), str):
                fn["description"] = decl["description"]
            parameters = decl.get("parameters") or decl.get("parametersJsonSchema")
            if isinstance(parameters, dict):
                fn["parameters"] = parameters
            tools.append({"type": "function", "function": fn})
    if tools:
        result["tools"] = tools
        choice = _tool_choice(body.get("toolConfig"))
        if choice is not None:
            result["tool_choice"] = choice

    return result
