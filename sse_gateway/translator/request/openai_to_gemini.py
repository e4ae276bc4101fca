"""
OpenAI chat -> Gemini request conversion.

Three targets share one base conversion:

- ``gemini``: the public generateContent body
- ``gemini-cli``: Cloud Code envelope with thinking config and sanitized schemas
- ``antigravity``: Cloud Code agent envelope; Claude models go through a Claude payload
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from sse_gateway.config import get_settings
from sse_gateway.translator.helpers.gemini import (
    DEFAULT_SAFETY_SETTINGS,
    DEFAULT_THOUGHT_SIGNATURE,
    clean_json_schema,
    convert_openai_content_to_parts,
    generate_agent_request_id,
    generate_project_id,
    generate_request_id,
    generate_session_id,
    tool_name_from_id,
    tool_response_payload,
    try_parse_json,
)
from sse_gateway.translator.helpers.openai import extract_text_content

logger = logging.getLogger(__name__)

THINKING_BUDGETS = {"low": 1024, "medium": 8192, "high": 32768}
DEFAULT_THINKING_BUDGET = 8192


def _is_claude_model(model: str) -> bool:
    return "claude" in (model or "").lower()


def _function_declarations(tools: Any) -> list[dict[str, Any]]:
    declarations: list[dict[str, Any]] = []
    if not isinstance(tools, list):
        return declarations
    for tool in tools:
        if not isinstance(tool, dict):
            continue
        # Claude-shaped tools can reach here untouched
        if tool.get("name") and tool.get("input_schema"):
            declarations.append(
                {
                    "name": tool["name"],
                    "description": tool.get("description") or "",
                    "parameters": tool["input_schema"],
                }
            )
        elif tool.get("type") == "function" and isinstance(tool.get("function"), dict):
            fn = tool["function"]
            declarations.append(
                {
                    "name": fn.get("name"),
                    "description": fn.get("description") or "",
                    "parameters": fn.get("parameters") or {"type": "object", "properties": {}},
                }
            )
    return declarations


def _convert_messages(messages: list[Any], result: dict[str, Any]) -> None:
    id_to_name: dict[str, str] = {}
    tool_results: dict[str, Any] = {}
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        if msg.get("role") == "assistant" and isinstance(msg.get("tool_calls"), list):
            for tc in msg["tool_calls"]:
                fn = tc.get("function") or {}
                if tc.get("id") and fn.get("name"):
                    id_to_name[tc["id"]] = fn["name"]
        elif msg.get("role") == "tool" and msg.get("tool_call_id"):
            tool_results[msg["tool_call_id"]] = msg.get("content")

    contents = result["contents"]
    single = len(messages) == 1

    for msg in messages:
        if not isinstance(msg, dict):
            continue
        role = msg.get("role")
        content = msg.get("content")

        if role == "system" and not single:
            text = content if isinstance(content, str) else extract_text_content(content)
            result["systemInstruction"] = {"role": "user", "parts": [{"text": text}]}

        elif role == "user" or (role == "system" and single):
            parts = convert_openai_content_to_parts(content)
            if parts:
                contents.append({"role": "user", "parts": parts})

        elif role == "assistant":
            parts: list[dict[str, Any]] = []
            text = content if isinstance(content, str) else extract_text_content(content)
            if text:
                parts.append({"text": text})

            tool_calls = msg.get("tool_calls")
            if not isinstance(tool_calls, list):
                if parts:
                    contents.append({"role": "model", "parts": parts})
                continue

            call_ids: list[str] = []
            for tc in tool_calls:
                if not isinstance(tc, dict) or tc.get("type", "function") != "function":
                    continue
                fn = tc.get("function") or {}
                args = try_parse_json(fn.get("arguments") or "{}")
                parts.append(
                    {
                        "thoughtSignature": DEFAULT_THOUGHT_SIGNATURE,
                        "functionCall": {
                            "id": tc.get("id"),
                            "name": fn.get("name"),
                            "args": args if isinstance(args, dict) else {},
                        },
                    }
                )
                call_ids.append(tc.get("id"))

            if parts:
                contents.append({"role": "model", "parts": parts})

            # Only calls with a non-empty buffered result are answered; placeholders are not
            response_parts = []
            for call_id in call_ids:
                response = tool_results.get(call_id)
                if not response:
                    continue
                response_parts.append(
                    {
                        "functionResponse": {
                            "id": call_id,
                            "name": id_to_name.get(call_id) or tool_name_from_id(call_id),
                            "response": tool_response_payload(response),
                        }
                    }
                )
            if response_parts:
                contents.append({"role": "user", "parts": response_parts})


def openai_to_gemini_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Convert an OpenAI chat body into a Gemini generateContent body."""
    result: dict[str, Any] = {
        "contents": [],
        "generationConfig": {},
        "safetySettings": copy.deepcopy(DEFAULT_SAFETY_SETTINGS),
    }

    config = result["generationConfig"]
    if body.get("temperature") is not None:
        config["temperature"] = body["temperature"]
    if body.get("top_p") is not None:
        config["topP"] = body["top_p"]
    if body.get("top_k") is not None:
        config["topK"] = body["top_k"]
    max_tokens = body.get("max_tokens") or body.get("max_completion_tokens")
    if max_tokens is not None:
        config["maxOutputTokens"] = max_tokens
    stop = body.get("stop")
    if stop:
        config["stopSequences"] = [stop] if isinstance(stop, str) else list(stop)

    messages = body.get("messages")
    if isinstance(messages, list):
        _convert_messages(messages, result)

    declarations = _function_declarations(body.get("tools"))
    if declarations:
        result["tools"] = [{"functionDeclarations": declarations}]

    return result


def openai_to_gemini_cli_body(model: str, body: dict[str, Any]) -> dict[str, Any]:
    """Gemini body with thinking config and schemas cleaned for Cloud Code."""
    gemini = openai_to_gemini_request(model, body)

    effort = body.get("reasoning_effort")
    if effort:
        gemini["generationConfig"]["thinkingConfig"] = {
            "thinkingBudget": THINKING_BUDGETS.get(effort, DEFAULT_THINKING_BUDGET),
            "include_thoughts": True,
        }

    thinking = body.get("thinking")
    if isinstance(thinking, dict) and thinking.get("type") == "enabled" and thinking.get("budget_tokens"):
        gemini["generationConfig"]["thinkingConfig"] = {
            "thinkingBudget": thinking["budget_tokens"],
            "include_thoughts": True,
        }

    for tool in gemini.get("tools") or []:
        for declaration in tool.get("functionDeclarations") or []:
            if declaration.get("parameters"):
                declaration["parameters"] = clean_json_schema(declaration["parameters"])

    return gemini


def wrap_in_cloud_code_envelope(
    model: str,
    gemini: dict[str, Any],
    credentials: Optional[dict[str, Any]] = None,
    antigravity: bool = False,
) -> dict[str, Any]:
    """Wrap a Gemini body in the Cloud Code request envelope."""
    project_id = (credentials or {}).get("project_id") or generate_project_id()

    request: dict[str, Any] = {
        "sessionId": generate_session_id(),
        "contents": gemini.get("contents", []),
        "generationConfig": gemini.get("generationConfig", {}),
    }
    if gemini.get("systemInstruction"):
        request["systemInstruction"] = gemini["systemInstruction"]
    if gemini.get("tools"):
        request["tools"] = gemini["tools"]

    envelope: dict[str, Any] = {
        "project": project_id,
        "model": model,
        "userAgent": "antigravity" if antigravity else "gemini-cli",
        "requestId": generate_agent_request_id() if antigravity else generate_request_id(),
        "request": request,
    }

    if antigravity:
        envelope["requestType"] = "agent"
        default_part = {"text": get_settings().ANTIGRAVITY_DEFAULT_SYSTEM}
        system = request.get("systemInstruction")
        if isinstance(system, dict) and isinstance(system.get("parts"), list):
            system["parts"].insert(0, default_part)
        else:
            request["systemInstruction"] = {"role": "user", "parts": [default_part]}
        if gemini.get("tools"):
            request["toolConfig"] = {"functionCallingConfig": {"mode": "VALIDATED"}}
    else:
        request["safetySettings"] = gemini.get("safetySettings")

    return envelope


def _claude_block_parts(block: dict[str, Any]) -> Optional[dict[str, Any]]:
    block_type = block.get("type")
    if block_type == "text":
        return {"text": block.get("text", "")}
    if block_type == "tool_use":
        return {
            "functionCall": {
                "id": block.get("id"),
                "name": block.get("name"),
                "args": block.get("input") or {},
            }
        }
    if block_type == "tool_result":
        content = block.get("content")
        if isinstance(content, list):
            content = "\n".join(
                c.get("text", "") if c.get("type") == "text" else str(c)
                for c in content
                if isinstance(c, dict)
            )
        parsed = try_parse_json(content)
        return {
            "functionResponse": {
                "id": block.get("tool_use_id"),
                "name": "unknown",
                "response": {"result": parsed if parsed is not None else content},
            }
        }
    return None


def wrap_claude_in_cloud_code_envelope(
    model: str,
    claude: dict[str, Any],
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Wrap a Claude Messages body in the Antigravity Cloud Code envelope."""
    project_id = (credentials or {}).get("project_id") or generate_project_id()

    contents: list[dict[str, Any]] = []
    for msg in claude.get("messages") or []:
        parts: list[dict[str, Any]] = []
        content = msg.get("content")
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict):
                    part = _claude_block_parts(block)
                    if part is not None:
                        parts.append(part)
        elif isinstance(content, str):
            parts.append({"text": content})
        if parts:
            contents.append({"role": "model" if msg.get("role") == "assistant" else "user", "parts": parts})

    request: dict[str, Any] = {
        "sessionId": generate_session_id(),
        "contents": contents,
        "generationConfig": {
            "temperature": claude.get("temperature") or 1,
            "maxOutputTokens": claude.get("max_tokens") or 4096,
        },
    }

    declarations = [
        {
            "name": tool["name"],
            "description": tool.get("description") or "",
            "parameters": clean_json_schema(tool["input_schema"]),
        }
        for tool in claude.get("tools") or []
        if isinstance(tool, dict) and tool.get("name") and tool.get("input_schema")
    ]
    if declarations:
        request["tools"] = [{"functionDeclarations": declarations}]
        request["toolConfig"] = {"functionCallingConfig": {"mode": "VALIDATED"}}

    system_parts = [{"text": get_settings().ANTIGRAVITY_DEFAULT_SYSTEM}]
    system = claude.get("system")
    if isinstance(system, list):
        system_parts.extend({"text": b["text"]} for b in system if isinstance(b, dict) and b.get("text"))
    elif isinstance(system, str) and system:
        system_parts.append({"text": system})
    request["systemInstruction"] = {"role": "user", "parts": system_parts}

    return {
        "project": project_id,
        "model": model,
        "userAgent": "antigravity",
        "requestId": generate_agent_request_id(),
        "requestType": "agent",
        "request": request,
    }


def openai_to_gemini_cli_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return wrap_in_cloud_code_envelope(model, openai_to_gemini_cli_body(model, body), credentials)


def openai_to_antigravity_request(
    model: str,
    body: dict[str, Any],
    stream: bool = True,
    credentials: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Antigravity body; Claude models are sent as a wrapped Claude payload."""
    if _is_claude_model(model):
        from sse_gateway.translator.request.openai_to_claude import openai_to_claude_request

        logger.debug("Wrapping Claude payload for Antigravity model %s", model)
        claude = openai_to_claude_request(model, body, stream, credentials)
        return wrap_claude_in_cloud_code_envelope(model, claude, credentials)

    gemini = openai_to_gemini_cli_body(model, body)
    return wrap_in_cloud_code_envelope(model, gemini, credentials, antigravity=True)
