"""
Gemini request helpers: content parts, schema sanitizing and Cloud Code identifiers.
"""

from __future__ import annotations

import json
import random
import uuid
from typing import Any, Optional

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "OFF"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "OFF"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "OFF"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "OFF"},
    {"category": "HARM_CATEGORY_CIVIC_INTEGRITY", "threshold": "OFF"},
]

# JSON Schema keywords Gemini function declarations accept
ALLOWED_SCHEMA_KEYS = frozenset(
    {
        "type",
        "description",
        "properties",
        "required",
        "items",
        "enum",
        "format",
        "nullable",
        "anyOf",
        "minimum",
        "maximum",
        "minLength",
        "maxLength",
        "title",
    }
)


def try_parse_json(text: Any) -> Any:
    """Parse a JSON string; returns None when the text is not valid JSON."""
    if not isinstance(text, str):
        return text
    try:
        return json.loads(text)
    except ValueError:
        return None


def convert_openai_content_to_parts(content: Any) -> list[dict[str, Any]]:
    """Convert OpenAI message content (string or blocks) into Gemini parts."""
    parts: list[dict[str, Any]] = []
    if isinstance(content, str):
        if content:
            parts.append({"text": content})
        return parts

    if isinstance(content, dict):
        content = [content]
    if not isinstance(content, list):
        if content is not None:
            parts.append({"text": str(content)})
        return parts

    for block in content:
        if isinstance(block, str):
            if block:
                parts.append({"text": block})
            continue
        if not isinstance(block, dict):
            continue

        block_type = block.get("type")
        if block_type in ("text", "input_text", "output_text"):
            text = block.get("text")
            if isinstance(text, str) and text:
                parts.append({"text": text})
            continue

        if block_type in ("image_url", "input_image"):
            image_url = block.get("image_url")
            url = image_url.get("url") if isinstance(image_url, dict) else image_url
            if isinstance(url, str) and url:
                if url.startswith("data:") and ";base64," in url:
                    prefix, encoded = url.split(";base64,", 1)
                    parts.append(
                        {"inlineData": {"mimeType": prefix[5:] or "image/png", "data": encoded}}
                    )
                else:
                    parts.append({"fileData": {"mimeType": "image/*", "fileUri": url}})
            continue

        text = block.get("text")
        if isinstance(text, str) and text:
            parts.append({"text": text})

    return parts


def clean_json_schema(schema: Any) -> Any:
    """
    Reduce a JSON Schema to the subset Gemini accepts.

    - unsupported keywords ($schema, additionalProperties, default, ...) are dropped
    - type arrays like ["string", "null"] collapse to the first non-null type
    - const becomes a single-value enum
    - required entries that name missing properties are removed
    """
    if isinstance(schema, list):
        return [clean_json_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "const" and "enum" not in schema:
            cleaned["enum"] = [value]
            continue
        if key not in ALLOWED_SCHEMA_KEYS:
            continue
        if key == "type" and isinstance(value, list):
            non_null = [t for t in value if t != "null"]
            cleaned["type"] = non_null[0] if non_null else "string"
        elif key == "properties" and isinstance(value, dict):
            cleaned["properties"] = {
                name: clean_json_schema(prop) for name, prop in value.items()
            }
        elif key in ("items", "anyOf"):
            cleaned[key] = clean_json_schema(value)
        else:
            cleaned[key] = value

    if isinstance(cleaned.get("required"), list):
        props = cleaned.get("properties") or {}
        required = [name for name in cleaned["required"] if name in props]
        if required:
            cleaned["required"] = required
        else:
            cleaned.pop("required")

    if cleaned.get("type") == "object" and "properties" not in cleaned:
        cleaned["properties"] = {}

    return cleaned


def generate_request_id() -> str:
    return f"req-{uuid.uuid4()}"


def generate_agent_request_id() -> str:
    return f"agent-{uuid.uuid4()}"


def generate_session_id() -> str:
    return f"-{random.randint(1_000_000_000_000_000_000, 9_000_000_000_000_000_000)}"


def generate_project_id() -> str:
    adjective = random.choice(["useful", "bright", "swift", "calm", "bold"])
    noun = random.choice(["fuze", "wave", "spark", "flow", "core"])
    return f"{adjective}-{noun}-{uuid.uuid4().hex[:5]}"


def tool_name_from_id(tool_call_id: str) -> str:
    """
    Derive a function name from a tool call id shaped like `<name>-<ts>-<n>`.

    Ids with fewer than three hyphen-separated segments are returned unchanged.
    """
    segments = tool_call_id.split("-")
    if len(segments) > 2:
        return "-".join(segments[:-2])
    return tool_call_id


def tool_response_payload(content: Any) -> dict[str, Any]:
    """Wrap a tool result as a Gemini functionResponse.response object."""
    if isinstance(content, list):
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    parsed: Optional[Any] = try_parse_json(content)
    if parsed is None:
        parsed = {"result": content}
    elif not isinstance(parsed, dict):
        parsed = {"result": parsed}
    return {"result": parsed}


# Sentinel accepted by Cloud Code in place of a real thought signature on replayed calls
DEFAULT_THOUGHT_SIGNATURE = "skip_thought_signature_validator"
