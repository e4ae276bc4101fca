"""
Tool call pairing helpers for pivot (OpenAI chat) bodies.
"""

from __future__ import annotations

import uuid
from typing import Any


def generate_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def ensure_tool_call_ids(body: dict[str, Any]) -> dict[str, Any]:
    """
    Give every assistant tool call an id, in place.

    Also fixes tool messages that lost their tool_call_id when the matching call sits
    right before them (pairs them positionally).
    """
    messages = body.get("messages")
    if not isinstance(messages, list):
        return body

    pending: list[str] = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        if msg.get("role") == "assistant" and isinstance(msg.get("tool_calls"), list):
            pending = []
            for tc in msg["tool_calls"]:
                if not isinstance(tc, dict):
                    continue
                if not tc.get("id"):
                    tc["id"] = generate_tool_call_id()
                tc.setdefault("type", "function")
                pending.append(tc["id"])
        elif msg.get("role") == "tool":
            if not msg.get("tool_call_id") and pending:
                msg["tool_call_id"] = pending[0]
            if msg.get("tool_call_id") in pending:
                pending.remove(msg["tool_call_id"])
    return body


def fix_missing_tool_responses(body: dict[str, Any]) -> dict[str, Any]:
    """
    Insert an empty tool result after any assistant tool call that has none, in place.

    Results are inserted right after the assistant message (and its existing tool
    results) so strict call/result pairing protocols accept the history.
    """
    messages = body.get("messages")
    if not isinstance(messages, list):
        return body

    answered = {
        msg.get("tool_call_id")
        for msg in messages
        if isinstance(msg, dict) and msg.get("role") == "tool"
    }

    fixed: list[Any] = []
    i = 0
    while i < len(messages):
        msg = messages[i]
        fixed.append(msg)
        i += 1
        if not (
            isinstance(msg, dict)
            and msg.get("role") == "assistant"
            and isinstance(msg.get("tool_calls"), list)
        ):
            continue

        while i < len(messages) and isinstance(messages[i], dict) and messages[i].get("role") == "tool":
            fixed.append(messages[i])
            i += 1

        for tc in msg["tool_calls"]:
            if isinstance(tc, dict) and tc.get("id") and tc["id"] not in answered:
                fixed.append({"role": "tool", "tool_call_id": tc["id"], "content": ""})
                answered.add(tc["id"])

    body["messages"] = fixed
    return body
