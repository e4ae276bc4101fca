"""
Final preparation of Claude-format request bodies.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sse_gateway.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8192


def _system_blocks(system: Any) -> list[dict[str, Any]]:
    if isinstance(system, str):
        return [{"type": "text", "text": system}] if system else []
    if isinstance(system, list):
        blocks = []
        for block in system:
            if isinstance(block, str) and block:
                blocks.append({"type": "text", "text": block})
            elif isinstance(block, dict) and block.get("text"):
                blocks.append(block)
        return blocks
    return []


def _drop_empty_blocks(messages: list[Any]) -> list[dict[str, Any]]:
    cleaned: list[dict[str, Any]] = []
    for msg in messages:
        if not isinstance(msg, dict):
            continue
        content = msg.get("content")
        if isinstance(content, list):
            content = [
                block
                for block in content
                if not (
                    isinstance(block, dict)
                    and block.get("type") == "text"
                    and not block.get("text")
                )
            ]
            if not content:
                continue
            msg = {**msg, "content": content}
        elif isinstance(content, str) and not content:
            continue
        cleaned.append(msg)
    return cleaned


def _strip_thinking_blocks(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    stripped: list[dict[str, Any]] = []
    for msg in messages:
        content = msg.get("content")
        if msg.get("role") == "assistant" and isinstance(content, list):
            content = [
                block
                for block in content
                if not (isinstance(block, dict) and block.get("type") in ("thinking", "redacted_thinking"))
            ]
            if not content:
                continue
            msg = {**msg, "content": content}
        stripped.append(msg)
    return stripped


def prepare_claude_request(body: dict[str, Any], provider: Optional[str] = None) -> dict[str, Any]:
    """
    Prepare a Claude Messages body for the destination provider (returns a new dict).

    - system is normalized to a list of text blocks, prefixed for providers that require it
    - empty text blocks and empty messages are removed
    - thinking blocks are stripped from history when thinking is disabled
    - max_tokens is raised above the thinking budget when needed
    """
    settings = get_settings()
    result = dict(body)

    system = _system_blocks(result.get("system"))
    prefix = settings.CLAUDE_SYSTEM_PREFIX
    if prefix and provider in settings.CLAUDE_SYSTEM_PREFIX_PROVIDERS:
        if not system or system[0].get("text") != prefix:
            system.insert(0, {"type": "text", "text": prefix})
    if system:
        result["system"] = system
    else:
        result.pop("system", None)

    messages = _drop_empty_blocks(result.get("messages") or [])

    thinking = result.get("thinking")
    thinking_enabled = isinstance(thinking, dict) and thinking.get("type") == "enabled"
    if not thinking_enabled:
        messages = _strip_thinking_blocks(messages)
    result["messages"] = messages

    max_tokens = result.get("max_tokens")
    if not isinstance(max_tokens, int) or max_tokens <= 0:
        max_tokens = DEFAULT_MAX_TOKENS
    if thinking_enabled:
        budget = thinking.get("budget_tokens")
        if isinstance(budget, int) and max_tokens <= budget:
            logger.debug("Raising max_tokens above thinking budget: budget=%s", budget)
            max_tokens = budget + DEFAULT_MAX_TOKENS
    result["max_tokens"] = max_tokens

    return result
