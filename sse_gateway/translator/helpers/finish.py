"""
Finish/stop reason mapping between formats.
"""

from __future__ import annotations

from typing import Optional

_CLAUDE_TO_OPENAI = {
    "end_turn": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "stop_sequence": "stop",
}

_OPENAI_TO_CLAUDE = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    "content_filter": "end_turn",
}

_GEMINI_TO_OPENAI = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}

_OPENAI_TO_GEMINI = {
    "stop": "STOP",
    "length": "MAX_TOKENS",
    "tool_calls": "STOP",
    "content_filter": "SAFETY",
}


def claude_to_openai_finish(stop_reason: Optional[str]) -> str:
    if not stop_reason:
        return "stop"
    return _CLAUDE_TO_OPENAI.get(stop_reason, "stop")


def openai_to_claude_finish(finish_reason: Optional[str]) -> str:
    if not finish_reason:
        return "end_turn"
    return _OPENAI_TO_CLAUDE.get(finish_reason, "end_turn")


def gemini_to_openai_finish(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    return _GEMINI_TO_OPENAI.get(reason, "stop")


def openai_to_gemini_finish(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    return _OPENAI_TO_GEMINI.get(reason, "STOP")
