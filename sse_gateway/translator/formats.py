"""
Wire formats understood by the translator.
"""

from __future__ import annotations

from enum import Enum

from sse_gateway.common.errors import UnsupportedFormatError


class Format(str, Enum):
    """Supported wire formats. OPENAI is the pivot."""

    OPENAI = "openai"
    OPENAI_RESPONSES = "openai-responses"
    CLAUDE = "claude"
    GEMINI = "gemini"
    GEMINI_CLI = "gemini-cli"
    ANTIGRAVITY = "antigravity"

    @classmethod
    def from_string(cls, value: "str | Format") -> "Format":
        """Convert string to Format enum with normalization."""
        if isinstance(value, Format):
            return value
        normalized = str(value).lower().strip().replace("_", "-")
        mapping = {
            "openai": cls.OPENAI,
            "openai-chat": cls.OPENAI,
            "openai-responses": cls.OPENAI_RESPONSES,
            "responses": cls.OPENAI_RESPONSES,
            "claude": cls.CLAUDE,
            "anthropic": cls.CLAUDE,
            "gemini": cls.GEMINI,
            "gemini-cli": cls.GEMINI_CLI,
            "antigravity": cls.ANTIGRAVITY,
        }
        if normalized in mapping:
            return mapping[normalized]
        raise UnsupportedFormatError(str(value))


PIVOT = Format.OPENAI

# Formats whose request bodies are Gemini-shaped
GEMINI_FAMILY = frozenset({Format.GEMINI, Format.GEMINI_CLI, Format.ANTIGRAVITY})
