"""
Translator output types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sse_gateway.translator.formats import Format


@dataclass(frozen=True)
class ProviderRequest:
    """A request body tagged with the wire format it is written in."""

    format: Format
    body: dict[str, Any]

    @property
    def is_cloud_code(self) -> bool:
        """True for the Cloud Code envelope used by Gemini CLI and Antigravity."""
        return self.format in (Format.GEMINI_CLI, Format.ANTIGRAVITY)
