"""
Format translation through the OpenAI chat pivot.

Requests travel source -> openai -> target; response chunks travel
target -> openai -> source. Example usage:

    from sse_gateway.translator import Format, get_translator

    translator = get_translator()
    body = translator.translate_request(Format.CLAUDE, Format.GEMINI, "gemini-2.5-pro", claude_body)

    state = translator.init_state(Format.CLAUDE)
    for chunk in gemini_chunks:
        for out in translator.translate_response(Format.GEMINI, Format.CLAUDE, chunk, state):
            ...
    tail = translator.translate_response(Format.GEMINI, Format.CLAUDE, None, state)
"""

from __future__ import annotations

import copy
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from sse_gateway.translator.formats import PIVOT, Format
from sse_gateway.translator.helpers.claude import prepare_claude_request
from sse_gateway.translator.helpers.openai import filter_to_openai_format, normalize_thinking_config
from sse_gateway.translator.helpers.tool_calls import ensure_tool_call_ids, fix_missing_tool_responses
from sse_gateway.translator.registry import TranslatorRegistry
from sse_gateway.translator.state import ResponsesStreamState, StreamState, init_state
from sse_gateway.translator.types import ProviderRequest

logger = logging.getLogger(__name__)

__all__ = [
    "Format",
    "PIVOT",
    "ProviderRequest",
    "ResponsesStreamState",
    "StreamState",
    "Translator",
    "TranslatorRegistry",
    "get_translator",
]


class Translator:
    """Pivot translation engine over a registry of converters."""

    def __init__(self, registry: Optional[TranslatorRegistry] = None):
        self.registry = registry or TranslatorRegistry()

    def _ensure_ready(self) -> None:
        if not self.registry.bootstrapped:
            self.registry.bootstrap()

    def translate_request(
        self,
        source: "Format | str",
        target: "Format | str",
        model: str,
        body: Dict[str, Any],
        stream: bool = True,
        credentials: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Translate a request body from the client's format to the provider's.

        The caller's body is never mutated. Tool-call ids are ensured and unanswered
        calls get empty results before any conversion, even for same-format requests.
        A missing converter for a hop leaves the body unchanged for that hop.
        """
        self._ensure_ready()
        source = Format.from_string(source)
        target = Format.from_string(target)
        result = copy.deepcopy(body)

        normalize_thinking_config(result)
        ensure_tool_call_ids(result)
        fix_missing_tool_responses(result)

        if source != target:
            if source != PIVOT:
                to_pivot = self.registry.get_request(source, PIVOT)
                if to_pivot is not None:
                    result = to_pivot(model, result, stream, credentials)
                else:
                    logger.debug("No request converter %s -> %s", source.value, PIVOT.value)

            if target == PIVOT:
                result = filter_to_openai_format(result)
            else:
                from_pivot = self.registry.get_request(PIVOT, target)
                if from_pivot is not None:
                    result = from_pivot(model, result, stream, credentials)
                else:
                    logger.debug("No request converter %s -> %s", PIVOT.value, target.value)

        if target == Format.CLAUDE:
            result = prepare_claude_request(result, provider)

        return result

    def build_provider_request(
        self,
        source: "Format | str",
        target: "Format | str",
        model: str,
        body: Dict[str, Any],
        stream: bool = True,
        credentials: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
    ) -> ProviderRequest:
        """Translate a request and tag it with the provider format."""
        target = Format.from_string(target)
        translated = self.translate_request(source, target, model, body, stream, credentials, provider)
        return ProviderRequest(format=target, body=translated)

    def translate_response(
        self,
        target: "Format | str",
        source: "Format | str",
        chunk: Optional[Dict[str, Any]],
        state: StreamState,
    ) -> list:
        """
        Translate one provider chunk into zero or more client chunks.

        ``target`` is the provider format and ``source`` the client format. Pass
        ``chunk=None`` once at end of stream so each stage can flush pending output.
        """
        self._ensure_ready()
        target = Format.from_string(target)
        source = Format.from_string(source)

        if source == target:
            return [] if chunk is None else [chunk]

        results: list = [] if chunk is None else [chunk]

        if target != PIVOT:
            to_pivot = self.registry.get_response(target, PIVOT)
            if to_pivot is not None:
                results = list(to_pivot(chunk, state) or [])

        if source != PIVOT:
            from_pivot = self.registry.get_response(PIVOT, source)
            if from_pivot is not None:
                rendered: list = []
                for item in results:
                    rendered.extend(from_pivot(item, state) or [])
                if chunk is None:
                    rendered.extend(from_pivot(None, state) or [])
                results = rendered

        return results

    @staticmethod
    def init_state(source: "Format | str") -> StreamState:
        return init_state(source)

    @staticmethod
    def needs_translation(source: "Format | str", target: "Format | str") -> bool:
        return Format.from_string(source) != Format.from_string(target)


@lru_cache()
def get_translator() -> Translator:
    """Process-wide translator over a bootstrapped registry."""
    return Translator(TranslatorRegistry().bootstrap())
