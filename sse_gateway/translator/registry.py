"""
Translator Registry

Holds request and response converters keyed by (source, target) format pair.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from sse_gateway.translator.formats import Format

logger = logging.getLogger(__name__)

# (model, body, stream, credentials) -> translated body
RequestFn = Callable[[str, Dict[str, Any], bool, Optional[Dict[str, Any]]], Dict[str, Any]]
# (chunk or None at end of stream, state) -> zero or more chunks
ResponseFn = Callable[[Optional[Dict[str, Any]], Any], list]


class TranslatorRegistry:
    """
    Registry for format converters.

    Registries are plain instances: the application bootstraps one at startup and tests
    can build isolated ones. ``bootstrap()`` registers the built-in converters exactly
    once no matter how often it is called.
    """

    def __init__(self):
        self._request: Dict[Tuple[Format, Format], RequestFn] = {}
        self._response: Dict[Tuple[Format, Format], ResponseFn] = {}
        self._bootstrapped = False

    @property
    def bootstrapped(self) -> bool:
        return self._bootstrapped

    def register(
        self,
        source: "Format | str",
        target: "Format | str",
        request_fn: Optional[RequestFn] = None,
        response_fn: Optional[ResponseFn] = None,
    ) -> None:
        """
        Register converters for a format pair. Either function may be omitted.

        Args:
            source: Format the converter reads
            target: Format the converter writes
            request_fn: Request body converter
            response_fn: Streaming chunk converter
        """
        key = (Format.from_string(source), Format.from_string(target))
        if request_fn is not None:
            self._request[key] = request_fn
        if response_fn is not None:
            self._response[key] = response_fn
        logger.debug(
            "Registered translator: %s -> %s (request=%s, response=%s)",
            key[0].value,
            key[1].value,
            request_fn is not None,
            response_fn is not None,
        )

    def get_request(self, source: Format, target: Format) -> Optional[RequestFn]:
        return self._request.get((source, target))

    def get_response(self, source: Format, target: Format) -> Optional[ResponseFn]:
        return self._response.get((source, target))

    def list_supported(self) -> Dict[str, list]:
        """List registered conversion paths as (source, target) value pairs."""
        return {
            "request": [(s.value, t.value) for s, t in self._request],
            "response": [(s.value, t.value) for s, t in self._response],
        }

    def bootstrap(self) -> "TranslatorRegistry":
        """Register all built-in converters (idempotent)."""
        if self._bootstrapped:
            return self
        self._bootstrapped = True

        from sse_gateway.translator.request import (
            claude_to_openai as claude_req,
            gemini_to_openai as gemini_req,
            openai_responses as responses_req,
            openai_to_claude as to_claude_req,
            openai_to_gemini as to_gemini_req,
        )
        from sse_gateway.translator.response import (
            claude_to_openai as claude_resp,
            gemini_to_openai as gemini_resp,
            openai_responses as responses_resp,
            openai_to_claude as to_claude_resp,
            openai_to_gemini as to_gemini_resp,
        )

        # Request converters
        self.register(Format.CLAUDE, Format.OPENAI, claude_req.claude_to_openai_request)
        self.register(Format.OPENAI, Format.CLAUDE, to_claude_req.openai_to_claude_request)
        for fmt in (Format.GEMINI, Format.GEMINI_CLI, Format.ANTIGRAVITY):
            self.register(fmt, Format.OPENAI, gemini_req.gemini_to_openai_request)
        self.register(Format.OPENAI, Format.GEMINI, to_gemini_req.openai_to_gemini_request)
        self.register(Format.OPENAI, Format.GEMINI_CLI, to_gemini_req.openai_to_gemini_cli_request)
        self.register(Format.OPENAI, Format.ANTIGRAVITY, to_gemini_req.openai_to_antigravity_request)
        self.register(
            Format.OPENAI_RESPONSES, Format.OPENAI, responses_req.openai_responses_to_openai_request
        )
        self.register(
            Format.OPENAI, Format.OPENAI_RESPONSES, responses_req.openai_to_openai_responses_request
        )

        # Response converters
        self.register(Format.CLAUDE, Format.OPENAI, response_fn=claude_resp.claude_to_openai_response)
        self.register(Format.OPENAI, Format.CLAUDE, response_fn=to_claude_resp.openai_to_claude_response)
        for fmt in (Format.GEMINI, Format.GEMINI_CLI, Format.ANTIGRAVITY):
            self.register(fmt, Format.OPENAI, response_fn=gemini_resp.gemini_to_openai_response)
        self.register(Format.OPENAI, Format.GEMINI, response_fn=to_gemini_resp.openai_to_gemini_response)
        self.register(
            Format.OPENAI_RESPONSES,
            Format.OPENAI,
            response_fn=responses_resp.openai_responses_to_openai_response,
        )
        self.register(
            Format.OPENAI,
            Format.OPENAI_RESPONSES,
            response_fn=responses_resp.openai_to_openai_responses_response,
        )

        logger.info(
            "Translator registry bootstrapped: %d request, %d response converters",
            len(self._request),
            len(self._response),
        )
        return self
