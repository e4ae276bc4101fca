"""
Streaming response transformer.

Decodes the provider's SSE byte stream, translates each event through the pivot and
re-encodes the result in the client's SSE dialect.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncGenerator, AsyncIterator, Iterable, Optional

from sse_gateway.common.sse import DONE_PAYLOAD, SSEDecoder, SSEEvent, encode_sse_data, encode_sse_json
from sse_gateway.translator import Format, Translator, get_translator

logger = logging.getLogger(__name__)

# Client formats whose SSE frames carry an `event:` line
EVENT_NAMED_FORMATS = frozenset({Format.CLAUDE, Format.OPENAI_RESPONSES})


class StreamingResponseTransformer:
    """
    Per-connection transformer from provider SSE (``target``) to client SSE (``source``).

    Same-format streams pass through byte for byte. Otherwise events are decoded,
    translated and encoded; malformed JSON events are skipped. ``flush()`` must be
    called once after the upstream closes.
    """

    def __init__(
        self,
        source: "Format | str",
        target: "Format | str",
        model: Optional[str] = None,
        translator: Optional[Translator] = None,
    ):
        self.source = Format.from_string(source)
        self.target = Format.from_string(target)
        self.translator = translator or get_translator()
        self.state = self.translator.init_state(self.source)
        if model:
            self.state.model = model
            self.state.upstream.model = model
        self._decoder = SSEDecoder()
        self._passthrough = self.source == self.target
        self._flushed = False

    def feed(self, data: bytes) -> list[bytes]:
        if self._passthrough:
            return [data] if data else []
        output: list[bytes] = []
        for event in self._decoder.feed(data):
            output.extend(self._handle_event(event))
        return output

    def flush(self) -> list[bytes]:
        if self._passthrough or self._flushed:
            return []
        self._flushed = True

        output: list[bytes] = []
        for event in self._decoder.flush():
            output.extend(self._handle_event(event))
        output.extend(
            self._encode(self.translator.translate_response(self.target, self.source, None, self.state))
        )
        if self.source == Format.OPENAI:
            output.append(encode_sse_data(DONE_PAYLOAD))
        return output

    async def transform(self, upstream: AsyncIterator[bytes]) -> AsyncGenerator[bytes, None]:
        async for data in upstream:
            for out in self.feed(data):
                yield out
        for out in self.flush():
            yield out

    def _handle_event(self, event: SSEEvent) -> list[bytes]:
        chunk = parse_event_json(event)
        if chunk is None:
            return []
        return self._encode(self.translator.translate_response(self.target, self.source, chunk, self.state))

    def _encode(self, chunks: Iterable[dict[str, Any]]) -> list[bytes]:
        named = self.source in EVENT_NAMED_FORMATS
        return [encode_sse_json(chunk, event=chunk.get("type") if named else None) for chunk in chunks]


def parse_event_json(event: SSEEvent) -> Optional[dict[str, Any]]:
    """Parse an SSE event's JSON payload; None for [DONE], malformed or non-object data."""
    payload = event.data.strip()
    if not payload or payload == DONE_PAYLOAD:
        return None
    try:
        chunk = json.loads(payload)
    except ValueError:
        logger.debug("Skipping malformed SSE payload: %s", payload[:200])
        return None
    if not isinstance(chunk, dict):
        return None
    return chunk
