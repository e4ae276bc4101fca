"""
Server-Sent Events encoding and decoding.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

DONE_PAYLOAD = "[DONE]"


@dataclass
class SSEEvent:
    data: str
    event: Optional[str] = None


class SSEDecoder:
    """
    Incremental SSE Decoder: splits a byte stream into events.

    - Uses empty line (\\n\\n) as event boundary
    - Supports CRLF (\\r\\n)
    - Joins multi-line data fields with \\n
    - Keeps the incomplete tail buffered until the next feed
    """

    def __init__(self) -> None:
        self._buf = b""

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        if not chunk:
            return []

        data = (self._buf + chunk).replace(b"\r\n", b"\n")
        parts = data.split(b"\n\n")
        self._buf = parts.pop()

        events: list[SSEEvent] = []
        for raw in parts:
            event = self._parse_event(raw)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SSEEvent]:
        """Parse whatever is left once the upstream has closed."""
        tail, self._buf = self._buf, b""
        event = self._parse_event(tail.replace(b"\r\n", b"\n"))
        return [event] if event is not None else []

    @staticmethod
    def _parse_event(raw: bytes) -> Optional[SSEEvent]:
        event_name: Optional[str] = None
        data_lines: list[bytes] = []
        for line in raw.split(b"\n"):
            if not line or line.startswith(b":"):
                continue
            if line.startswith(b"data:"):
                value = line[5:]
                if value.startswith(b" "):
                    value = value[1:]
                data_lines.append(value)
            elif line.startswith(b"event:"):
                event_name = line[6:].strip().decode("utf-8", errors="ignore")
        if not data_lines:
            return None
        return SSEEvent(
            data=b"\n".join(data_lines).decode("utf-8", errors="ignore"),
            event=event_name,
        )


def encode_sse_data(payload: str) -> bytes:
    """Encode string as SSE data line."""
    return f"data: {payload}\n\n".encode("utf-8")


def encode_sse_json(obj: dict[str, Any], event: Optional[str] = None) -> bytes:
    """Encode dict as SSE JSON data line, with an optional event name."""
    data = encode_sse_data(json.dumps(obj, ensure_ascii=False))
    if event:
        return f"event: {event}\n".encode("utf-8") + data
    return data
