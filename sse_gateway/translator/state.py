"""
Per-connection streaming state.

A StreamState is owned by exactly one response stream. Converters that parse the
upstream provider format write only to ``state.upstream``; converters that render the
client format write only to the top-level fields.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from sse_gateway.translator.formats import Format


@dataclass
class ToolCallBuffer:
    """Accumulates one streamed tool call until its arguments are complete."""

    id: str = ""
    name: str = ""
    arguments: str = ""
    # Client-side block index (Claude) or pivot tool index (upstream side)
    block_index: int = -1


@dataclass
class UpstreamState:
    """Bookkeeping for parsing the provider's stream into pivot chunks."""

    message_id: Optional[str] = None
    model: Optional[str] = None
    created: int = field(default_factory=lambda: int(time.time()))
    role_sent: bool = False
    tool_counter: int = 0
    # Upstream block index (or call id) -> buffered call
    tool_blocks: dict[Any, ToolCallBuffer] = field(default_factory=dict)
    usage: Optional[dict[str, Any]] = None
    finish_reason: Optional[str] = None
    finish_sent: bool = False


@dataclass
class StreamState:
    """Client-facing rendering state plus the nested upstream parser state."""

    message_id: Optional[str] = None
    model: Optional[str] = None
    message_started: bool = False
    # "text" | "thinking" | "tool_use" while a block is open
    block_kind: Optional[str] = None
    block_index: Optional[int] = None
    content_block_index: int = -1
    # Pivot tool index -> buffered call
    tool_calls: dict[int, ToolCallBuffer] = field(default_factory=dict)
    thinking_buffer: str = ""
    usage: Optional[dict[str, Any]] = None
    finish_reason: Optional[str] = None
    finish_reason_sent: bool = False
    upstream: UpstreamState = field(default_factory=UpstreamState)

    def next_block_index(self) -> int:
        self.content_block_index += 1
        return self.content_block_index


@dataclass
class ResponsesMessageItem:
    item_id: str
    output_index: int
    text: str = ""
    content_added: bool = False
    done: bool = False


@dataclass
class ResponsesFunctionItem:
    item_id: str
    call_id: str
    name: str
    output_index: int
    arguments: str = ""
    done: bool = False


@dataclass
class ResponsesStreamState(StreamState):
    """State for rendering pivot chunks as an OpenAI Responses event stream."""

    seq: int = 0
    response_id: str = field(default_factory=lambda: f"resp_{uuid.uuid4().hex}")
    created: int = field(default_factory=lambda: int(time.time()))
    started: bool = False
    next_output_index: int = 0
    message: Optional[ResponsesMessageItem] = None
    reasoning_id: str = ""
    reasoning_index: int = -1
    reasoning_text: str = ""
    reasoning_part_added: bool = False
    reasoning_done: bool = False
    function_items: dict[int, ResponsesFunctionItem] = field(default_factory=dict)
    # Finished output items, in output_index order, for response.completed
    output: list[dict[str, Any]] = field(default_factory=list)
    completed_sent: bool = False

    def next_seq(self) -> int:
        seq = self.seq
        self.seq += 1
        return seq

    def allocate_output_index(self) -> int:
        index = self.next_output_index
        self.next_output_index += 1
        return index


def init_state(source: "Format | str") -> StreamState:
    """Create a fresh state for a stream rendered in the client's ``source`` format."""
    if Format.from_string(source) == Format.OPENAI_RESPONSES:
        return ResponsesStreamState()
    return StreamState()


def merge_usage(current: Optional[dict[str, Any]], update: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """
    Merge a usage report into the accumulated one (returns a new dict).

    Nested dicts merge recursively. A number overwrites the accumulated value when it is
    positive or the key is new, so a trailing zero never erases an earlier count.
    """
    if not update:
        return current
    merged = dict(current or {})
    for key, value in update.items():
        if isinstance(value, dict):
            existing = merged.get(key)
            merged[key] = merge_usage(existing if isinstance(existing, dict) else None, value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            if value > 0 or key not in merged:
                merged[key] = value
        elif value is not None:
            merged[key] = value
    return merged
