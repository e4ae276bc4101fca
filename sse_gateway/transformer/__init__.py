"""SSE stream transformation between provider and client formats."""

from sse_gateway.transformer.aggregate import (
    aggregate_openai_chunks,
    collect_pivot_chunks,
    render_completion,
)
from sse_gateway.transformer.stream import StreamingResponseTransformer

__all__ = [
    "StreamingResponseTransformer",
    "aggregate_openai_chunks",
    "collect_pivot_chunks",
    "render_completion",
]
