"""
Provider executors.
"""

from typing import Optional

import httpx

from sse_gateway.common.errors import NotFoundError
from sse_gateway.executors.antigravity import AntigravityExecutor, GeminiCLIExecutor
from sse_gateway.executors.base import BaseExecutor, ExecutorResult
from sse_gateway.executors.providers import (
    ClaudeExecutor,
    GeminiExecutor,
    OpenAIExecutor,
    OpenAIResponsesExecutor,
)

EXECUTORS: dict[str, type[BaseExecutor]] = {
    cls.provider: cls
    for cls in (
        AntigravityExecutor,
        GeminiCLIExecutor,
        GeminiExecutor,
        ClaudeExecutor,
        OpenAIExecutor,
        OpenAIResponsesExecutor,
    )
}


def get_executor(provider: str, client: Optional[httpx.AsyncClient] = None) -> BaseExecutor:
    """
    Create the executor for a provider.

    Raises:
        NotFoundError: Unknown provider
    """
    executor_cls = EXECUTORS.get(provider)
    if executor_cls is None:
        raise NotFoundError(message=f"Unknown provider: {provider}", code="provider_not_found")
    return executor_cls(client=client)


__all__ = [
    "AntigravityExecutor",
    "BaseExecutor",
    "ClaudeExecutor",
    "EXECUTORS",
    "ExecutorResult",
    "GeminiCLIExecutor",
    "GeminiExecutor",
    "OpenAIExecutor",
    "OpenAIResponsesExecutor",
    "get_executor",
]
