"""
API Dependency Injection Module

Provides dependencies required by FastAPI routes.
"""

from typing import Annotated

from fastapi import Depends, Request

from sse_gateway.services.chat import ChatService


def get_chat_service(request: Request) -> ChatService:
    """Chat service created by the application lifespan."""
    return request.app.state.chat_service


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
