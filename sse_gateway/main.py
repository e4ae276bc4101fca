"""
SSE Gateway Application Entry Point

FastAPI application main entry, including router registration and application configuration.
"""

import logging
import traceback
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sse_gateway.api import proxy_router
from sse_gateway.common.errors import AppError
from sse_gateway.config import get_settings
from sse_gateway.logging_config import setup_logging
from sse_gateway.services.account_store import InMemoryAccountStore
from sse_gateway.services.chat import ChatService
from sse_gateway.translator import get_translator

logger = logging.getLogger(__name__)


def load_store() -> InMemoryAccountStore:
    """Account store from GATEWAY_DATA_FILE, or an empty one."""
    settings = get_settings()
    if settings.GATEWAY_DATA_FILE:
        return InMemoryAccountStore.from_file(settings.GATEWAY_DATA_FILE)
    logger.warning("GATEWAY_DATA_FILE not set, starting with no accounts")
    return InMemoryAccountStore()


# Application Lifecycle Management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management

    Bootstrap translators and load accounts on startup, close upstream connections on shutdown.
    """
    setup_logging()
    settings = get_settings()
    translator = get_translator()
    translator.registry.bootstrap()

    client = httpx.AsyncClient(timeout=httpx.Timeout(settings.HTTP_TIMEOUT))
    store = getattr(app.state, "store", None) or load_store()
    app.state.store = store
    app.state.chat_service = ChatService(store, translator=translator, client=client)
    yield
    # Shutdown
    await app.state.chat_service.aclose()
    await client.aclose()


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-provider LLM gateway translating between OpenAI, Claude and Gemini formats",
    version="0.1.0",
    lifespan=lifespan,
)


# Global Exception Handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Handle application custom exceptions

    In production mode, error details are hidden to prevent information leakage.
    """
    include_details = get_settings().DEBUG
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=include_details),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions

    Stack traces are logged but never returned to clients outside debug mode.
    """
    logger.error(
        "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
        str(exc),
        request.url.path,
        traceback.format_exc(),
    )

    if get_settings().DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": str(exc),
                    "type": type(exc).__name__,
                    "code": "internal_error",
                }
            },
        )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "message": "Internal server error",
                "type": "internal_error",
                "code": "internal_error",
            }
        },
    )


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health Check

    Used for service liveness probe.
    """
    return {"status": "healthy"}


app.include_router(proxy_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sse_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
