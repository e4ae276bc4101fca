"""
API Module Initialization
"""

from sse_gateway.api.proxy import router as proxy_router

__all__ = [
    "proxy_router",
]
