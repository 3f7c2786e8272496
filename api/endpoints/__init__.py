"""
API Endpoints

FastAPI routers for the bridge.
"""

from .health import router as health_router
from .mcp import router as mcp_router
from .viewer import router as viewer_router

__all__ = [
    "health_router",
    "mcp_router",
    "viewer_router",
]
