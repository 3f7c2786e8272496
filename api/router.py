"""
API Router

Aggregates the endpoint routers.

@.architecture
Incoming: app.py, api/endpoints/*.py --- {app.include_router() call, 3 endpoint routers}
Processing: api_router.include_router() --- {1 job: router_aggregation}
Outgoing: app.py --- {APIRouter routing /health, /mcp/*, /viewer/*}
"""

from fastapi import APIRouter

from .endpoints import health_router, mcp_router, viewer_router

api_router = APIRouter()

# Health
api_router.include_router(health_router)

# Tool protocol (/mcp/sse, /mcp/messages)
api_router.include_router(mcp_router)

# Viewers (/viewer/sse, /viewer/ws)
api_router.include_router(viewer_router)
