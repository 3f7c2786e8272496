"""
Health Check Endpoint

@.architecture
Incoming: api/router.py, Load Balancers (HTTP GET) --- {GET /health}
Processing: health_check() --- {2 jobs: component_checking, status_aggregation}
Outgoing: Clients (HTTP) --- {HealthResponse}

Reports "degraded" when a session store is configured but not healthy; the
bridge still serves in that state, with process-local sessions only.
"""

import time

from fastapi import APIRouter, Depends

from api.dependencies import get_context
from api.schemas import HealthResponse
from core.context import BridgeContext

router = APIRouter(tags=["health"])

# Track startup time
START_TIME = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Bridge health",
    description="Local session and viewer counts plus session store status"
)
async def health_check(context: BridgeContext = Depends(get_context)) -> HealthResponse:
    store_health = await context.cache.health_check()
    degraded = store_health["configured"] and not store_health["healthy"]

    return HealthResponse(
        status="degraded" if degraded else "ok",
        version=context.settings.app_version,
        environment=context.settings.environment,
        uptime_seconds=time.time() - START_TIME,
        sessions=context.sessions.count(),
        viewers=context.hub.get_viewer_count(),
        session_store=store_health,
        rate_limiter=context.rate_limiter.get_statistics(),
    )
