"""
FastAPI Application Factory

Creates and configures the FastAPI application with:
- Bridge context (display state, sessions, hub) on app.state
- Middleware (CORS allow-list) and error handlers
- Routers for /health, /mcp/* and /viewer/*
- Lifecycle management (startup/shutdown)

@.architecture
Incoming: main.py, config/settings.py, core/context.py, api/router.py, api/middleware/*.py --- {Settings object, BridgeContext, APIRouter, middleware constructors}
Processing: create_app(), startup_event(), shutdown_event() --- {5 jobs: application_creation, context_wiring, middleware_registration, routing_registration, lifecycle_management}
Outgoing: main.py, Tool clients and viewers (HTTP/SSE/WebSocket) --- {FastAPI application instance}
"""

from typing import Any, Optional, TextIO

from fastapi import FastAPI

from api.middleware import create_cors_middleware, register_error_handlers
from api.router import api_router
from config.settings import Settings, get_settings
from core.context import build_context
from monitoring import configure_for_environment, get_logger

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    cache_client: Optional[Any] = None,
    log_stream: Optional[TextIO] = None
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        cache_client: redis.asyncio compatible client overriding REDIS_URL
        log_stream: Console log stream (stdio mode passes stderr)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    configure_for_environment(
        settings.environment,
        level=settings.monitoring.log_level,
        format_type=settings.monitoring.log_format,
        stream=log_stream,
    )

    logger.info(f"Creating {settings.app_name} application (environment: {settings.environment})")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Bridges MCP tool clients to 3D avatar viewers",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        redirect_slashes=False
    )

    context = build_context(settings, cache_client=cache_client)
    app.state.bridge = context

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    security = settings.security
    middleware_class, middleware_kwargs = create_cors_middleware(
        security.allowed_origins,
        allow_credentials=security.cors_allow_credentials,
        allow_methods=security.cors_allow_methods,
        allow_headers=security.cors_allow_headers,
    )
    app.add_middleware(middleware_class, **middleware_kwargs)

    register_error_handlers(app)

    # ==========================================================================
    # API Routers
    # ==========================================================================

    app.include_router(api_router)

    # ==========================================================================
    # Lifecycle Events
    # ==========================================================================

    @app.on_event("startup")
    async def startup_event():
        await context.start()
        logger.info(f"✅ {settings.app_name} listening on {settings.base_url}")

    @app.on_event("shutdown")
    async def shutdown_event():
        await context.stop()

    return app
