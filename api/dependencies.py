"""
API Dependencies

FastAPI dependency injection functions for:
- Bridge context access (no module globals; the context hangs off app.state)
- Shared-secret authentication
- Per-caller rate limiting
- Request context setup for logging

@.architecture
Incoming: api/endpoints/*.py --- {Depends() injections}
Processing: get_context(), get_settings(), require_api_key(), enforce_rate_limit(), setup_request_context() --- {4 jobs: context_lookup, authentication, rate_limiting, logging_context}
Outgoing: api/endpoints/*.py --- {BridgeContext, Settings, presented API key, rate limit headers}

Transport checks run in order: authentication, then rate limiting, then
session resolution in the endpoint itself.
"""

import uuid
from typing import Dict, Optional

from fastapi import Depends, Header, Request
from starlette.requests import HTTPConnection

from config.settings import Settings
from core.context import BridgeContext
from core.errors import InternalError
from monitoring import get_logger, set_request_context
from security.rate_limit import client_key

logger = get_logger(__name__)


# =============================================================================
# Context Dependencies
# =============================================================================

def get_context(connection: HTTPConnection) -> BridgeContext:
    """
    Get the bridge context of the running app.

    Works for both HTTP requests and WebSocket connections.

    Raises:
        InternalError: If the app was built without a context
    """
    context = getattr(connection.app.state, "bridge", None)
    if context is None:
        logger.error("Bridge context not initialized")
        raise InternalError("Bridge context not initialized")
    return context


def get_settings(context: BridgeContext = Depends(get_context)) -> Settings:
    """Settings the running app was built with."""
    return context.settings


# =============================================================================
# Request Context Dependencies
# =============================================================================

async def setup_request_context(
    request: Request,
    x_request_id: Optional[str] = Header(None)
) -> str:
    """
    Setup request context for logging.

    Args:
        request: FastAPI request object
        x_request_id: Optional request ID from header

    Returns:
        Request ID
    """
    request_id = x_request_id or str(uuid.uuid4())
    session_id = request.query_params.get("sessionId")
    set_request_context(request_id=request_id, session_id=session_id)
    request.state.request_id = request_id
    return request_id


# =============================================================================
# Security Dependencies
# =============================================================================

async def require_api_key(
    request: Request,
    context: BridgeContext = Depends(get_context)
) -> Optional[str]:
    """
    Check the shared secret (x-api-key header or apiKey query parameter).

    Returns:
        The presented key, or None if none was sent

    Raises:
        AuthError: If a key is configured and the request doesn't carry it
    """
    return context.auth.authenticate(request.headers, request.query_params)


async def enforce_rate_limit(
    request: Request,
    api_key: Optional[str] = Depends(require_api_key),
    context: BridgeContext = Depends(get_context)
) -> Dict[str, str]:
    """
    Consume one token from the caller's bucket.

    Returns:
        X-RateLimit-* headers for the response

    Raises:
        RateLimitExceeded: If the bucket is empty
    """
    if not context.settings.security.rate_limit_enabled:
        return {}

    key = client_key(api_key, request.headers.get("x-forwarded-for"))
    await context.rate_limiter.check_rate_limit(key)

    info = await context.rate_limiter.get_limit_info(key)
    return {
        "X-RateLimit-Limit": str(info["limit"]),
        "X-RateLimit-Remaining": str(info["remaining"]),
        "X-RateLimit-Reset": str(info["reset"]),
    }
