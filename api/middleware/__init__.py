"""
API Middleware Layer

Request/response processing for the bridge:
- CORS with an origin allow-list
- Error handling (exception handlers, {"error": message} bodies)
"""

from .cors import (
    OriginAllowListMiddleware,
    create_cors_middleware,
)

from .error_handler import (
    ErrorHandlerConfig,
    ErrorResponder,
    register_error_handlers,
)

__all__ = [
    # CORS
    'OriginAllowListMiddleware',
    'create_cors_middleware',

    # Error handling
    'ErrorHandlerConfig',
    'ErrorResponder',
    'register_error_handlers',
]
