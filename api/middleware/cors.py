"""
CORS Middleware - API Layer

Starlette's CORSMiddleware with two changes: an allowed request origin is
always echoed (also when "*" is configured), and a preflight from an origin
outside the allow-list is refused with 403 {"error": ...}. Simple requests
from such origins get no CORS headers, so browsers fail closed.

@.architecture
Incoming: app.py (middleware registration), Browser preflight requests --- {SecuritySettings.allowed_origins, OPTIONS with Origin}
Processing: OriginAllowListMiddleware.preflight_response() --- {2 jobs: origin_matching, preflight_rejection}
Outgoing: Browsers (HTTP) --- {Access-Control-* headers, 403 JSONResponse}
"""

import logging
from typing import Optional, Sequence

from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from core.errors import OriginForbidden

logger = logging.getLogger(__name__)


class OriginAllowListMiddleware(CORSMiddleware):
    """
    CORS with an explicit origin allow-list ("*" allows any).

    Allowed origins are always echoed back, never answered with a literal
    "*", so "*" is mapped onto a match-everything origin regex.
    """

    def __init__(
        self,
        app: ASGIApp,
        allow_origins: Sequence[str] = (),
        allow_origin_regex: Optional[str] = None,
        **kwargs
    ) -> None:
        if "*" in allow_origins:
            allow_origins, allow_origin_regex = (), ".*"
        super().__init__(app, allow_origins=allow_origins, allow_origin_regex=allow_origin_regex, **kwargs)

    def preflight_response(self, request_headers: Headers) -> Response:
        origin = request_headers["origin"]
        if not self.is_allowed_origin(origin=origin):
            logger.warning(f"Rejected CORS preflight from {origin}")
            return JSONResponse(
                {"error": OriginForbidden.default_message},
                status_code=OriginForbidden.status_code,
            )
        return super().preflight_response(request_headers)


def create_cors_middleware(
    allowed_origins: Sequence[str],
    allow_credentials: bool = True,
    allow_methods: Sequence[str] = ("GET", "POST", "OPTIONS"),
    allow_headers: Sequence[str] = ("Content-Type", "x-api-key")
):
    """
    Create CORS middleware with environment-appropriate config.

    Returns:
        Middleware class and kwargs for FastAPI
    """
    return (OriginAllowListMiddleware, {
        "allow_origins": list(allowed_origins),
        "allow_credentials": allow_credentials,
        "allow_methods": list(allow_methods),
        "allow_headers": list(allow_headers),
    })
