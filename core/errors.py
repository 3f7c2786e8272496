"""
Bridge Errors - Core Layer

Transport-level failures of the protocol bridge. Every error carries the HTTP
status it maps to; api/middleware/error_handler.py turns them into
{"error": message} responses.

Tool-domain failures are NOT here (see core/avatar/tools.py): those become
JSON-RPC error objects inside a successful transport response.

@.architecture
Incoming: security/, core/sessions/, api/ --- {raise sites}
Processing: BridgeError hierarchy --- {1 job: status_mapping}
Outgoing: api/middleware/error_handler.py --- {status_code, message}
"""

from typing import Optional


class BridgeError(Exception):
    """Base class for transport-level bridge errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(BridgeError):
    """Missing or wrong shared secret."""

    status_code = 401
    default_message = "Unauthorized"


class OriginForbidden(BridgeError):
    """CORS preflight from an origin outside the allow-list."""

    status_code = 403
    default_message = "Origin not allowed"


class InvalidMessage(BridgeError):
    """Body of a posted protocol message is not a JSON-RPC message."""

    status_code = 400
    default_message = "Invalid message"


class SessionNotFound(BridgeError):
    """Unknown session id (never existed, or expired)."""

    status_code = 404
    default_message = "Invalid session"


class SessionUnreachable(BridgeError):
    """
    Session is alive but pinned to another instance, or the store is down.

    Clients should retry; sticky routing eventually lands them on the
    instance that owns the stream.
    """

    status_code = 503
    default_message = "Session not available on this instance"


class RateLimitExceeded(BridgeError):
    """Raised when rate limit is exceeded."""

    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, message: Optional[str] = None, retry_after: float = 1.0):
        super().__init__(message)
        self.retry_after = retry_after


RateLimited = RateLimitExceeded


class InternalError(BridgeError):
    """Unexpected failure with a sanitized message."""

    status_code = 500
