"""
Global Error Handlers - API Layer

Provides centralized error handling with sanitized error responses and logging.

Registered as FastAPI exception handlers rather than as an HTTP middleware so
long-lived streaming responses pass through untouched.

@.architecture
Incoming: app.py (handler registration), Exception objects from endpoints and dependencies --- {FastAPI Request objects, BridgeError, HTTPException, RequestValidationError, Python exceptions}
Processing: register_error_handlers(), ErrorResponder.classify(), ErrorResponder.respond(), ErrorResponder.log() --- {4 jobs: error_classification, response_formatting, sanitization, logging}
Outgoing: monitoring/logging.py, Clients (HTTP) --- {structured error logs, JSONResponse {"error": message}, Retry-After header}
"""

import logging
import math
from typing import Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.errors import BridgeError, RateLimitExceeded

logger = logging.getLogger(__name__)


class ErrorHandlerConfig:
    """Configuration for error handler."""

    def __init__(
        self,
        sanitize_errors: bool = True,
        log_errors: bool = True,
        custom_error_messages: Optional[Dict[int, str]] = None
    ):
        """
        Initialize error handler configuration.

        Args:
            sanitize_errors: Replace unexpected exception text with a generic message
            log_errors: Log errors to logger
            custom_error_messages: Messages for HTTP status codes without their own
        """
        self.sanitize_errors = sanitize_errors
        self.log_errors = log_errors
        self.custom_error_messages = custom_error_messages or self._default_messages()

    @staticmethod
    def _default_messages() -> Dict[int, str]:
        """Default error messages for common status codes."""
        return {
            400: "Invalid request",
            401: "Unauthorized",
            403: "Access forbidden",
            404: "Resource not found",
            405: "Method not allowed",
            429: "Rate limit exceeded",
            500: "Internal server error",
            503: "Service unavailable",
        }


class ErrorResponder:
    """
    Turns exceptions into {"error": message} responses.

    Bridge errors keep their own message; unexpected exceptions are logged
    with traceback and answered with a generic message.
    """

    def __init__(self, config: Optional[ErrorHandlerConfig] = None):
        self.config = config or ErrorHandlerConfig()

    def classify(self, error: Exception) -> Tuple[int, str]:
        """
        Classify error and determine status code and message.

        Args:
            error: Exception to classify

        Returns:
            Tuple of (status_code, message)
        """
        if isinstance(error, BridgeError):
            return error.status_code, error.message
        if isinstance(error, RequestValidationError):
            return 400, self.config.custom_error_messages[400]
        if isinstance(error, StarletteHTTPException):
            detail = error.detail if isinstance(error.detail, str) else None
            return error.status_code, detail or self.config.custom_error_messages.get(error.status_code, "Error")

        if self.config.sanitize_errors:
            return 500, self.config.custom_error_messages[500]
        return 500, str(error)

    def respond(self, request: Request, error: Exception) -> JSONResponse:
        status_code, message = self.classify(error)

        if self.config.log_errors:
            self.log(request, error, status_code)

        headers = {}
        if isinstance(error, RateLimitExceeded):
            headers["Retry-After"] = str(max(1, math.ceil(error.retry_after)))

        return JSONResponse(
            status_code=status_code,
            content={"error": message},
            headers=headers or None
        )

    def log(self, request: Request, error: Exception, status_code: int) -> None:
        """
        Log error with request context.

        Args:
            request: Request that caused error
            error: Exception that was raised
            status_code: HTTP status code
        """
        context = {
            "method": request.method,
            "path": str(request.url.path),
            "status_code": status_code,
            "error_type": type(error).__name__,
            "client": request.client.host if request.client else "unknown"
        }

        if status_code >= 500 and not isinstance(error, BridgeError):
            logger.error(
                f"Server error: {error}",
                extra={"extra_fields": context},
                exc_info=(type(error), error, error.__traceback__)
            )
        elif status_code >= 500:
            logger.warning(f"Service error: {error}", extra={"extra_fields": context})
        else:
            logger.info(f"Client error {status_code}: {error}", extra={"extra_fields": context})


def register_error_handlers(app: FastAPI, config: Optional[ErrorHandlerConfig] = None) -> ErrorResponder:
    """
    Install the exception handlers on an app.

    Args:
        app: FastAPI application
        config: Error handler configuration

    Returns:
        The responder (exposed for tests)
    """
    responder = ErrorResponder(config)

    async def _handle(request: Request, error: Exception) -> JSONResponse:
        return responder.respond(request, error)

    app.add_exception_handler(BridgeError, _handle)
    app.add_exception_handler(RequestValidationError, _handle)
    app.add_exception_handler(StarletteHTTPException, _handle)
    app.add_exception_handler(Exception, _handle)
    return responder
