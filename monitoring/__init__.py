"""
Monitoring & Observability Layer

Structured logging for the bridge (JSON formatting, context injection).
"""

from .logging import (
    JSONFormatter,
    ContextFilter,
    BridgeLogger,
    configure_logging,
    configure_for_environment,
    get_logger,
    set_request_context,
    clear_request_context,
    LOGGING_PRESETS,
)

__all__ = [
    'JSONFormatter',
    'ContextFilter',
    'BridgeLogger',
    'configure_logging',
    'configure_for_environment',
    'get_logger',
    'set_request_context',
    'clear_request_context',
    'LOGGING_PRESETS',
]
