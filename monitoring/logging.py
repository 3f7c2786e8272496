"""
Structured Logging - Monitoring Layer

Every process of the bridge (HTTP server, stdio server, gateway) configures
logging once at startup through configure_for_environment(). Log records
carry the request and session in flight so a tool call can be followed from
the POST that carried it to the stream that answered it.

The stdio binding owns stdout for protocol frames, so the console stream is
selectable and stdio mode passes sys.stderr.

@.architecture
Incoming: app.py, gateway.py, api/dependencies.py, All modules via get_logger() --- {str environment, str level, str format_type, TextIO stream, str request_id/session_id}
Processing: configure_logging(), configure_for_environment(), BridgeFormatter.format(), set_request_context() --- {3 jobs: context_injection, formatting, log_configuration}
Outgoing: sys.stdout or sys.stderr --- {text or JSON log lines}
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, TextIO, Tuple

request_id_ctx: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
session_id_ctx: ContextVar[Optional[str]] = ContextVar('session_id', default=None)

TEXT_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-28s | [%(session_id)s] | %(message)s'


# =============================================================================
# Formatting
# =============================================================================

class ContextFilter(logging.Filter):
    """Stamp request_id / session_id onto every record ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or '-'
        record.session_id = session_id_ctx.get() or '-'
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Context ids are only emitted when set; fields passed through
    BridgeLogger keyword arguments land under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for key in ('request_id', 'session_id'):
            value = getattr(record, key, None)
            if value and value != '-':
                entry[key] = value

        extra_fields = getattr(record, 'extra_fields', None)
        if extra_fields:
            entry['extra'] = extra_fields

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# =============================================================================
# Loggers
# =============================================================================

class BridgeLogger(logging.LoggerAdapter):
    """
    Logger adapter that turns keyword arguments into structured fields.

        logger.info("Session opened", transport="sse")
    """

    _PASSTHROUGH = ('exc_info', 'stack_info', 'stacklevel', 'extra')

    def __init__(self, name: str):
        super().__init__(logging.getLogger(name), {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in self._PASSTHROUGH}
        if fields:
            extra = dict(kwargs.get('extra') or {})
            extra['extra_fields'] = fields
            kwargs['extra'] = extra
        return msg, kwargs


def get_logger(name: str) -> BridgeLogger:
    """
    Get structured logger for module.

    Args:
        name: Logger name (usually __name__)
    """
    return BridgeLogger(name)


# =============================================================================
# Request Context
# =============================================================================

def set_request_context(
    request_id: Optional[str] = None,
    session_id: Optional[str] = None
) -> None:
    """Bind ids to the current task; unset arguments leave the old value."""
    if request_id:
        request_id_ctx.set(request_id)
    if session_id:
        session_id_ctx.set(session_id)


def clear_request_context() -> None:
    request_id_ctx.set(None)
    session_id_ctx.set(None)


# =============================================================================
# Configuration
# =============================================================================

def configure_logging(
    level: str = "INFO",
    format_type: str = "text",
    stream: Optional[TextIO] = None,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Replace the root handlers with a single console handler.

    Args:
        level: Root log level
        format_type: "json" or "text"
        stream: Console stream, defaults to stdout
        module_levels: Per-logger overrides, e.g. {"mcp": "WARNING"}
    """
    if format_type == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = [handler]

    for module_name, module_level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper(), logging.INFO))


_QUIET_LIBRARIES = {
    'httpx': 'WARNING',
    'httpcore': 'WARNING',
    'asyncio': 'WARNING',
    'uvicorn.access': 'WARNING',
    'mcp': 'WARNING',
}

# Keyed by Settings.environment
LOGGING_PRESETS: Dict[str, Dict[str, Any]] = {
    'development': {'level': 'INFO', 'format_type': 'text', 'module_levels': _QUIET_LIBRARIES},
    'production': {'level': 'INFO', 'format_type': 'json', 'module_levels': _QUIET_LIBRARIES},
    'test': {'level': 'WARNING', 'format_type': 'text', 'module_levels': {**_QUIET_LIBRARIES, 'mcp': 'ERROR'}},
}


def configure_for_environment(environment: str, **overrides: Any) -> None:
    """
    Configure logging from the preset for an environment.

    Overrides whose value is None are ignored, so callers can pass optional
    settings straight through.

    Raises:
        ValueError: Unknown environment
    """
    if environment not in LOGGING_PRESETS:
        raise ValueError(f"Unknown environment: {environment}. Available: {list(LOGGING_PRESETS)}")

    config = dict(LOGGING_PRESETS[environment])
    config.update({k: v for k, v in overrides.items() if v is not None})
    configure_logging(**config)
