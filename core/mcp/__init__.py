"""
MCP Core - Tool protocol bindings

One tool handler, two transports:
- protocol.py: JSON-RPC dispatch for the HTTP streaming (SSE) binding
- stdio.py: mcp SDK low-level server for the stdio binding
"""

from core.mcp.protocol import JsonRpcDispatcher, make_error, make_result, parse_message
from core.mcp.stdio import LocalToolBackend, ToolBackend, build_stdio_server, run_stdio_server

__all__ = [
    "JsonRpcDispatcher",
    "make_error",
    "make_result",
    "parse_message",
    "LocalToolBackend",
    "ToolBackend",
    "build_stdio_server",
    "run_stdio_server",
]
