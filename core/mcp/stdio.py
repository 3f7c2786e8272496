"""
Stdio Binding - The tool protocol served over stdin/stdout

Builds an mcp SDK low-level Server around a tool backend. Two backends exist:
LocalToolBackend (the in-process avatar tools) and the gateway's
ProtocolBridge (a remote SSE server).

@.architecture
Incoming: main.py (--stdio), gateway.py --- {ToolBackend implementation}
Processing: build_stdio_server(), run_stdio_server(), LocalToolBackend.call_tool() --- {3 jobs: handler_registration, tool_error_translation, stdio_serving}
Outgoing: mcp SDK (mcp.server.lowlevel.Server, mcp.server.stdio.stdio_server) --- {ListToolsResult, CallToolResult, McpError}

Handlers are registered directly in Server.request_handlers rather than via
the call_tool() decorator: the decorator folds every exception into an
isError result, while tool failures must reach the client as protocol errors.
"""

from typing import Any, Dict, List, Optional, Protocol

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from core.avatar.tools import AvatarToolHandler, ToolError
from monitoring import get_logger

logger = get_logger(__name__)


class ToolBackend(Protocol):
    """Anything that can list and call tools."""

    async def list_tools(self) -> List[types.Tool]:
        ...

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        ...


class LocalToolBackend:
    """Adapts AvatarToolHandler to mcp SDK types."""

    def __init__(self, handler: AvatarToolHandler):
        self.handler = handler

    async def list_tools(self) -> List[types.Tool]:
        return [types.Tool.model_validate(tool) for tool in self.handler.list_tools()]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        try:
            result = await self.handler.call_tool(name, arguments)
        except ToolError as e:
            logger.warning(f"Tool {name} failed: {e.message}")
            raise McpError(types.ErrorData(code=e.code, message=e.message)) from e
        return types.CallToolResult.model_validate(result)


def build_stdio_server(name: str, version: str, backend: ToolBackend) -> Server:
    """
    Create an MCP server exposing the backend's tools.

    Args:
        name: Server name reported on initialize
        version: Server version reported on initialize
        backend: Tool backend

    Returns:
        Configured low-level Server
    """
    server = Server(name, version=version)

    async def _list_tools(_: types.ListToolsRequest) -> types.ServerResult:
        tools = await backend.list_tools()
        return types.ServerResult(types.ListToolsResult(tools=tools))

    async def _call_tool(req: types.CallToolRequest) -> types.ServerResult:
        result = await backend.call_tool(req.params.name, req.params.arguments)
        return types.ServerResult(result)

    server.request_handlers[types.ListToolsRequest] = _list_tools
    server.request_handlers[types.CallToolRequest] = _call_tool
    return server


async def run_stdio_server(server: Server) -> None:
    """Serve until stdin closes."""
    async with stdio_server() as (read_stream, write_stream):
        logger.info(f"🚀 {server.name} serving on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
