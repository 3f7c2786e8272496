"""
JSON-RPC Dispatcher - Tool protocol over the HTTP streaming binding

Handles the MCP methods a tool client sends over POST /mcp/messages. Results
are written back on the session's SSE stream as "message" events.

@.architecture
Incoming: api/endpoints/mcp.py --- {raw request body, EventChannel of the session}
Processing: parse_message(), dispatch(), handle_and_deliver(), make_result(), make_error() --- {4 jobs: parsing, method_routing, tool_error_mapping, response_delivery}
Outgoing: core/avatar/tools.py, ws/channels.py --- {call_tool/list_tools, JSON-RPC responses as message events}

Methods:
    initialize                  -> protocolVersion, capabilities, serverInfo
    notifications/initialized   -> (no response)
    ping                        -> {}
    tools/list                  -> {"tools": [...]}
    tools/call                  -> tool result, or a JSON-RPC error for ToolError

Tool-domain failures become JSON-RPC error objects; anything else propagates
to the HTTP layer as a 500.
"""

import json
from typing import Any, Dict, Optional, Union

from mcp.types import LATEST_PROTOCOL_VERSION

from core.avatar.tools import AvatarToolHandler, ToolError
from core.errors import InvalidMessage
from monitoring import get_logger
from ws.channels import EventChannel
from ws.protocols import EventType

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def make_result(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def parse_message(body: Union[bytes, str]) -> Dict[str, Any]:
    """
    Decode a posted JSON-RPC message.

    Raises:
        InvalidMessage: Not JSON, not an object, or not JSON-RPC 2.0
    """
    try:
        message = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidMessage(f"Invalid JSON: {e}") from e

    if isinstance(message, list):
        raise InvalidMessage("Batch messages are not supported")
    if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidMessage("Expected a JSON-RPC 2.0 message")
    if "method" not in message and "result" not in message and "error" not in message:
        raise InvalidMessage("Message has neither method nor result")
    return message


class JsonRpcDispatcher:
    """
    Routes JSON-RPC requests to the tool handler.

    Usage:
        dispatcher = JsonRpcDispatcher(tools, server_name="vrm-mcp-server", server_version="0.1.0")
        response = await dispatcher.dispatch(message)
    """

    def __init__(
        self,
        tools: AvatarToolHandler,
        server_name: str,
        server_version: str
    ):
        self.tools = tools
        self.server_info = {"name": server_name, "version": server_version}

    async def dispatch(self, message: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Handle one message.

        Returns:
            The JSON-RPC response, or None for notifications and client responses
        """
        method = message.get("method")
        request_id = message.get("id")

        if method is None:
            # A response to a server-initiated request; nothing is ever pending
            return None

        if request_id is None:
            logger.debug(f"Notification received: {method}")
            return None

        raw_params = message.get("params")
        if raw_params is None:
            params: Dict[str, Any] = {}
        elif isinstance(raw_params, dict):
            params = raw_params
        else:
            return make_error(request_id, INVALID_PARAMS, "Invalid params")

        if method == "initialize":
            requested = params.get("protocolVersion")
            return make_result(request_id, {
                "protocolVersion": requested if isinstance(requested, str) else LATEST_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": self.server_info,
            })

        if method == "ping":
            return make_result(request_id, {})

        if method == "tools/list":
            return make_result(request_id, {"tools": self.tools.list_tools()})

        if method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                return make_error(request_id, INVALID_PARAMS, "Invalid tool name")
            try:
                result = await self.tools.call_tool(name, params.get("arguments"))
            except ToolError as e:
                logger.warning(f"Tool {name} failed: {e.message}")
                return make_error(request_id, e.code, e.message)
            return make_result(request_id, result)

        return make_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    async def handle_and_deliver(self, message: Dict[str, Any], channel: EventChannel) -> Optional[Dict[str, Any]]:
        """
        Dispatch a message and push the response onto the session stream.

        A response for a channel that closed meanwhile is dropped.
        """
        response = await self.dispatch(message)
        if response is not None:
            if not channel.send_event(EventType.MESSAGE.value, response):
                logger.info(f"Dropped response for closed stream {channel.label}")
        return response
