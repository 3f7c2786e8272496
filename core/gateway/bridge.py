"""
Protocol Bridge - Remote SSE MCP server exposed as a local tool backend

Used when the tool-calling host and the streaming server run as separate
processes. The host talks stdio to gateway.py; the bridge forwards to the
remote server over SSE.

@.architecture
Incoming: gateway.py, core/mcp/stdio.py --- {GatewaySettings, list_tools/call_tool from the stdio server}
Processing: connect(), close(), list_tools(), call_tool() --- {3 jobs: remote_session_lifecycle, lenient_listing, strict_forwarding}
Outgoing: Remote MCP server (mcp.client.sse.sse_client + ClientSession) --- {initialize, tools/list, tools/call with x-api-key header}

Error policy:
- tools/list failure: logged, an empty list is returned
- tools/call failure: propagated unchanged (remote protocol errors included)
"""

from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

import mcp.types as types
from mcp import ClientSession
from mcp.client.sse import sse_client

from monitoring import get_logger

logger = get_logger(__name__)


class ProtocolBridge:
    """
    Client side of the gateway.

    Usage:
        bridge = ProtocolBridge("http://localhost:3000/mcp/sse", api_key="...")
        await bridge.connect()
        tools = await bridge.list_tools()
        await bridge.close()
    """

    def __init__(
        self,
        remote_url: str,
        api_key: Optional[str] = None,
        connect_timeout: float = 10.0,
        sse_read_timeout: float = 300.0
    ):
        """
        Initialize the bridge.

        Args:
            remote_url: SSE endpoint of the remote server
            api_key: Shared secret sent as the x-api-key header
            connect_timeout: HTTP timeout for the initial connection
            sse_read_timeout: Max idle time on the event stream
        """
        self.remote_url = remote_url
        self.api_key = api_key
        self.connect_timeout = connect_timeout
        self.sse_read_timeout = sse_read_timeout

        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key} if self.api_key else {}

    async def connect(self) -> None:
        """
        Open the SSE stream and run the initialize handshake.

        Raises:
            Exception: Whatever the transport or handshake raised
        """
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(
                sse_client(
                    self.remote_url,
                    headers=self._headers(),
                    timeout=self.connect_timeout,
                    sse_read_timeout=self.sse_read_timeout,
                )
            )
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        logger.info(f"✅ Connected to remote MCP server: {self.remote_url}")

    async def close(self) -> None:
        """Close the remote session."""
        stack, self._stack = self._stack, None
        self._session = None
        if stack is not None:
            await stack.aclose()
            logger.info("Disconnected from remote MCP server")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError("Gateway is not connected to the remote server")
        return self._session

    async def list_tools(self) -> List[types.Tool]:
        """Remote tool list, or an empty list if the remote call fails."""
        try:
            result = await self._require_session().list_tools()
        except Exception as e:
            logger.error(f"Failed to list remote tools: {e}")
            return []
        return list(result.tools)

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None
    ) -> types.CallToolResult:
        """
        Forward a tool call with identical name and arguments.

        Raises:
            McpError: Remote protocol error, unchanged
            Exception: Transport failures
        """
        try:
            return await self._require_session().call_tool(name, arguments)
        except Exception as e:
            logger.error(f"Remote tool call {name} failed: {e}")
            raise
