"""
Avatar Gateway - Entry Point

Serves MCP over stdio to a local tool-calling host and forwards everything
to a remote Avatar Bridge over SSE.

@.architecture
Incoming: Command line, Environment (MCP_REMOTE_URL, MCP_API_KEY) --- {argv, Settings}
Processing: main(), serve() --- {3 jobs: logging_setup, remote_connect_first, stdio_serving}
Outgoing: core/gateway/bridge.py, core/mcp/stdio.py --- {ProtocolBridge, stdio MCP server}

Exit codes: 0 on normal shutdown, 1 if the remote server cannot be reached at
startup.

Usage:
    avatar-gateway
    MCP_REMOTE_URL=https://bridge.example.com/mcp/sse MCP_API_KEY=... avatar-gateway
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from config.settings import Settings, get_settings
from core.gateway import ProtocolBridge
from core.mcp.stdio import build_stdio_server, run_stdio_server
from monitoring import configure_for_environment, get_logger

logger = get_logger(__name__)


async def serve(settings: Settings, bridge: Optional[ProtocolBridge] = None) -> int:
    """
    Connect to the remote server, then serve stdio.

    Returns:
        Process exit code
    """
    bridge = bridge or ProtocolBridge(
        settings.gateway.remote_url,
        api_key=settings.gateway.api_key,
        connect_timeout=settings.gateway.connect_timeout_seconds,
        sse_read_timeout=settings.gateway.sse_read_timeout_seconds,
    )

    try:
        await bridge.connect()
    except Exception as e:
        logger.error(f"❌ Failed to connect to remote MCP server {settings.gateway.remote_url}: {e}")
        return 1

    server = build_stdio_server(f"{settings.server_name}-gateway", settings.app_version, bridge)
    try:
        await run_stdio_server(server)
    finally:
        await bridge.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Console entry point (avatar-gateway)."""
    parser = argparse.ArgumentParser(description="Bridge a stdio MCP client to a remote Avatar Bridge")
    parser.add_argument("--remote-url", help="Remote SSE endpoint (default: MCP_REMOTE_URL)")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.remote_url:
        settings = settings.model_copy(
            update={"gateway": settings.gateway.model_copy(update={"remote_url": args.remote_url})}
        )

    # stdout carries the protocol
    configure_for_environment(
        settings.environment,
        level=settings.monitoring.log_level,
        format_type=settings.monitoring.log_format,
        stream=sys.stderr,
    )

    try:
        code = asyncio.run(serve(settings))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
