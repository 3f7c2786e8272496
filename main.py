"""
Main entry point for Avatar Bridge

Runs the FastAPI app under uvicorn. With --stdio the tool protocol is also
served on stdin/stdout, sharing display state with the HTTP viewer endpoints.

@.architecture
Incoming: Command line, Environment (HOST, VIEWER_PORT, ...) --- {argv, Settings}
Processing: run(), serve_stdio() --- {3 jobs: config_loading, server_startup, stdio_serving}
Outgoing: uvicorn server, core/mcp/stdio.py, Network (HTTP/SSE/WebSocket) --- {FastAPI application instance, stdio MCP server}

Usage:
    avatar-bridge
    avatar-bridge --stdio
    HOST=0.0.0.0 VIEWER_PORT=8080 avatar-bridge
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI

from app import create_app
from config.settings import Settings, get_settings
from core.mcp.stdio import LocalToolBackend, build_stdio_server, run_stdio_server
from monitoring import get_logger

logger = get_logger(__name__)


async def serve_stdio(app: FastAPI, settings: Settings) -> None:
    """
    Serve stdio and HTTP together; HTTP stops when stdin closes.

    uvicorn runs lifespan events, so the bridge context is started by it.
    """
    context = app.state.bridge
    server = build_stdio_server(
        settings.server_name,
        settings.app_version,
        LocalToolBackend(context.tools),
    )

    http_server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        access_log=False,
        log_config=None,
    ))

    http_task = asyncio.create_task(http_server.serve())
    try:
        await run_stdio_server(server)
    finally:
        logger.info("stdin closed, stopping HTTP server")
        http_server.should_exit = True
        await http_task


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console entry point (avatar-bridge)."""
    parser = argparse.ArgumentParser(description="Avatar Bridge: MCP tools to 3D viewers")
    parser.add_argument("--stdio", action="store_true", help="Also serve the tool protocol on stdio")
    parser.add_argument("--host", help="Bind host (default: HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Bind port (default: VIEWER_PORT or 3000)")
    args = parser.parse_args(argv)

    settings = get_settings()
    server_update = {}
    if args.host:
        server_update["host"] = args.host
    if args.port:
        server_update["port"] = args.port
    if server_update:
        settings = settings.model_copy(update={"server": settings.server.model_copy(update=server_update)})

    if args.stdio:
        # stdout carries the protocol
        app = create_app(settings, log_stream=sys.stderr)
        try:
            asyncio.run(serve_stdio(app, settings))
        except KeyboardInterrupt:
            pass
        return

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
