"""
MCP Endpoints - Tool protocol over Server-Sent Events

@.architecture
Incoming: api/router.py, Tool clients (HTTP GET/POST) --- {GET /mcp/sse, POST /mcp/messages?sessionId=}
Processing: open_stream(), post_message(), session_event_stream() --- {4 jobs: session_opening, message_routing, stream_draining, cleanup}
Outgoing: core/sessions/manager.py, core/mcp/protocol.py, Tool clients (SSE) --- {endpoint/init/message events, ": ping" comments, 200 Accepted}

Stream layout:
    event: endpoint   data: /mcp/messages?sessionId=<id>
    event: init       data: {"isLoaded": ..., "modelPath": ...}
    event: message    data: <JSON-RPC response>   (repeated)
    : ping                                        (every heartbeat)
"""

from functools import partial
from typing import AsyncIterator, Dict, Optional

import anyio
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from api.dependencies import enforce_rate_limit, get_context, setup_request_context
from api.streaming import ClosingStreamingResponse
from core.context import BridgeContext
from core.errors import SessionNotFound
from core.mcp.protocol import parse_message
from core.sessions import SessionManager
from monitoring import get_logger
from ws.channels import EventChannel
from ws.protocols import SSE_HEADERS, EventType, format_sse

logger = get_logger(__name__)
router = APIRouter(prefix="/mcp", tags=["mcp"])


async def session_event_stream(
    sessions: SessionManager,
    session_id: str,
    channel: EventChannel
) -> AsyncIterator[str]:
    """
    Drain a session channel as SSE text.

    Whatever ends the stream (client disconnect, channel close, shutdown),
    the session is closed in the same cleanup path.
    """
    try:
        async for frame in channel.frames():
            yield format_sse(frame)
    finally:
        with anyio.CancelScope(shield=True):
            await sessions.close_session(session_id)


# =============================================================================
# Streaming Endpoint
# =============================================================================

@router.get(
    "/sse",
    summary="Open a tool protocol stream",
    description="Server-Sent Events stream carrying JSON-RPC responses for one session"
)
async def open_stream(
    request: Request,
    rate_headers: Dict[str, str] = Depends(enforce_rate_limit),
    context: BridgeContext = Depends(get_context)
) -> ClosingStreamingResponse:
    channel = EventChannel(maxsize=context.settings.sessions.channel_queue_size)
    session = await context.sessions.open_session(channel, metadata={
        "client": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
    })

    root_path = request.scope.get("root_path", "")
    endpoint = f"{root_path}{context.settings.sessions.messages_path}?sessionId={session.id}"
    channel.send_event(EventType.ENDPOINT.value, endpoint)
    channel.send_event(EventType.INIT.value, context.state.snapshot())

    logger.info(f"SSE client connected: {session.id}")
    return ClosingStreamingResponse(
        session_event_stream(context.sessions, session.id, channel),
        on_close=partial(context.sessions.close_session, session.id),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, **rate_headers},
    )


# =============================================================================
# Companion Request Endpoint
# =============================================================================

@router.post(
    "/messages",
    summary="Post a JSON-RPC message to a session",
    description="The JSON-RPC response is delivered on the session's stream; the HTTP body is 'Accepted'",
    response_class=PlainTextResponse
)
async def post_message(
    request: Request,
    sessionId: Optional[str] = Query(None),
    _request_id: str = Depends(setup_request_context),
    rate_headers: Dict[str, str] = Depends(enforce_rate_limit),
    context: BridgeContext = Depends(get_context)
) -> PlainTextResponse:
    if not sessionId:
        raise SessionNotFound()

    channel = await context.sessions.resolve(sessionId)
    message = parse_message(await request.body())
    await context.dispatcher.handle_and_deliver(message, channel)

    return PlainTextResponse("Accepted", status_code=200, headers=rate_headers)
