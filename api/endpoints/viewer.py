"""
Viewer Endpoints - Display event streams

Passive viewers (the 3D renderer) subscribe here. No authentication: the
streams only carry display state.

@.architecture
Incoming: api/router.py, Viewers (HTTP GET / WebSocket) --- {GET /viewer/sse, WS /viewer/ws}
Processing: viewer_sse(), viewer_ws(), viewer_event_stream(), close_viewer(), _pump(), _drain_incoming() --- {3 jobs: subscription, frame_delivery, cleanup}
Outgoing: ws/hub.py, Viewers --- {init + display events as SSE or {"type", "data"} JSON frames}
"""

import asyncio
from functools import partial
from typing import AsyncIterator

import anyio
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from api.dependencies import get_context
from api.streaming import ClosingStreamingResponse
from core.context import BridgeContext
from core.sessions.registry import Heartbeat
from monitoring import get_logger
from ws.channels import EventChannel
from ws.hub import BroadcastHub
from ws.protocols import SSE_HEADERS, WS_SEND_TIMEOUT, format_sse, format_ws

logger = get_logger(__name__)
router = APIRouter(prefix="/viewer", tags=["viewer"])


async def close_viewer(hub: BroadcastHub, channel: EventChannel, heartbeat: Heartbeat) -> None:
    """Stop the heartbeat, unsubscribe and close the channel. Safe to repeat."""
    await heartbeat.stop()
    hub.unsubscribe(channel)
    channel.close()


async def viewer_event_stream(
    hub: BroadcastHub,
    channel: EventChannel,
    heartbeat: Heartbeat
) -> AsyncIterator[str]:
    """Drain a viewer channel as SSE text; unsubscribes when the stream ends."""
    try:
        async for frame in channel.frames():
            yield format_sse(frame)
    finally:
        with anyio.CancelScope(shield=True):
            await close_viewer(hub, channel, heartbeat)


@router.get(
    "/sse",
    summary="Viewer event stream (SSE)"
)
async def viewer_sse(context: BridgeContext = Depends(get_context)) -> ClosingStreamingResponse:
    channel = EventChannel(maxsize=context.settings.sessions.channel_queue_size, label="viewer-sse")
    context.hub.subscribe(channel)

    heartbeat = Heartbeat(channel.label, channel, context.settings.sessions.heartbeat_interval_seconds)
    heartbeat.start()

    return ClosingStreamingResponse(
        viewer_event_stream(context.hub, channel, heartbeat),
        on_close=partial(close_viewer, context.hub, channel, heartbeat),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def _pump(websocket: WebSocket, channel: EventChannel) -> None:
    """Write queued frames to the socket until the channel closes."""
    async for frame in channel.frames():
        text = format_ws(frame)
        if text is None:
            continue
        await asyncio.wait_for(websocket.send_text(text), timeout=WS_SEND_TIMEOUT)


async def _drain_incoming(websocket: WebSocket) -> None:
    """Read and discard client messages until the peer disconnects."""
    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return
    except WebSocketDisconnect:
        return


@router.websocket("/ws")
async def viewer_ws(websocket: WebSocket, context: BridgeContext = Depends(get_context)):
    """
    Viewer event stream (WebSocket).

    Frames are {"type": event, "data": payload}. Anything the viewer sends is
    ignored; the connection is write-only. The connection ends when either the
    peer disconnects or a write fails.
    """
    await websocket.accept()

    channel = EventChannel(maxsize=context.settings.sessions.channel_queue_size, label="viewer-ws")
    context.hub.subscribe(channel)
    pump = asyncio.create_task(_pump(websocket, channel))
    incoming = asyncio.create_task(_drain_incoming(websocket))

    try:
        await asyncio.wait({pump, incoming}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        context.hub.unsubscribe(channel)
        channel.close()

        for task in (pump, incoming):
            task.cancel()
        pump_failed = False
        for task in (pump, incoming):
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                pump_failed = pump_failed or task is pump
                logger.warning(f"Viewer WebSocket {'write' if task is pump else 'read'} failed: {e}")

        if pump_failed:
            try:
                await asyncio.wait_for(websocket.close(), timeout=WS_SEND_TIMEOUT)
            except Exception as e:
                logger.debug(f"Viewer WebSocket close failed: {e}")
        logger.info("Viewer WebSocket disconnected")
