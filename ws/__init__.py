"""
Streaming Layer - Real-time delivery for the Avatar Bridge

Components:
- channels.py: EventChannel, the queue-backed handle a transport drains
- hub.py: BroadcastHub for viewer fan-out
- protocols.py: event names and SSE / WebSocket framing

Usage:
    from ws import BroadcastHub, EventChannel

    hub = BroadcastHub(snapshot_provider=state.snapshot)

    channel = EventChannel(label="viewer")
    hub.subscribe(channel)
    try:
        async for frame in channel.frames():
            await ws.send_text(format_ws(frame))
    finally:
        hub.unsubscribe(channel)
"""

from .channels import EventChannel
from .hub import BroadcastHub
from .protocols import (
    EventType,
    Frame,
    ViewerFrame,
    format_sse,
    format_ws,
)

__all__ = [
    "EventChannel",
    "BroadcastHub",
    "EventType",
    "Frame",
    "ViewerFrame",
    "format_sse",
    "format_ws",
]
