"""
Event Channels - Writable handles for streaming connections

An EventChannel decouples producers (tool handler, heartbeat, broadcast hub)
from the transport task that drains it onto an SSE response or a WebSocket.
Writes are synchronous and never block; the transport awaits frames.

@.architecture
Incoming: core/sessions/manager.py, ws/hub.py, core/mcp/protocol.py --- {send_event(), send_keepalive(), close()}
Processing: bounded asyncio.Queue, overflow dropping, close sentinel --- {3 jobs: buffering, backpressure, shutdown_signalling}
Outgoing: api/endpoints/mcp.py, api/endpoints/viewer.py --- {async iterator of Frame}
"""

import asyncio
from typing import Any, AsyncIterator, Optional

from monitoring import get_logger
from ws.protocols import CHANNEL_QUEUE_SIZE, KEEPALIVE_COMMENT, Frame

logger = get_logger(__name__)

_CLOSED = object()


class EventChannel:
    """
    Queue-backed, write-only view of one streaming connection.

    Delivery is at-most-once: when the queue is full the frame is dropped and
    a warning logged. After close() every write is refused.
    """

    def __init__(self, maxsize: int = CHANNEL_QUEUE_SIZE, label: Optional[str] = None):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.label = label or f"channel-{id(self):x}"

    @property
    def writable(self) -> bool:
        return not self._closed

    def send_event(self, event: str, data: Any) -> bool:
        """Queue a named event. Returns False if the frame was not accepted."""
        return self._put(Frame(event=event, data=data))

    def send_keepalive(self, comment: str = KEEPALIVE_COMMENT) -> bool:
        """Queue a comment frame that keeps proxies from idling the stream out."""
        return self._put(Frame(comment=comment))

    def _put(self, frame: Frame) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning(f"Channel {self.label} is full, dropping {frame.event or 'comment'} frame")
            return False

    def close(self) -> None:
        """Stop accepting writes and wake the transport so it can finish."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            # Make room for the sentinel; the reader is going away anyway
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield queued frames until the channel is closed."""
        while True:
            frame = await self._queue.get()
            if frame is _CLOSED:
                return
            yield frame

    def pending(self) -> int:
        """Frames waiting to be written."""
        return self._queue.qsize()

    def __repr__(self) -> str:
        state = "open" if self.writable else "closed"
        return f"<EventChannel {self.label} {state} pending={self.pending()}>"
