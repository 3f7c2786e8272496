"""
Transport Registry - Process-local session channels

@.architecture
Incoming: core/sessions/manager.py --- {session id, EventChannel}
Processing: register(), resolve(), unregister(), Heartbeat._run() --- {3 jobs: channel_tracking, keepalive_writing, ttl_renewal_callback}
Outgoing: core/sessions/manager.py --- {EventChannel or None, keep-alive comments on channels}

The registry only knows channels owned by this process. At most one channel
per session id.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from ws.channels import EventChannel

logger = logging.getLogger(__name__)


class TransportRegistry:
    """Map of session id to the channel streaming that session's responses."""

    def __init__(self):
        self._channels: Dict[str, EventChannel] = {}

    def register(self, session_id: str, channel: EventChannel) -> None:
        """
        Bind a session id to its channel.

        Raises:
            ValueError: If the id is already registered
        """
        if session_id in self._channels:
            raise ValueError(f"Session {session_id} is already registered")
        self._channels[session_id] = channel

    def resolve(self, session_id: str) -> Optional[EventChannel]:
        return self._channels.get(session_id)

    def unregister(self, session_id: str) -> Optional[EventChannel]:
        return self._channels.pop(session_id, None)

    def count(self) -> int:
        return len(self._channels)

    def ids(self) -> List[str]:
        return list(self._channels.keys())


class Heartbeat:
    """
    Periodic keep-alive for one session.

    Every interval: write a comment on the channel, then run the beat callback
    (touch the session, renew its TTL). Ends on its own once the channel stops
    being writable; stop() cancels it immediately.
    """

    def __init__(
        self,
        session_id: str,
        channel: EventChannel,
        interval: float,
        on_beat: Optional[Callable[[str], Awaitable[None]]] = None
    ):
        self.session_id = session_id
        self.channel = channel
        self.interval = interval
        self._on_beat = on_beat
        self._task: Optional[asyncio.Task] = None
        self.beats = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"heartbeat-{self.session_id}")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.channel.writable:
                logger.debug(f"Heartbeat for {self.session_id} ended, channel closed")
                return
            self.channel.send_keepalive()
            self.beats += 1
            if self._on_beat is None:
                continue
            try:
                await self._on_beat(self.session_id)
            except Exception as e:
                logger.error(f"Heartbeat callback failed for {self.session_id}: {e}")
