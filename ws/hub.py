"""
Broadcast Hub - Viewer fan-out

Central hub tracking viewer connections and pushing display deltas to them.

@.architecture
Incoming: api/endpoints/viewer.py, core/avatar/tools.py --- {EventChannel subscribe/unsubscribe, publish(event, payload)}
Processing: subscribe(), unsubscribe(), publish(), snapshot_provider() --- {3 jobs: membership, init_snapshot, broadcasting}
Outgoing: ws/channels.py, Viewers (SSE/WebSocket) --- {init event on subscribe, event frames on publish, delivered count}

Features:
- Set membership keyed by channel identity
- Immediate init snapshot for new viewers
- Best-effort delivery: closed channels are skipped, not removed
- Synchronous publish so the caller's state change and its broadcast are atomic
"""

from typing import Any, Callable, Dict, Optional, Set

from monitoring import get_logger
from ws.channels import EventChannel
from ws.protocols import EventType

logger = get_logger(__name__)

SnapshotProvider = Callable[[], Dict[str, Any]]


class BroadcastHub:
    """
    Fan-out of display events to passive viewers.

    Membership is removed only by the transport's close path (unsubscribe);
    publish never mutates the member set.
    """

    def __init__(self, snapshot_provider: Optional[SnapshotProvider] = None):
        """
        Initialize broadcast hub.

        Args:
            snapshot_provider: Returns the init payload sent to new subscribers
        """
        self._snapshot_provider = snapshot_provider
        self._subscribers: Set[EventChannel] = set()

    def subscribe(self, channel: EventChannel) -> None:
        """
        Add a viewer and send it the current snapshot.

        Args:
            channel: Viewer channel
        """
        self._subscribers.add(channel)
        if self._snapshot_provider is not None:
            channel.send_event(EventType.INIT.value, self._snapshot_provider())
        logger.info(f"Viewer subscribed: {channel.label} ({len(self._subscribers)} total)")

    def unsubscribe(self, channel: EventChannel) -> None:
        """Remove a viewer (no-op if it was never subscribed)."""
        if channel in self._subscribers:
            self._subscribers.discard(channel)
            logger.info(f"Viewer unsubscribed: {channel.label} ({len(self._subscribers)} total)")

    def publish(self, event: str, payload: Dict[str, Any]) -> int:
        """
        Push an event to every writable viewer.

        Args:
            event: Event name
            payload: JSON-serializable payload

        Returns:
            Number of viewers the frame was queued for
        """
        delivered = 0
        for channel in list(self._subscribers):
            if not channel.writable:
                continue
            if channel.send_event(event, payload):
                delivered += 1
        logger.debug(f"Broadcast {event} to {delivered}/{len(self._subscribers)} viewers")
        return delivered

    def get_viewer_count(self) -> int:
        """
        Get number of subscribed viewers.

        Returns:
            Number of viewers
        """
        return len(self._subscribers)

    def close_all(self) -> None:
        """Close every viewer channel (for shutdown)."""
        channels = list(self._subscribers)
        self._subscribers.clear()
        for channel in channels:
            channel.close()
        logger.info("All viewers closed")
