"""
Session Manager - Lifecycle and cross-instance resolution

@.architecture
Incoming: api/endpoints/mcp.py, core/context.py --- {EventChannel for new streams, session ids from posted messages}
Processing: open_session(), close_session(), resolve(), _beat() --- {4 jobs: id_generation, lifecycle, resolution, heartbeat_management}
Outgoing: core/sessions/registry.py, core/sessions/store.py --- {register/unregister, save/get/delete/extend_ttl, SessionNotFound/SessionUnreachable}

Resolution of a posted session id:
    1. channel registered here            -> the channel
    2. not here, no durable store         -> SessionNotFound (404)
    3. not here, store has no record      -> SessionNotFound (404)
    4. not here, store has a record       -> SessionUnreachable (503, retry)
    5. not here, store failed to answer   -> SessionUnreachable (503, retry)

Case 4 means another instance owns the stream; with sticky routing a retry
lands on it.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.errors import SessionNotFound, SessionUnreachable
from core.sessions.registry import Heartbeat, TransportRegistry
from core.sessions.store import SessionStore, SessionStoreError
from monitoring import get_logger
from ws.channels import EventChannel

logger = get_logger(__name__)


@dataclass
class Session:
    id: str
    created_at: float
    last_accessed_at: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class SessionManager:
    """
    Owns every session streamed from this process.

    Usage:
        session = await manager.open_session(channel, {"client": "..."})
        channel = await manager.resolve(session.id)
        await manager.close_session(session.id)
    """

    def __init__(
        self,
        registry: TransportRegistry,
        store: Optional[SessionStore] = None,
        heartbeat_interval: float = 30.0,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize session manager.

        Args:
            registry: Process-local channel registry
            store: Durable store (None runs single-instance)
            heartbeat_interval: Seconds between keep-alives
            clock: Wall clock in seconds
        """
        self.registry = registry
        self.store = store
        self.heartbeat_interval = heartbeat_interval
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._heartbeats: Dict[str, Heartbeat] = {}

    @property
    def store_available(self) -> bool:
        return self.store is not None and self.store.available

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def open_session(
        self,
        channel: EventChannel,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Session:
        """
        Register a new streaming connection.

        Args:
            channel: Channel the session's responses are written to
            metadata: Stored alongside the durable record

        Returns:
            The new session (id is a server-generated UUID4)
        """
        session_id = str(uuid.uuid4())
        now = self._clock()
        session = Session(
            id=session_id,
            created_at=now,
            last_accessed_at=now,
            metadata=dict(metadata or {}),
        )

        channel.label = f"session-{session_id[:8]}"
        self.registry.register(session_id, channel)
        self._sessions[session_id] = session

        if self.store is not None:
            await self.store.save(session_id, session.metadata)

        heartbeat = Heartbeat(session_id, channel, self.heartbeat_interval, on_beat=self._beat)
        self._heartbeats[session_id] = heartbeat
        heartbeat.start()

        logger.info(f"✅ Session opened: {session_id} ({self.registry.count()} active)")
        return session

    async def close_session(self, session_id: str) -> None:
        """
        Tear a session down: heartbeat, registry entry, channel, durable record.

        Safe to call more than once.
        """
        heartbeat = self._heartbeats.pop(session_id, None)
        if heartbeat is not None:
            await heartbeat.stop()

        channel = self.registry.unregister(session_id)
        self._sessions.pop(session_id, None)
        if channel is not None:
            channel.close()

        if self.store is not None:
            await self.store.delete(session_id)

        if channel is not None:
            logger.info(f"Session closed: {session_id} ({self.registry.count()} active)")

    async def close_all(self) -> None:
        """Close every local session (for shutdown)."""
        for session_id in self.registry.ids():
            await self.close_session(session_id)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    async def resolve(self, session_id: str) -> EventChannel:
        """
        Find the channel for a posted message.

        Raises:
            SessionNotFound: Unknown or expired id
            SessionUnreachable: Session lives elsewhere or the store is down
        """
        channel = self.registry.resolve(session_id)
        if channel is not None:
            self.touch(session_id)
            return channel

        if not self.store_available:
            raise SessionNotFound()

        try:
            record = await self.store.get(session_id)
        except SessionStoreError as e:
            logger.warning(f"Session store failed while resolving {session_id}: {e}")
            raise SessionUnreachable("Session store temporarily unavailable") from e

        if record is None:
            raise SessionNotFound()

        logger.info(f"Session {session_id} is owned by another instance")
        raise SessionUnreachable()

    def touch(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.last_accessed_at = self._clock()
        return True

    async def _beat(self, session_id: str) -> None:
        self.touch(session_id)
        if self.store_available:
            await self.store.extend_ttl(session_id)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def list_sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def count(self) -> int:
        return self.registry.count()

    def heartbeat_for(self, session_id: str) -> Optional[Heartbeat]:
        return self._heartbeats.get(session_id)
