"""
Session Store - Durable session liveness across instances

@.architecture
Incoming: core/sessions/manager.py, core/context.py --- {session id, metadata}
Processing: save(), get(), delete(), extend_ttl(), list_ids(), count() --- {4 jobs: record_serialization, ttl_renewal, failure_translation, debug_listing}
Outgoing: data/cache/redis.py --- {SessionRecord JSON under "mcp:session:<id>" with TTL}

Records are JSON objects with camelCase keys and epoch-millisecond timestamps:
    {"sessionId": "...", "createdAt": 1700000000000,
     "lastAccessedAt": 1700000000000, "metadata": {}}

Every write carries the TTL. Reading a record renews it (lastAccessedAt and
TTL). When Redis is not configured or unreachable the store is "unavailable":
writes are no-ops and get() returns None.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from data.cache import CacheError, RedisCache

logger = logging.getLogger(__name__)


class SessionStoreError(Exception):
    """The store could not answer (timeout, connection loss, corrupt record)."""
    pass


def _now_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


@dataclass
class SessionRecord:
    """Durable view of a session."""
    session_id: str
    created_at: int
    last_accessed_at: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at,
            "lastAccessedAt": self.last_accessed_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        return cls(
            session_id=data["sessionId"],
            created_at=int(data["createdAt"]),
            last_accessed_at=int(data["lastAccessedAt"]),
            metadata=data.get("metadata") or {},
        )


class SessionStore:
    """
    Session records in Redis, keyed "mcp:session:<id>".

    Usage:
        store = SessionStore(RedisCache(redis_url, namespace="mcp:session"), ttl_seconds=3600)
        await store.connect()
        await store.save(session_id, {"client": "..."})
        record = await store.get(session_id)
    """

    def __init__(
        self,
        cache: RedisCache,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize session store.

        Args:
            cache: Namespaced Redis cache
            ttl_seconds: Lifetime of a record without renewal
            clock: Wall clock in seconds
        """
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def available(self) -> bool:
        """Whether a durable backend is connected."""
        return self.cache.is_connected()

    async def connect(self) -> bool:
        return await self.cache.connect()

    async def disconnect(self) -> None:
        await self.cache.disconnect()

    async def save(
        self,
        session_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> SessionRecord:
        """
        Write a fresh record for a new session.

        Args:
            session_id: Session id
            metadata: Arbitrary JSON-serializable metadata

        Returns:
            The record (returned even when the store is unavailable)
        """
        now = _now_ms(self._clock)
        record = SessionRecord(
            session_id=session_id,
            created_at=now,
            last_accessed_at=now,
            metadata=dict(metadata or {}),
        )
        if self.available:
            if not await self.cache.set(session_id, record.to_dict(), ttl=self.ttl_seconds):
                logger.warning(f"Session {session_id} was not persisted")
        return record

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """
        Read a record and renew it.

        Args:
            session_id: Session id

        Returns:
            The record with a fresh lastAccessedAt, or None if absent

        Raises:
            SessionStoreError: If the store failed to answer
        """
        if not self.available:
            return None

        try:
            data = await self.cache.get(session_id)
        except CacheError as e:
            raise SessionStoreError(str(e)) from e

        if data is None:
            return None

        try:
            record = SessionRecord.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise SessionStoreError(f"Malformed session record for {session_id}") from e

        record.last_accessed_at = max(record.last_accessed_at, _now_ms(self._clock))
        await self.cache.set(session_id, record.to_dict(), ttl=self.ttl_seconds)
        return record

    async def delete(self, session_id: str) -> bool:
        """Remove a record. Returns True if something was deleted."""
        if not self.available:
            return False
        return await self.cache.delete(session_id)

    async def extend_ttl(self, session_id: str) -> bool:
        """Reset the record's TTL without rewriting it."""
        if not self.available:
            return False
        return await self.cache.expire(session_id, self.ttl_seconds)

    async def list_ids(self) -> List[str]:
        """Ids of every live record (debugging aid)."""
        if not self.available:
            return []
        return await self.cache.keys()

    async def count(self) -> int:
        """Number of live records across all instances."""
        return len(await self.list_ids())
