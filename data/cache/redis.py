"""
Redis Cache - Redis-based key/value storage with TTLs

@.architecture
Incoming: core/sessions/store.py, core/context.py --- {Redis URL or injected client, set/get/delete/expire/keys requests}
Processing: connect(), disconnect(), set(), get(), delete(), expire(), keys(), health_check(), _call(), _make_key() --- {8 jobs: connection_management, key_operations, json_serialization, ttl_management, namespace_management, timeouts, health_checking, graceful_degradation}
Outgoing: Redis server (via redis.asyncio) --- {Redis GET/SET/DEL/EXPIRE/SCAN commands, JSON-serialized values, bool status, health status dict}

Provides Redis storage with:
- Async operations bounded by a per-call timeout
- JSON serialization
- TTL management
- Key namespacing

This is an optional component. Without a URL (or if the server is down at
startup) the cache reports itself disconnected and writes become no-ops.
Reads raise CacheError on failure so callers can tell "missing" from "unknown".
"""

import asyncio
import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised when a read cannot be answered (timeout, connection loss, bad data)."""
    pass


class RedisCache:
    """
    Redis cache manager with async operations.

    Features:
    - Async get/set/delete/expire operations
    - JSON serialization
    - TTL (time-to-live) support
    - Key namespacing
    - Per-call timeout
    - Graceful degradation if Redis unavailable

    Usage:
        cache = RedisCache(redis_url="redis://localhost:6379", namespace="mcp:session")
        await cache.connect()

        await cache.set("abc", {"sessionId": "abc"}, ttl=3600)
        data = await cache.get("abc")

        await cache.disconnect()
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        namespace: str = "mcp:session",
        encoding: str = "utf-8",
        timeout: float = 2.0,
        client: Optional[Any] = None
    ):
        """
        Initialize Redis cache.

        Args:
            redis_url: Redis connection URL (None disables the cache)
            namespace: Key namespace prefix
            encoding: String encoding
            timeout: Seconds allowed per Redis call
            client: Pre-built redis.asyncio compatible client (tests inject a double)
        """
        self.redis_url = redis_url
        self.namespace = namespace
        self.encoding = encoding
        self.timeout = timeout

        self._client: Optional[Any] = client
        self._connected = False

    @property
    def configured(self) -> bool:
        """Whether a backend was configured at all."""
        return self._client is not None or bool(self.redis_url)

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    async def connect(self) -> bool:
        """
        Connect to Redis server.

        Returns:
            True if connection successful, False otherwise
        """
        if not self.configured:
            logger.info("Redis not configured, sessions are process-local")
            return False

        if self._connected:
            logger.warning("Redis already connected")
            return True

        try:
            if self._client is None:
                self._client = redis.from_url(
                    self.redis_url,
                    encoding=self.encoding,
                    decode_responses=True,
                )

            # Test connection
            await asyncio.wait_for(self._client.ping(), timeout=self.timeout)

            self._connected = True
            logger.info(f"✅ Connected to Redis (namespace '{self.namespace}')")
            return True

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            return False

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if not self._connected or not self._client:
            return

        try:
            await self._client.aclose()
            logger.info("✅ Disconnected from Redis")

        except Exception as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self._connected = False

    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._connected and self._client is not None

    async def _call(self, coro):
        """Await a Redis command under the configured timeout."""
        return await asyncio.wait_for(coro, timeout=self.timeout)

    # =========================================================================
    # KEY OPERATIONS
    # =========================================================================

    def _make_key(self, key: str) -> str:
        """
        Create namespaced key.

        Args:
            key: Raw key

        Returns:
            Namespaced key (e.g., "mcp:session:<id>")
        """
        return f"{self.namespace}:{key}"

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set cache value with optional TTL.

        Args:
            key: Cache key
            value: Value to cache (will be JSON serialized)
            ttl: Optional time-to-live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.is_connected():
            return False

        try:
            serialized = json.dumps(value)
            await self._call(self._client.set(self._make_key(key), serialized, ex=ttl))
            logger.debug(f"Cached key '{key}' (TTL: {ttl}s)")
            return True

        except Exception as e:
            logger.error(f"Failed to set cache key '{key}': {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """
        Get cached value.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found (or cache not connected)

        Raises:
            CacheError: If Redis failed or timed out, or the value is not JSON
        """
        if not self.is_connected():
            return None

        try:
            value = await self._call(self._client.get(self._make_key(key)))
        except Exception as e:
            logger.error(f"Failed to get cache key '{key}': {e}")
            raise CacheError(f"Redis read failed for '{key}'") from e

        if value is None:
            return None

        try:
            return json.loads(value)
        except ValueError as e:
            raise CacheError(f"Corrupt value under '{key}'") from e

    async def delete(self, key: str) -> bool:
        """
        Delete cached value.

        Args:
            key: Cache key

        Returns:
            True if key was deleted, False otherwise
        """
        if not self.is_connected():
            return False

        try:
            result = await self._call(self._client.delete(self._make_key(key)))
            return result > 0

        except Exception as e:
            logger.error(f"Failed to delete cache key '{key}': {e}")
            return False

    async def expire(self, key: str, ttl: int) -> bool:
        """
        Set TTL on existing key.

        Args:
            key: Cache key
            ttl: Time-to-live in seconds

        Returns:
            True if TTL was set, False otherwise
        """
        if not self.is_connected():
            return False

        try:
            result = await self._call(self._client.expire(self._make_key(key), ttl))
            return bool(result)

        except Exception as e:
            logger.error(f"Failed to set TTL on key '{key}': {e}")
            return False

    async def keys(self) -> List[str]:
        """
        List raw keys (namespace stripped) in this namespace.

        Uses SCAN rather than KEYS so large keyspaces don't block the server.
        """
        if not self.is_connected():
            return []

        prefix = f"{self.namespace}:"

        async def _scan() -> List[str]:
            found = []
            async for key in self._client.scan_iter(match=f"{prefix}*"):
                found.append(key[len(prefix):])
            return found

        try:
            return await self._call(_scan())
        except Exception as e:
            logger.error(f"Failed to scan namespace '{self.namespace}': {e}")
            return []

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> dict:
        """
        Perform health check.

        Returns:
            Dict with health status
        """
        result = {
            "healthy": False,
            "configured": self.configured,
            "connected": self._connected,
            "error": None,
        }

        if not self.is_connected():
            result["error"] = "Not connected to Redis"
            return result

        try:
            await self._call(self._client.ping())
            result["healthy"] = True
        except Exception as e:
            result["error"] = str(e) or type(e).__name__
            logger.error(f"Redis health check failed: {e}")

        return result
