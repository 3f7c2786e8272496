"""
Cache Layer - Optional Redis storage

Provides:
- Redis-backed key/value storage (optional)
- TTL management
- Key namespacing
- JSON serialization

Used by the session store to share session liveness across instances.
"""

from .redis import CacheError, RedisCache

__all__ = ["CacheError", "RedisCache"]
