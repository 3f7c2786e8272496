"""
Sessions - Streaming session lifecycle

- registry.py: process-local id -> channel map, per-session heartbeat
- store.py: durable records in Redis shared by all instances
- manager.py: open/close and cross-instance resolution
"""

from .manager import Session, SessionManager
from .registry import Heartbeat, TransportRegistry
from .store import SessionRecord, SessionStore, SessionStoreError

__all__ = [
    "Session",
    "SessionManager",
    "Heartbeat",
    "TransportRegistry",
    "SessionRecord",
    "SessionStore",
    "SessionStoreError",
]
