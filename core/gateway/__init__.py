"""
Gateway - stdio to remote SSE protocol bridge
"""

from .bridge import ProtocolBridge

__all__ = ["ProtocolBridge"]
