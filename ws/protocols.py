"""
Streaming Protocol Definitions

Defines event names, frame schemas and wire formatting for the two streaming
transports the bridge speaks: Server-Sent Events (tool clients and viewers)
and WebSocket (viewers).

@.architecture
Incoming: ws/channels.py, ws/hub.py, api/endpoints/ --- {Frame objects, raw WebSocket JSON}
Processing: format_sse(), format_ws(), ViewerFrame validation --- {3 jobs: sse_encoding, ws_encoding, schema_validation}
Outgoing: api/endpoints/mcp.py, api/endpoints/viewer.py --- {SSE text chunks, JSON text frames}

SSE framing:
    event: <name>\\n
    data: <line>\\n  (one per line of payload)
    \\n
Keep-alive comments are ": ping\\n\\n" and are ignored by EventSource clients.

WebSocket framing (viewer only):
    {"type": "<event>", "data": <payload>}
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class EventType(str, Enum):
    """Event names written on streaming channels"""
    # Protocol stream
    ENDPOINT = "endpoint"
    MESSAGE = "message"

    # Display stream
    INIT = "init"
    LOAD_VRM_MODEL = "load_vrm_model"
    SET_VRM_EXPRESSION = "set_vrm_expression"
    SET_VRM_POSE = "set_vrm_pose"
    ANIMATE_VRM_BONE = "animate_vrm_bone"
    LOAD_VRMA_ANIMATION = "load_vrma_animation"
    PLAY_VRMA_ANIMATION = "play_vrma_animation"
    STOP_VRMA_ANIMATION = "stop_vrma_animation"


@dataclass(frozen=True)
class Frame:
    """
    One unit written to a channel.

    Either a named event with a payload, or a bare comment (keep-alive).
    """
    event: Optional[str] = None
    data: Any = None
    comment: Optional[str] = None

    @property
    def is_comment(self) -> bool:
        return self.comment is not None


class ViewerFrame(BaseModel):
    """
    WebSocket frame pushed to viewers.

    Examples:
        {"type": "init", "data": {"isLoaded": false, "modelPath": null}}
        {"type": "load_vrm_model", "data": {"filePath": "/models/character.vrm"}}
    """
    type: str
    data: Any = None


def format_sse(frame: Frame) -> str:
    """
    Encode a frame as an SSE chunk.

    String payloads are written verbatim (the endpoint event carries a bare
    URL); everything else is JSON encoded.
    """
    if frame.is_comment:
        return f": {frame.comment}\n\n"

    payload = frame.data if isinstance(frame.data, str) else json.dumps(frame.data)
    lines = [f"event: {frame.event}"] if frame.event else []
    lines.extend(f"data: {line}" for line in payload.split("\n"))
    return "\n".join(lines) + "\n\n"


def format_ws(frame: Frame) -> Optional[str]:
    """Encode a frame as a WebSocket text message (comments have no WS form)."""
    if frame.is_comment:
        return None
    return ViewerFrame(type=frame.event, data=frame.data).model_dump_json()


# Protocol constants
WS_SEND_TIMEOUT = 3.0  # Timeout for sending to single client
KEEPALIVE_COMMENT = "ping"
CHANNEL_QUEUE_SIZE = 256  # Frames buffered per channel before dropping
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
