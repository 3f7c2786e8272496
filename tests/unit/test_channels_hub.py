"""
Unit Tests: Streaming Channels

Tests for EventChannel buffering, BroadcastHub fan-out and wire formatting.
"""

import json

import pytest

from ws.channels import EventChannel
from ws.hub import BroadcastHub
from ws.protocols import Frame, format_sse, format_ws


# =============================================================================
# Channel Tests
# =============================================================================

class TestEventChannel:
    """Test EventChannel."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_frames_in_order_until_closed(self):
        channel = EventChannel()
        channel.send_event("a", 1)
        channel.send_keepalive()
        channel.send_event("b", 2)
        channel.close()

        frames = [frame async for frame in channel.frames()]

        assert frames == [Frame(event="a", data=1), Frame(comment="ping"), Frame(event="b", data=2)]

    @pytest.mark.unit
    def test_closed_channel_refuses_writes(self):
        channel = EventChannel()
        channel.close()

        assert not channel.writable
        assert not channel.send_event("a", 1)
        assert not channel.send_keepalive()

    @pytest.mark.unit
    def test_overflow_drops_frames(self):
        channel = EventChannel(maxsize=2)

        assert channel.send_event("a", 1)
        assert channel.send_event("b", 2)
        assert not channel.send_event("c", 3)
        assert channel.pending() == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_on_full_queue_still_terminates(self):
        channel = EventChannel(maxsize=1)
        channel.send_event("a", 1)
        channel.close()

        frames = [frame async for frame in channel.frames()]

        assert frames == []


# =============================================================================
# Broadcast Hub Tests
# =============================================================================

class TestBroadcastHub:
    """Test BroadcastHub."""

    @pytest.fixture
    def hub(self):
        return BroadcastHub(snapshot_provider=lambda: {"isLoaded": False, "modelPath": None})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_subscribe_sends_init(self, hub, next_frame):
        channel = EventChannel()

        hub.subscribe(channel)

        frame = await next_frame(channel)
        assert frame.event == "init"
        assert frame.data == {"isLoaded": False, "modelPath": None}
        assert hub.get_viewer_count() == 1

    @pytest.mark.unit
    def test_publish_counts_deliveries(self, hub):
        channels = [EventChannel() for _ in range(3)]
        for channel in channels:
            hub.subscribe(channel)

        assert hub.publish("set_vrm_expression", {"expression": "happy", "weight": 1.0}) == 3
        assert all(channel.pending() == 2 for channel in channels)

    @pytest.mark.unit
    def test_publish_with_no_viewers(self, hub):
        assert hub.publish("stop_vrma_animation", {}) == 0

    @pytest.mark.unit
    def test_closed_channels_are_skipped_not_removed(self, hub):
        open_channel, closed_channel = EventChannel(), EventChannel()
        hub.subscribe(open_channel)
        hub.subscribe(closed_channel)
        closed_channel.close()

        assert hub.publish("stop_vrma_animation", {}) == 1
        assert hub.get_viewer_count() == 2

    @pytest.mark.unit
    def test_full_channel_does_not_block_others(self, hub):
        slow = EventChannel(maxsize=1)
        fast = EventChannel()
        hub.subscribe(slow)
        hub.subscribe(fast)

        assert hub.publish("stop_vrma_animation", {}) == 1
        assert fast.pending() == 2

    @pytest.mark.unit
    def test_unsubscribe_and_close_all(self, hub):
        first, second = EventChannel(), EventChannel()
        hub.subscribe(first)
        hub.subscribe(second)

        hub.unsubscribe(first)
        hub.unsubscribe(first)
        assert hub.get_viewer_count() == 1

        hub.close_all()
        assert hub.get_viewer_count() == 0
        assert not second.writable


# =============================================================================
# Wire Format Tests
# =============================================================================

class TestFormatting:
    """Test SSE and WebSocket encoding."""

    @pytest.mark.unit
    def test_sse_endpoint_is_verbatim(self):
        text = format_sse(Frame(event="endpoint", data="/mcp/messages?sessionId=abc"))

        assert text == "event: endpoint\ndata: /mcp/messages?sessionId=abc\n\n"

    @pytest.mark.unit
    def test_sse_json_payload(self):
        text = format_sse(Frame(event="init", data={"isLoaded": False, "modelPath": None}))

        assert text.startswith("event: init\ndata: ")
        assert json.loads(text.split("data: ", 1)[1]) == {"isLoaded": False, "modelPath": None}

    @pytest.mark.unit
    def test_sse_multiline_string(self):
        assert format_sse(Frame(event="x", data="a\nb")) == "event: x\ndata: a\ndata: b\n\n"

    @pytest.mark.unit
    def test_sse_comment(self):
        assert format_sse(Frame(comment="ping")) == ": ping\n\n"

    @pytest.mark.unit
    def test_ws_frame(self):
        text = format_ws(Frame(event="load_vrm_model", data={"filePath": "/models/character.vrm"}))

        assert json.loads(text) == {"type": "load_vrm_model", "data": {"filePath": "/models/character.vrm"}}
        assert format_ws(Frame(comment="ping")) is None
