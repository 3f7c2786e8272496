"""
End-to-End Tests: Display Flow

A tool client opens a stream, posts tool calls, and viewers receive the
resulting display events. Streaming responses are driven through their body
iterators so the tests can stop reading at any point.
"""

import asyncio
import json
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from api.endpoints.mcp import open_stream
from api.endpoints.viewer import viewer_event_stream, viewer_ws
from app import create_app
from core.sessions import Heartbeat
from ws.channels import EventChannel


def sse_request(path: str = "/mcp/sse") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [(b"user-agent", b"test-client")],
        "client": ("127.0.0.1", 50000),
    })


def parse_sse(chunk: str):
    """Split one SSE chunk into (event, data)."""
    event, data = None, []
    for line in chunk.strip("\n").split("\n"):
        if line.startswith("event: "):
            event = line[len("event: "):]
        elif line.startswith("data: "):
            data.append(line[len("data: "):])
    return event, "\n".join(data)


async def tool_call(client, session_id, request_id, name, arguments):
    return await client.post(f"/mcp/messages?sessionId={session_id}", json={
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    })


class TestDisplayFlow:
    """Test a tool client driving a viewer."""

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_stream_handshake(self, app):
        context = app.state.bridge

        response = await open_stream(sse_request(), rate_headers={}, context=context)
        stream = response.body_iterator
        try:
            event, endpoint = parse_sse(await stream.__anext__())
            assert event == "endpoint"
            session_id = parse_qs(urlparse(endpoint).query)["sessionId"][0]
            assert endpoint == f"/mcp/messages?sessionId={session_id}"

            event, data = parse_sse(await stream.__anext__())
            assert event == "init"
            assert json.loads(data) == {"isLoaded": False, "modelPath": None}

            assert response.media_type == "text/event-stream"
            assert response.headers["cache-control"] == "no-cache"
            assert context.sessions.get_session(session_id).metadata["userAgent"] == "test-client"
        finally:
            await stream.aclose()

        assert context.sessions.count() == 0
        assert await context.store.count() == 0

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_tool_call_reaches_viewer(self, app, client, next_frame):
        context = app.state.bridge
        viewer = EventChannel()
        context.hub.subscribe(viewer)
        assert (await next_frame(viewer)).data == {"isLoaded": False, "modelPath": None}

        response = await open_stream(sse_request(), rate_headers={}, context=context)
        stream = response.body_iterator
        try:
            _, endpoint = parse_sse(await stream.__anext__())
            await stream.__anext__()
            session_id = parse_qs(urlparse(endpoint).query)["sessionId"][0]

            posted = await tool_call(client, session_id, 1, "load_vrm_model", {"filePath": "character.vrm"})
            assert posted.status_code == 200
            assert posted.text == "Accepted"

            event, data = parse_sse(await stream.__anext__())
            assert event == "message"
            result = json.loads(data)
            assert result["id"] == 1
            assert "character.vrm" in result["result"]["content"][0]["text"]

            frame = await next_frame(viewer)
            assert frame.event == "load_vrm_model"
            assert frame.data == {"filePath": "/models/character.vrm"}
            assert context.state.snapshot() == {"isLoaded": True, "modelPath": "character.vrm"}

            await tool_call(client, session_id, 2, "set_vrm_expression", {"expression": "happy", "weight": 1.0})
            frame = await next_frame(viewer)
            assert (frame.event, frame.data) == ("set_vrm_expression", {"expression": "happy", "weight": 1.0})

            await tool_call(client, session_id, 3, "get_vrm_status", {})
            await stream.__anext__()
            _, data = parse_sse(await stream.__anext__())
            status_text = json.loads(data)["result"]["content"][0]["text"]
            assert json.loads(status_text.split("\n", 1)[1])["expressions"] == {"happy": 1.0}
        finally:
            await stream.aclose()

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_late_viewer_gets_current_snapshot(self, app, next_frame):
        context = app.state.bridge
        await context.tools.call_tool("load_vrm_model", {"filePath": "character.vrm"})

        viewer = EventChannel()
        context.hub.subscribe(viewer)

        frame = await next_frame(viewer)
        assert frame.event == "init"
        assert frame.data == {"isLoaded": True, "modelPath": "character.vrm"}

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_failed_call_changes_nothing(self, app, client, next_frame):
        context = app.state.bridge
        viewer = EventChannel()
        context.hub.subscribe(viewer)
        await next_frame(viewer)

        response = await open_stream(sse_request(), rate_headers={}, context=context)
        stream = response.body_iterator
        try:
            _, endpoint = parse_sse(await stream.__anext__())
            await stream.__anext__()
            session_id = parse_qs(urlparse(endpoint).query)["sessionId"][0]

            await tool_call(client, session_id, 9, "load_vrm_model", {"filePath": "missing.vrm"})

            _, data = parse_sse(await stream.__anext__())
            assert json.loads(data)["error"] == {
                "code": -32603,
                "message": "Tool execution failed: Failed to load VRM model: missing.vrm",
            }
            assert viewer.pending() == 0
            assert not context.state.is_loaded
        finally:
            await stream.aclose()


class TestViewerStreams:
    """Test viewer transports."""

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_viewer_sse_cleanup(self, context):
        channel = EventChannel(label="viewer-sse")
        context.hub.subscribe(channel)
        heartbeat = Heartbeat(channel.label, channel, 30.0)
        heartbeat.start()

        stream = viewer_event_stream(context.hub, channel, heartbeat)
        event, data = parse_sse(await stream.__anext__())
        assert event == "init"
        assert json.loads(data) == {"isLoaded": False, "modelPath": None}

        channel.close()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

        assert context.hub.get_viewer_count() == 0
        assert not heartbeat.running

    @pytest.mark.e2e
    def test_viewer_websocket_init(self, test_settings, fake_redis):
        app = create_app(test_settings, cache_client=fake_redis)

        with TestClient(app) as test_client:
            with test_client.websocket_connect("/viewer/ws") as websocket:
                frame = websocket.receive_json()
                assert frame == {"type": "init", "data": {"isLoaded": False, "modelPath": None}}
                assert app.state.bridge.hub.get_viewer_count() == 1

    @pytest.mark.e2e
    @pytest.mark.asyncio
    async def test_viewer_websocket_write_failure_ends_connection(self, context):
        class StalledSocket:
            """Peer that never sends and whose writes fail."""

            def __init__(self):
                self.closed = False

            async def accept(self):
                pass

            async def send_text(self, text):
                raise RuntimeError("peer stopped reading")

            async def receive(self):
                await asyncio.Event().wait()

            async def close(self, code=1000):
                self.closed = True

        websocket = StalledSocket()

        await asyncio.wait_for(viewer_ws(websocket, context=context), timeout=2.0)

        assert context.hub.get_viewer_count() == 0
        assert websocket.closed
