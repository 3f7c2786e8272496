"""
Integration Tests: API Endpoints

Tests for the HTTP surface: message posting, session resolution,
authentication, rate limiting, CORS and health. Streams are opened through
the session manager; infinite SSE responses are not read over HTTP here.
"""

import contextlib
import json

import pytest
import pytest_asyncio
from httpx import AsyncClient

from ws.channels import EventChannel


PING = {"jsonrpc": "2.0", "id": 1, "method": "ping"}


# =============================================================================
# Health Endpoint Tests
# =============================================================================

class TestHealthEndpoint:
    """Test /health."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient, app):
        await app.state.bridge.sessions.open_session(EventChannel())

        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert data["sessions"] == 1
        assert data["viewers"] == 0
        assert data["session_store"]["healthy"] is True

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_degraded_when_store_down(self, client: AsyncClient, fake_redis):
        fake_redis.fail = True

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"


# =============================================================================
# Message Endpoint Tests
# =============================================================================

class TestPostMessage:
    """Test POST /mcp/messages."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_accepted_and_delivered(self, client: AsyncClient, app, next_frame):
        channel = EventChannel()
        session = await app.state.bridge.sessions.open_session(channel)

        response = await client.post(f"/mcp/messages?sessionId={session.id}", json=PING)

        assert response.status_code == 200
        assert response.text == "Accepted"
        assert response.headers["x-ratelimit-limit"] == "60"
        frame = await next_frame(channel)
        assert frame.event == "message"
        assert frame.data == {"jsonrpc": "2.0", "id": 1, "result": {}}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_tool_error_is_still_accepted(self, client: AsyncClient, app, next_frame):
        channel = EventChannel()
        session = await app.state.bridge.sessions.open_session(channel)
        message = {
            "jsonrpc": "2.0", "id": 2, "method": "tools/call",
            "params": {"name": "set_vrm_expression", "arguments": {"expression": "happy", "weight": 1}},
        }

        response = await client.post(f"/mcp/messages?sessionId={session.id}", json=message)

        assert response.status_code == 200
        frame = await next_frame(channel)
        assert frame.data["error"]["message"] == "Tool execution failed: VRM model is not loaded"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_session_id(self, client: AsyncClient):
        response = await client.post("/mcp/messages", json=PING)

        assert response.status_code == 404
        assert response.json() == {"error": "Invalid session"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient):
        response = await client.post("/mcp/messages?sessionId=not-a-real-id", json=PING)

        assert response.status_code == 404
        assert response.json() == {"error": "Invalid session"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_session_on_another_instance(self, client: AsyncClient, app):
        await app.state.bridge.store.save("remote-session", {})

        response = await client.post("/mcp/messages?sessionId=remote-session", json=PING)

        assert response.status_code == 503
        assert response.json() == {"error": "Session not available on this instance"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_store_failure(self, client: AsyncClient, fake_redis):
        fake_redis.fail = True

        response = await client.post("/mcp/messages?sessionId=some-id", json=PING)

        assert response.status_code == 503

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_closed_session_is_gone(self, client: AsyncClient, app):
        sessions = app.state.bridge.sessions
        session = await sessions.open_session(EventChannel())
        await sessions.close_session(session.id)

        response = await client.post(f"/mcp/messages?sessionId={session.id}", json=PING)

        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        "not json",
        json.dumps([PING]),
        json.dumps({"id": 1, "method": "ping"}),
    ])
    async def test_malformed_body(self, client: AsyncClient, app, body):
        channel = EventChannel()
        session = await app.state.bridge.sessions.open_session(channel)

        response = await client.post(
            f"/mcp/messages?sessionId={session.id}",
            content=body,
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert "error" in response.json()
        assert channel.pending() == 0


# =============================================================================
# Authentication Tests
# =============================================================================

class TestAuthentication:
    """Test shared-secret authentication."""

    @pytest_asyncio.fixture
    async def secured_client(self, app_factory, settings_with, client_for):
        app = await app_factory(settings_with(api_key="secret"))
        async with client_for(app) as ac:
            yield ac

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_missing_key(self, secured_client):
        response = await secured_client.post("/mcp/messages?sessionId=x", json=PING)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stream_requires_key(self, secured_client):
        response = await secured_client.get("/mcp/sse")

        assert response.status_code == 401

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_wrong_key(self, secured_client):
        response = await secured_client.post(
            "/mcp/messages?sessionId=x", json=PING, headers={"x-api-key": "wrong"}
        )

        assert response.status_code == 401

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_header_key(self, secured_client):
        response = await secured_client.post(
            "/mcp/messages?sessionId=x", json=PING, headers={"x-api-key": "secret"}
        )

        # Authenticated; the session itself is unknown
        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_query_key(self, secured_client):
        response = await secured_client.post("/mcp/messages?sessionId=x&apiKey=secret", json=PING)

        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_health_is_public(self, secured_client):
        response = await secured_client.get("/health")

        assert response.status_code == 200


# =============================================================================
# Rate Limiting Tests
# =============================================================================

class TestRateLimiting:
    """Test per-caller rate limiting."""

    @pytest_asyncio.fixture
    async def limited_client(self, app_factory, settings_with, client_for):
        # Slow refill so the burst cannot recover while the test runs
        app = await app_factory(settings_with(rate_limit_refill_rate=0.01))
        async with client_for(app) as ac:
            yield ac

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_sixty_then_429(self, limited_client):
        for _ in range(60):
            response = await limited_client.post("/mcp/messages?sessionId=x", json=PING)
            assert response.status_code == 404

        response = await limited_client.post("/mcp/messages?sessionId=x", json=PING)

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded"}
        assert int(response.headers["retry-after"]) >= 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_callers_are_limited_separately(self, limited_client):
        for _ in range(61):
            await limited_client.post("/mcp/messages?sessionId=x", json=PING)

        response = await limited_client.post(
            "/mcp/messages?sessionId=x", json=PING, headers={"x-forwarded-for": "203.0.113.7"}
        )

        assert response.status_code == 404

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_disabled(self, app_factory, settings_with, client_for):
        app = await app_factory(settings_with(rate_limit_enabled=False))

        async with client_for(app) as ac:
            for _ in range(70):
                response = await ac.post("/mcp/messages?sessionId=x", json=PING)

        assert response.status_code == 404


# =============================================================================
# CORS Tests
# =============================================================================

class TestCors:
    """Test the origin allow-list."""

    @pytest_asyncio.fixture
    async def cors_client(self, app_factory, settings_with, client_for):
        app = await app_factory(settings_with(allowed_origins=["http://allowed.example"]))
        async with client_for(app) as ac:
            yield ac

    @staticmethod
    def preflight_headers(origin):
        return {
            "origin": origin,
            "access-control-request-method": "POST",
            "access-control-request-headers": "content-type, x-api-key",
        }

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_disallowed_preflight(self, cors_client):
        response = await cors_client.options(
            "/mcp/messages", headers=self.preflight_headers("http://evil.example")
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Origin not allowed"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_allowed_preflight(self, cors_client):
        response = await cors_client.options(
            "/mcp/messages", headers=self.preflight_headers("http://allowed.example")
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://allowed.example"
        assert "POST" in response.headers["access-control-allow-methods"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_simple_request_from_allowed_origin(self, cors_client):
        response = await cors_client.get("/health", headers={"origin": "http://allowed.example"})

        assert response.headers["access-control-allow-origin"] == "http://allowed.example"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_wildcard_default(self, client: AsyncClient):
        response = await client.options(
            "/mcp/messages", headers=self.preflight_headers("http://anything.example")
        )

        assert response.status_code == 200

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_wildcard_echoes_origin_on_simple_request(self, client: AsyncClient):
        response = await client.get("/health", headers={"origin": "http://anything.example"})

        assert response.headers["access-control-allow-origin"] == "http://anything.example"
        assert "Origin" in response.headers["vary"]


# =============================================================================
# Stream Lifecycle Tests
# =============================================================================

def sse_scope(path: str = "/mcp/sse", spec_version: str = "2.3") -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": spec_version},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"test")],
        "client": ("127.0.0.1", 50000),
        "server": ("test", 80),
    }


class TestStreamLifecycle:
    """Test that a stream's session is closed however the connection ends."""

    @staticmethod
    async def disconnected():
        return {"type": "http.disconnect"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_disconnect_before_first_chunk(self, app):
        context = app.state.bridge
        sent = []

        async def send(message):
            sent.append(message)

        await app(sse_scope(), self.disconnected, send)

        assert context.sessions.count() == 0
        assert context.sessions.registry.count() == 0
        assert await context.store.count() == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("spec_version", ["2.3", "2.4"])
    async def test_failed_response_start(self, app, spec_version):
        context = app.state.bridge

        async def send(message):
            raise OSError("connection reset")

        with contextlib.suppress(Exception):
            await app(sse_scope(spec_version=spec_version), self.disconnected, send)

        assert context.sessions.count() == 0
        assert context.sessions.registry.count() == 0
        assert await context.store.count() == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_viewer_disconnect_before_first_chunk(self, app):
        hub = app.state.bridge.hub

        async def send(message):
            raise OSError("connection reset")

        with contextlib.suppress(Exception):
            await app(sse_scope("/viewer/sse"), self.disconnected, send)

        assert hub.get_viewer_count() == 0
