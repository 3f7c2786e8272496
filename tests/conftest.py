"""
Pytest Configuration and Shared Fixtures

Provides settings, an in-memory Redis double, bridge context and app
fixtures, and async helpers for unit, integration and e2e tests.
"""

import asyncio
import fnmatch
import os
import time
from pathlib import Path
from typing import AsyncGenerator, Callable, Dict, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

# Test environment setup
os.environ["AVATAR_ENVIRONMENT"] = "test"

from app import create_app
from config.settings import AssetSettings, Settings, reload_settings
from core.context import BridgeContext, build_context
from ws.channels import EventChannel
from ws.protocols import Frame


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interactions"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test complete workflows"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


# =============================================================================
# Test Doubles
# =============================================================================

class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """
    In-memory stand-in for a redis.asyncio client (decode_responses=True).

    Supports the commands RedisCache uses. Set ``fail = True`` to make every
    command raise a ConnectionError.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, float] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    def ttl_of(self, key: str) -> Optional[float]:
        deadline = self.expiry.get(key)
        return None if deadline is None else deadline - self.clock()

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._check()
        self.data[key] = value
        if ex is None:
            self.expiry.pop(key, None)
        else:
            self.expiry[key] = self.clock() + ex
        return True

    async def delete(self, key: str) -> int:
        self._check()
        self._purge(key)
        existed = key in self.data
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return 1 if existed else 0

    async def expire(self, key: str, ttl: int) -> bool:
        self._check()
        self._purge(key)
        if key not in self.data:
            return False
        self.expiry[key] = self.clock() + ttl
        return True

    async def scan_iter(self, match: Optional[str] = None):
        self._check()
        for key in list(self.data):
            self._purge(key)
            if key in self.data and (match is None or fnmatch.fnmatchcase(key, match)):
                yield key

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_settings():
    """Reset cached settings after each test."""
    yield
    reload_settings()


@pytest.fixture
def asset_dirs(tmp_path: Path) -> Tuple[Path, Path]:
    """Model and animation directories with a few files."""
    models = tmp_path / "models"
    models.mkdir()
    (models / "character.vrm").write_bytes(b"glTF")
    (models / "other.vrm").write_bytes(b"glTF")
    (models / "readme.txt").write_text("not a model")

    animations = tmp_path / "animations"
    animations.mkdir()
    (animations / "greeting.vrma").write_bytes(b"glTF")

    return models, animations


@pytest.fixture
def test_settings(asset_dirs) -> Settings:
    """Settings pointing at temporary asset directories."""
    models, animations = asset_dirs
    return Settings(
        environment="test",
        assets=AssetSettings(models_dir=models, animations_dir=animations),
    )


@pytest.fixture
def settings_with(test_settings: Settings):
    """Factory: copy of test_settings with security fields replaced."""
    def create(**security) -> Settings:
        return test_settings.model_copy(
            update={"security": test_settings.security.model_copy(update=security)}
        )
    return create


# =============================================================================
# Backend Fixtures
# =============================================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(fake_clock: FakeClock) -> FakeRedis:
    """Redis double whose TTLs follow fake_clock."""
    return FakeRedis(clock=fake_clock)


@pytest_asyncio.fixture
async def context(test_settings: Settings, fake_redis: FakeRedis) -> AsyncGenerator[BridgeContext, None]:
    """Started bridge context backed by the Redis double."""
    ctx = build_context(test_settings, cache_client=fake_redis)
    await ctx.start()
    yield ctx
    await ctx.stop()


# =============================================================================
# FastAPI App Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def app_factory(fake_redis: FakeRedis):
    """
    Factory building started apps.

    httpx's ASGITransport does not run startup events, so the context is
    started here and stopped on teardown.
    """
    apps = []

    async def create(settings: Settings):
        app = create_app(settings, cache_client=fake_redis)
        await app.state.bridge.start()
        apps.append(app)
        return app

    yield create

    for app in apps:
        await app.state.bridge.stop()


@pytest_asyncio.fixture
async def app(app_factory, test_settings: Settings):
    """App with default test settings (no API key)."""
    return await app_factory(test_settings)


def make_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create async HTTP client for API testing."""
    async with make_client(app) as ac:
        yield ac


@pytest.fixture
def client_for():
    """Factory: async HTTP client for an arbitrary app."""
    return make_client


# =============================================================================
# Async Helpers
# =============================================================================

async def _next_frame(channel: EventChannel, timeout: float = 1.0) -> Frame:
    frames = channel.frames()
    try:
        return await asyncio.wait_for(frames.__anext__(), timeout)
    finally:
        await frames.aclose()


@pytest.fixture
def next_frame():
    """Await the next frame queued on a channel."""
    return _next_frame
