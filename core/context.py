"""
Bridge Context - Composition root

Builds every long-lived component once and wires them together. The context
is attached to app.state.bridge and reaches request handlers through
api/dependencies.py; nothing lives in module globals.

@.architecture
Incoming: app.py, main.py, tests --- {Settings, optional Redis client}
Processing: build_context(), BridgeContext.start(), BridgeContext.stop() --- {3 jobs: construction, startup, shutdown}
Outgoing: api/dependencies.py, core/mcp/stdio.py --- {BridgeContext with state, hub, tools, sessions, rate_limiter, auth, dispatcher}
"""

from dataclasses import dataclass
from typing import Any, Optional

from config.settings import Settings
from core.avatar import AvatarToolHandler, DisplayState, LocalAssetLocator
from core.mcp.protocol import JsonRpcDispatcher
from core.sessions import SessionManager, SessionStore, TransportRegistry
from data.cache import RedisCache
from monitoring import get_logger
from security.auth import AuthConfig, AuthenticationManager
from security.rate_limit import RateLimitConfig, RateLimiter
from ws.hub import BroadcastHub

logger = get_logger(__name__)


@dataclass
class BridgeContext:
    settings: Settings
    state: DisplayState
    hub: BroadcastHub
    tools: AvatarToolHandler
    dispatcher: JsonRpcDispatcher
    cache: RedisCache
    store: SessionStore
    registry: TransportRegistry
    sessions: SessionManager
    rate_limiter: RateLimiter
    auth: AuthenticationManager

    async def start(self) -> None:
        """Connect the durable store and start background tasks."""
        logger.info("=== Bridge Startup ===")

        if await self.store.connect():
            logger.info("✅ Session store connected")
        elif self.cache.configured:
            logger.warning("⚠️  Session store unreachable, running with process-local sessions only")

        if self.settings.security.rate_limit_enabled:
            await self.rate_limiter.start()

        logger.info("=== Bridge Startup Complete ===")

    async def stop(self) -> None:
        """Close every stream and release resources."""
        logger.info("=== Bridge Shutdown ===")

        await self.sessions.close_all()
        self.hub.close_all()
        await self.rate_limiter.stop()
        await self.store.disconnect()

        logger.info("=== Bridge Shutdown Complete ===")


def build_context(settings: Settings, cache_client: Optional[Any] = None) -> BridgeContext:
    """
    Construct all bridge components.

    Args:
        settings: Application settings
        cache_client: redis.asyncio compatible client to use instead of REDIS_URL

    Returns:
        BridgeContext (call start() before serving)
    """
    state = DisplayState()
    hub = BroadcastHub(snapshot_provider=state.snapshot)

    assets = settings.assets
    tools = AvatarToolHandler(
        state,
        hub,
        models=LocalAssetLocator(assets.models_dir, ".vrm", assets.models_url_prefix),
        animations=LocalAssetLocator(assets.animations_dir, ".vrma", assets.animations_url_prefix),
    )
    dispatcher = JsonRpcDispatcher(tools, settings.server_name, settings.app_version)

    sessions_cfg = settings.sessions
    cache = RedisCache(
        redis_url=sessions_cfg.redis_url,
        namespace=sessions_cfg.key_prefix,
        timeout=sessions_cfg.store_timeout_seconds,
        client=cache_client,
    )
    store = SessionStore(cache, ttl_seconds=sessions_cfg.ttl_seconds)
    registry = TransportRegistry()
    sessions = SessionManager(
        registry,
        store=store,
        heartbeat_interval=sessions_cfg.heartbeat_interval_seconds,
    )

    security = settings.security
    rate_limiter = RateLimiter(RateLimitConfig(
        capacity=security.rate_limit_capacity,
        refill_rate=security.rate_limit_refill_rate,
        cleanup_interval=security.rate_limit_cleanup_interval,
    ))
    auth = AuthenticationManager(AuthConfig(
        api_key=security.api_key,
        api_key_header=security.api_key_header,
        api_key_query_param=security.api_key_query_param,
    ))

    return BridgeContext(
        settings=settings,
        state=state,
        hub=hub,
        tools=tools,
        dispatcher=dispatcher,
        cache=cache,
        store=store,
        registry=registry,
        sessions=sessions,
        rate_limiter=rate_limiter,
        auth=auth,
    )
