"""
Rate Limiting - Security Layer

Implements token bucket rate limiting per caller key to keep a single client
from flooding the protocol endpoints.

The caller key is the API key when one is presented, else the first hop of
X-Forwarded-For, else "anonymous" (all unidentified callers share one bucket).

@.architecture
Incoming: api/dependencies.py, core/context.py --- {str client_id, int tokens}
Processing: check(), check_rate_limit(), consume(), _get_bucket(), _cleanup_old_buckets() --- {4 jobs: cleanup, rate_limiting, statistics, token_bucket_management}
Outgoing: api/dependencies.py --- {bool allowed or raises RateLimitExceeded, Dict[str, Any] limit info}
"""

import time
import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Tuple
from dataclasses import dataclass

from core.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class RateLimitConfig:
    """Configuration for rate limiter."""

    # Token bucket parameters
    capacity: int = 60                  # Burst size
    refill_rate: float = 1.0            # Tokens added per second

    # Cleanup
    cleanup_interval: float = 300.0     # Sweep idle buckets every 5 minutes

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self.refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

    @property
    def window_seconds(self) -> float:
        """Time for an empty bucket to fill up again."""
        return self.capacity / self.refill_rate


class TokenBucket:
    """
    Token bucket implementation for rate limiting.

    Algorithm:
    - Bucket starts with 'capacity' tokens
    - Tokens are added continuously at 'refill_rate' per second, capped at capacity
    - Each request consumes 1 token
    - If less than one token is available, request is denied
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        clock: Clock = time.monotonic,
        current_tokens: Optional[float] = None,
        last_refill: Optional[float] = None
    ):
        """
        Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket (burst size)
            refill_rate: Tokens added per second
            clock: Time source in seconds
            current_tokens: Initial token count (defaults to capacity)
            last_refill: Last refill timestamp (defaults to now)
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self.tokens = float(current_tokens if current_tokens is not None else capacity)
        self.last_refill = last_refill if last_refill is not None else clock()
        self._lock = asyncio.Lock()

    async def consume(self, tokens: int = 1) -> Tuple[bool, float]:
        """
        Try to consume tokens from bucket.

        Args:
            tokens: Number of tokens to consume

        Returns:
            Tuple of (success, retry_after_seconds)
        """
        async with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self.last_refill)
            self.tokens = min(
                self.capacity,
                self.tokens + elapsed * self.refill_rate
            )
            self.last_refill = now

            if self.tokens >= tokens:
                self.tokens -= tokens
                return True, 0.0

            tokens_needed = tokens - self.tokens
            return False, tokens_needed / self.refill_rate

    def get_remaining(self) -> int:
        """Get current token count."""
        return int(self.tokens)

    def is_expired(self, max_age: float) -> bool:
        """Check if bucket hasn't been used recently."""
        return (self._clock() - self.last_refill) > max_age


class RateLimiter:
    """
    Rate limiter with token bucket algorithm.

    Features:
    - Per-key buckets created on first use
    - Continuous refill, no request queueing
    - Optional background sweep of idle buckets
    - Statistics for the health endpoint
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = time.monotonic
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limit configuration
            clock: Time source shared by every bucket (tests pass a fake)
        """
        self.config = config or RateLimitConfig()
        self._clock = clock

        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()

        # Statistics
        self._total_requests = 0
        self._total_limited = 0

        self._cleanup_task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self):
        """Start background cleanup task."""
        if not self._running:
            self._running = True
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Rate limiter started")

    async def stop(self):
        """Stop background cleanup task."""
        self._running = False
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        logger.info("Rate limiter stopped")

    async def check(self, client_id: str, tokens: int = 1) -> bool:
        """
        Consume from the caller's bucket.

        Args:
            client_id: Caller key
            tokens: Number of tokens to consume (default 1)

        Returns:
            True if the request is allowed
        """
        allowed, _ = await self._consume(client_id, tokens)
        return allowed

    async def check_rate_limit(
        self,
        client_id: str,
        tokens: int = 1
    ) -> None:
        """
        Check if request is within rate limit.

        Args:
            client_id: Caller key
            tokens: Number of tokens to consume (default 1)

        Raises:
            RateLimitExceeded: If rate limit exceeded
        """
        allowed, retry_after = await self._consume(client_id, tokens)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {client_id}. "
                f"Retry after {retry_after:.2f}s"
            )
            raise RateLimitExceeded(
                "Rate limit exceeded",
                retry_after
            )

    async def _consume(self, client_id: str, tokens: int) -> Tuple[bool, float]:
        self._total_requests += 1
        bucket = await self._get_bucket(client_id)
        allowed, retry_after = await bucket.consume(tokens)
        if not allowed:
            self._total_limited += 1
        return allowed, retry_after

    async def _get_bucket(self, client_id: str) -> TokenBucket:
        """Get or create token bucket for client."""
        async with self._lock:
            if client_id not in self._buckets:
                self._buckets[client_id] = TokenBucket(
                    capacity=self.config.capacity,
                    refill_rate=self.config.refill_rate,
                    clock=self._clock
                )
            return self._buckets[client_id]

    async def get_limit_info(self, client_id: str) -> Dict[str, Any]:
        """
        Get rate limit info for client.

        Args:
            client_id: Caller key

        Returns:
            Dict with limit, remaining, reset info
        """
        bucket = await self._get_bucket(client_id)
        remaining = bucket.get_remaining()
        missing = self.config.capacity - bucket.tokens

        return {
            'limit': self.config.capacity,
            'remaining': max(0, remaining),
            # Seconds until the bucket is full again
            'reset': int(max(0.0, missing) / self.config.refill_rate + 0.999),
            'window_seconds': self.config.window_seconds
        }

    async def reset_client(self, client_id: str) -> None:
        """Reset rate limit for specific client."""
        async with self._lock:
            if client_id in self._buckets:
                del self._buckets[client_id]
                logger.info(f"Rate limit reset for {client_id}")

    async def _cleanup_loop(self):
        """Background task to clean up old buckets."""
        while self._running:
            try:
                await asyncio.sleep(self.config.cleanup_interval)
                await self._cleanup_old_buckets()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in rate limiter cleanup: {e}")

    async def _cleanup_old_buckets(self) -> int:
        """Remove buckets that haven't been used for twice the window."""
        async with self._lock:
            max_age = self.config.window_seconds * 2
            expired = [
                client_id
                for client_id, bucket in self._buckets.items()
                if bucket.is_expired(max_age)
            ]

            for client_id in expired:
                del self._buckets[client_id]

            if expired:
                logger.debug(f"Cleaned up {len(expired)} expired rate limit buckets")
            return len(expired)

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get rate limiter statistics.

        Returns:
            Dict with statistics
        """
        return {
            'total_requests': self._total_requests,
            'total_limited': self._total_limited,
            'active_clients': len(self._buckets),
            'limit_rate': (
                f"{self._total_limited / self._total_requests * 100:.2f}%"
                if self._total_requests > 0
                else "0%"
            ),
            'config': {
                'capacity': self.config.capacity,
                'refill_rate': self.config.refill_rate,
                'window_seconds': self.config.window_seconds,
            }
        }


def client_key(api_key: Optional[str], forwarded_for: Optional[str]) -> str:
    """
    Derive the rate limit key for a request.

    Args:
        api_key: Presented API key, if any
        forwarded_for: Raw X-Forwarded-For header, if any

    Returns:
        Caller key
    """
    if api_key:
        return api_key
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    return "anonymous"
