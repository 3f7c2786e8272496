"""
Security Layer

Shared-secret authentication and per-caller rate limiting for the protocol
endpoints.
"""

# Rate limiting
from .rate_limit import (
    RateLimiter,
    RateLimitConfig,
    TokenBucket,
    client_key,
)

# Authentication
from .auth import (
    AuthenticationManager,
    AuthConfig,
)

__all__ = [
    # Rate limiting
    'RateLimiter',
    'RateLimitConfig',
    'TokenBucket',
    'client_key',

    # Authentication
    'AuthenticationManager',
    'AuthConfig',
]
