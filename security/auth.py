"""
Authentication - Security Layer

Static shared-secret authentication for the protocol endpoints.

@.architecture
Incoming: api/dependencies.py, config/settings.py --- {SecuritySettings, x-api-key header, apiKey query param}
Processing: authenticate(), validate_api_key(), extract_api_key() --- {3 jobs: extraction, constant_time_comparison, bypass_when_unconfigured}
Outgoing: api/dependencies.py --- {None or raises AuthError}

When no key is configured every request is accepted.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from core.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class AuthConfig:
    """Authentication configuration."""

    api_key: Optional[str] = None
    api_key_header: str = "x-api-key"
    api_key_query_param: str = "apiKey"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class AuthenticationManager:
    """
    Validates the shared secret presented by tool clients.

    The key is read from the header first, then from the query string
    (EventSource clients cannot set headers).
    """

    def __init__(self, config: Optional[AuthConfig] = None):
        self.config = config or AuthConfig()
        if not self.config.enabled:
            logger.warning("⚠️  No API key configured, protocol endpoints are unauthenticated")

    def extract_api_key(
        self,
        headers: Mapping[str, str],
        query: Mapping[str, str]
    ) -> Optional[str]:
        """
        Pull the presented key out of a request.

        Args:
            headers: Request headers (case-insensitive mapping)
            query: Query parameters

        Returns:
            Presented key or None
        """
        return headers.get(self.config.api_key_header) or query.get(self.config.api_key_query_param)

    def validate_api_key(self, presented: Optional[str]) -> bool:
        """Constant-time comparison against the configured key."""
        if not self.config.enabled:
            return True
        if not presented:
            return False
        return hmac.compare_digest(presented.encode("utf-8"), self.config.api_key.encode("utf-8"))

    def authenticate(
        self,
        headers: Mapping[str, str],
        query: Mapping[str, str]
    ) -> Optional[str]:
        """
        Authenticate a request.

        Returns:
            The presented key (None if none was sent)

        Raises:
            AuthError: If a key is configured and the presented one doesn't match
        """
        presented = self.extract_api_key(headers, query)
        if not self.validate_api_key(presented):
            logger.warning("Rejected request with missing or invalid API key")
            raise AuthError()
        return presented
