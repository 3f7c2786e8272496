"""
Settings Management

Pydantic-based settings schema with environment variable support.
Merges the bundled TOML defaults (config/bridge.toml) with environment overrides.

@.architecture
Incoming: utils/config.py, Environment variables, bridge.toml, app.py, gateway.py, core/context.py --- {Dict from load_toml_config, str from os.getenv, get_settings calls}
Processing: get_settings(), reload_settings(), _split_origins(), Settings.validate_environment() --- {4 jobs: configuration_loading, environment_variable_merging, schema_validation, caching}
Outgoing: app.py, main.py, gateway.py, core/context.py --- {Settings Pydantic model with typed config sections}
"""

import os
from pathlib import Path
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from functools import lru_cache

from utils.config import load_config as load_toml_config


PROJECT_ROOT = Path(__file__).resolve().parent.parent


# =============================================================================
# Settings Schemas
# =============================================================================

class ServerSettings(BaseModel):
    """HTTP server binding."""
    host: str = "127.0.0.1"
    port: int = 3000


class SecuritySettings(BaseModel):
    """Authentication, CORS and rate limiting."""
    # Shared secret; None disables authentication entirely
    api_key: Optional[str] = None
    api_key_header: str = "x-api-key"
    api_key_query_param: str = "apiKey"

    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["Content-Type", "x-api-key"])

    rate_limit_enabled: bool = True
    rate_limit_capacity: int = 60
    rate_limit_refill_rate: float = 1.0
    rate_limit_cleanup_interval: float = 300.0


class SessionSettings(BaseModel):
    """Session liveness tracking."""
    # None means no durable store: sessions are only known to this process
    redis_url: Optional[str] = None
    key_prefix: str = "mcp:session"
    ttl_seconds: int = 3600
    store_timeout_seconds: float = 2.0
    heartbeat_interval_seconds: float = 30.0
    channel_queue_size: int = 256
    messages_path: str = "/mcp/messages"


class AssetSettings(BaseModel):
    """Model and animation asset locations."""
    models_dir: Path = Field(default_factory=lambda: PROJECT_ROOT / "public" / "models")
    animations_dir: Path = Field(default_factory=lambda: PROJECT_ROOT / "public" / "animations")
    models_url_prefix: str = "/models"
    animations_url_prefix: str = "/animations"


class GatewaySettings(BaseModel):
    """Stdio-to-SSE gateway settings."""
    remote_url: str = "http://localhost:3000/mcp/sse"
    api_key: Optional[str] = None
    connect_timeout_seconds: float = 10.0
    sse_read_timeout_seconds: float = 300.0


class MonitoringSettings(BaseModel):
    """Logging configuration; unset values fall back to the environment preset."""
    log_level: Optional[str] = None
    log_format: Optional[str] = None  # json|text


class Settings(BaseModel):
    """
    Main application settings.

    Loads configuration from:
    1. TOML config file (bridge.toml)
    2. Environment variables
    3. Defaults defined in schemas

    Priority: Environment variables > TOML config > Defaults
    """

    app_name: str = "Avatar Bridge"
    app_version: str = "0.1.0"
    server_name: str = "vrm-mcp-server"
    environment: str = "development"  # development|production|test

    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    assets: AssetSettings = Field(default_factory=AssetSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @property
    def base_url(self) -> str:
        """Self-reference URL of the HTTP server."""
        return f"http://{self.server.host}:{self.server.port}"

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ['development', 'production', 'test']
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v


# =============================================================================
# Settings Loader
# =============================================================================

def _split_origins(raw: str) -> List[str]:
    """Parse a comma separated origin list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _section(toml_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Copy a TOML table so environment overrides never mutate the loaded file."""
    return dict(toml_config.get(name, {}))


@lru_cache()
def get_settings() -> Settings:
    """
    Load and return application settings (cached).

    Returns:
        Settings: Complete application settings
    """
    toml_config = load_toml_config()

    server = _section(toml_config, "server")
    security = _section(toml_config, "security")
    sessions = _section(toml_config, "sessions")
    assets = _section(toml_config, "assets")
    gateway = _section(toml_config, "gateway")
    monitoring = _section(toml_config, "monitoring")

    if host := os.getenv("HOST"):
        server["host"] = host
    if port := os.getenv("VIEWER_PORT"):
        server["port"] = int(port)

    if api_key := os.getenv("MCP_API_KEY"):
        security["api_key"] = api_key
        gateway["api_key"] = api_key
    if origins := os.getenv("ALLOWED_ORIGINS"):
        security["allowed_origins"] = _split_origins(origins)
    if capacity := os.getenv("RATE_LIMIT_CAPACITY"):
        security["rate_limit_capacity"] = int(capacity)
    if refill := os.getenv("RATE_LIMIT_REFILL_RATE"):
        security["rate_limit_refill_rate"] = float(refill)

    if redis_url := os.getenv("REDIS_URL"):
        sessions["redis_url"] = redis_url
    if ttl := os.getenv("SESSION_TTL_SECONDS"):
        sessions["ttl_seconds"] = int(ttl)
    if interval := os.getenv("HEARTBEAT_INTERVAL_SECONDS"):
        sessions["heartbeat_interval_seconds"] = float(interval)

    if models_dir := os.getenv("VRM_MODELS_DIR"):
        assets["models_dir"] = Path(models_dir)
    if animations_dir := os.getenv("VRMA_ANIMATIONS_DIR"):
        assets["animations_dir"] = Path(animations_dir)

    if remote_url := os.getenv("MCP_REMOTE_URL"):
        gateway["remote_url"] = remote_url

    if log_level := os.getenv("MONITORING_LOG_LEVEL"):
        monitoring["log_level"] = log_level
    if log_format := os.getenv("MONITORING_LOG_FORMAT"):
        monitoring["log_format"] = log_format

    return Settings(
        environment=os.getenv("AVATAR_ENVIRONMENT", toml_config.get("environment", "development")),
        server=server,
        security=security,
        sessions=sessions,
        assets=assets,
        gateway=gateway,
        monitoring=monitoring,
    )


def reload_settings() -> Settings:
    """
    Reload settings (clears cache).

    Returns:
        Settings: Reloaded application settings
    """
    get_settings.cache_clear()
    return get_settings()
