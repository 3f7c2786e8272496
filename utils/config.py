"""
Simple config loader for the bridge.
Reads the bundled TOML defaults file.

@.architecture
Incoming: config/bridge.toml, config/settings.py --- {TOML file, load_config calls}
Processing: load_config(), get_fallback_config() --- {2 jobs: config_loading, fallback_generation}
Outgoing: config/settings.py --- {Dict[str, Any] config data}
"""

import logging
import os
import toml
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(__file__).parent.parent / "config" / "bridge.toml"


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from the TOML file.

    AVATAR_CONFIG_FILE overrides the bundled file location.
    """
    if config_file is None:
        config_file = Path(os.getenv("AVATAR_CONFIG_FILE", str(DEFAULT_CONFIG_FILE)))
    try:
        with open(config_file, 'r', encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning(f"⚠️  Failed to load config file {config_file}: {e}")
        return get_fallback_config()


def get_fallback_config() -> Dict[str, Any]:
    """Fallback configuration if the TOML file can't be loaded."""
    return {
        "environment": "development",
        "server": {"host": "127.0.0.1", "port": 3000},
        "sessions": {"ttl_seconds": 3600, "heartbeat_interval_seconds": 30.0},
    }
