"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict

from housie.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "housie.conf"

_ENV_SECTIONS = {
    "GAME_": "game",
    "SERVER_": "server",
    "APP_": "app",
    "LOG_": "logging",
}


def default_config_file() -> Path:
    """HOUSIE_CONFIG if set, else config/housie.conf under the working directory."""
    override = os.getenv("HOUSIE_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_config(config_file: Path | str | None = None) -> Dict[str, Any]:
    """Load configuration from files and environment variables"""
    config: Dict[str, Any] = {}

    config_file = Path(config_file) if config_file else default_config_file()
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                file_config = json.load(f)
                config.update(file_config)
                logger.info(f"Loaded configuration from {config_file}")
        except Exception as e:
            logger.error(f"Error loading config file: {e}")
    else:
        logger.warning(f"Config file {config_file} not found. Will only use environment variables.")

    # Override with environment variables, defined in .env
    config = _apply_env_overrides(config)

    logger.info(f"Configuration after applying environment overrides: {json.dumps(config, indent=2)}")

    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in os.environ.items():
        for prefix, section in _ENV_SECTIONS.items():
            if key.startswith(prefix):
                config.setdefault(section, {})[key[len(prefix):].lower()] = value
                break

    return config


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def as_bool(value: Any) -> bool:
    """Interpret env-style flags ("1", "true", "yes", "on")."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes", "on")
