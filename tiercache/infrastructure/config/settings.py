"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (e.g., ~/.tiercache/config.yaml). Repository defaults are
looked up per repository name first, then globally:

    cache:
      backend: tiered
      sliding_window_ms: 30000
      sessions:
        sliding_window_ms: 5000
        auto_sweep_enabled: false
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from tiercache.domain.models.common import (
    DEFAULT_DURABLE_TTL_OFFSET_MS,
    DEFAULT_SLIDING_WINDOW_MS,
    DEFAULT_SWEEP_INTERVAL_MS,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".tiercache"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "TIERCACHE_"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def env_key_for(key: str) -> str:
    """Maps a dotted config key to its environment variable name."""
    return ENV_PREFIX + key.upper().replace('.', '_')


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides
    2. Environment Variables
    3. .env file
    4. YAML configuration file
    5. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file; real environment variables take precedence
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def reset_configuration() -> None:
    """Forgets everything loaded so the next lookup reloads from disk."""
    global _config, _loaded
    _config = {}
    _loaded = False


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by dotted key.

    Args:
        key: The configuration key (e.g., 'cache.sliding_window_ms').
        default: Default value if the key is not found.

    Returns:
        The configuration value.
    """
    if key in _test_config:
        return _test_config[key]

    if not _loaded:
        load_configuration()

    env_key = env_key_for(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value}")
    _config[key] = value


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values that override every other source."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# --- Repository options ---

@dataclass
class CacheRepositoryOptions:
    """Resolved constructor options for one cache repository."""
    backend: str = "memory"
    enabled: bool = True
    sliding_window_ms: Optional[int] = DEFAULT_SLIDING_WINDOW_MS
    absolute_expiration: Optional[datetime] = None
    auto_sweep_enabled: bool = True
    sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS
    durable_ttl_offset_ms: int = DEFAULT_DURABLE_TTL_OFFSET_MS
    storage_dir: Optional[str] = None


def _repository_setting(name: str, option: str, default: Any) -> Any:
    value = get_config(f"cache.{name}.{option}")
    if value is None:
        value = get_config(f"cache.{option}", default)
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning(f"Ignoring invalid absolute expiration '{value}' (expected ISO-8601).")
        return None


def load_repository_options(name: str) -> CacheRepositoryOptions:
    """Builds the options for the repository called `name` from configuration."""
    sliding = _repository_setting(name, "sliding_window_ms", DEFAULT_SLIDING_WINDOW_MS)
    storage_dir = _repository_setting(name, "storage_dir", None)
    options = CacheRepositoryOptions(
        backend=str(_repository_setting(name, "backend", "memory")).strip().lower(),
        enabled=_as_bool(_repository_setting(name, "enabled", True)),
        sliding_window_ms=int(sliding) if sliding is not None else None,
        absolute_expiration=_as_datetime(_repository_setting(name, "absolute_expiration", None)),
        auto_sweep_enabled=_as_bool(_repository_setting(name, "auto_sweep_enabled", True)),
        sweep_interval_ms=int(_repository_setting(name, "sweep_interval_ms", DEFAULT_SWEEP_INTERVAL_MS)),
        durable_ttl_offset_ms=int(
            _repository_setting(name, "durable_ttl_offset_ms", DEFAULT_DURABLE_TTL_OFFSET_MS)
        ),
        storage_dir=str(storage_dir) if storage_dir is not None else None,
    )
    logger.debug(f"Resolved options for cache repository {name}: {options}")
    return options
