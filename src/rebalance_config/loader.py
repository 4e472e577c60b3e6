"""Configuration loader with validation and singleton access."""

import logging
import os
import yaml
from pathlib import Path
from typing import Optional

from .models import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/app/config.yaml"

# Global config singleton
_config: Optional[AppConfig] = None


def load_config(config_path: str | Path) -> AppConfig:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
        yaml.YAMLError: If YAML parsing fails
    """
    global _config

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    try:
        _config = AppConfig(**raw_config)
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    _log_summary(_config)
    return _config


def load_config_from_env() -> AppConfig:
    """
    Load configuration from CONFIG_PATH, falling back to defaults.

    Defaults are only used when CONFIG_PATH is unset and the default path
    does not exist; an explicit CONFIG_PATH that is missing is an error.
    """
    global _config

    explicit_path = os.getenv('CONFIG_PATH')
    if explicit_path:
        return load_config(explicit_path)

    if Path(DEFAULT_CONFIG_PATH).exists():
        return load_config(DEFAULT_CONFIG_PATH)

    logger.warning(f"No configuration at {DEFAULT_CONFIG_PATH}, using defaults")
    _config = AppConfig()
    _log_summary(_config)
    return _config


def set_config(config: AppConfig) -> AppConfig:
    """Install an already-built configuration as the current one."""
    global _config
    _config = config
    return _config


def get_config() -> AppConfig:
    """
    Get the current loaded configuration.

    Returns:
        Current AppConfig instance

    Raises:
        RuntimeError: If config hasn't been loaded yet
    """
    if _config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() first."
        )
    return _config


def _log_summary(config: AppConfig) -> None:
    # Log loaded configuration for audit trail
    logger.info("Configuration loaded successfully:")
    logger.info(f"  Redis: {config.redis.host}:{config.redis.port}/{config.redis.db}")
    logger.info(f"  Log level: {config.logging.level} ({config.logging.format})")
    logger.info(f"  Max concurrent events: {config.processing.max_concurrent_events}")
    logger.info(f"  Per-user locking: {config.processing.per_user_locking}")
    logger.info(f"  Transaction write attempts: {config.retry.max_attempts}")
    logger.info(f"  Retry base delay: {config.retry.base_delay_seconds}s")
    logger.info(f"  Allocation sum tolerance: {config.api.allocation_sum_tolerance}")
