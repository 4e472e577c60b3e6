"""Application configuration management for the portfolio rebalancer."""

from .models import (
    AppConfig,
    RedisConfig,
    LoggingConfig,
    ProcessingConfig,
    RetryConfig,
    APIConfig,
)
from .loader import load_config, load_config_from_env, set_config, get_config

__all__ = [
    "AppConfig",
    "RedisConfig",
    "LoggingConfig",
    "ProcessingConfig",
    "RetryConfig",
    "APIConfig",
    "load_config",
    "load_config_from_env",
    "set_config",
    "get_config",
]
