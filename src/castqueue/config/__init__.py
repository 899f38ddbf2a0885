"""Configuration management for castqueue."""

from castqueue.config.logging import setup_logging
from castqueue.config.manager import ConfigManager
from castqueue.config.schema import CacheConfig, FetchRetryConfig, GlobalConfig, QueueConfig

__all__ = [
    "ConfigManager",
    "GlobalConfig",
    "CacheConfig",
    "QueueConfig",
    "FetchRetryConfig",
    "setup_logging",
]
