"""Utility functions and helpers for castqueue."""

from castqueue.utils.errors import (
    CastQueueError,
    ConfigError,
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    InvalidConfigError,
    NotFoundError,
    PersistenceError,
    QueueError,
    QueueIndexError,
    TransientFetchError,
)
from castqueue.utils.paths import (
    get_cache_dir,
    get_config_dir,
    get_config_file,
    get_data_dir,
    get_log_file,
)

__all__ = [
    # Errors
    "CastQueueError",
    "ConfigError",
    "InvalidConfigError",
    "FetchError",
    "TransientFetchError",
    "FetchTimeoutError",
    "FetchCancelledError",
    "QueueError",
    "QueueIndexError",
    "NotFoundError",
    "PersistenceError",
    # Paths
    "get_config_dir",
    "get_data_dir",
    "get_cache_dir",
    "get_config_file",
    "get_log_file",
]
