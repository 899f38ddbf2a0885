"""Platform-specific directory resolution."""

from pathlib import Path

import platformdirs

APP_NAME = "castqueue"


def get_config_dir() -> Path:
    """Get the configuration directory (XDG config dir on Linux)."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_data_dir() -> Path:
    """Get the data directory used for queue and playback state."""
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_cache_dir() -> Path:
    """Get the cache directory used for persisted episode lists."""
    return Path(platformdirs.user_cache_dir(APP_NAME))


def get_config_file() -> Path:
    """Get path to config.yaml."""
    return get_config_dir() / "config.yaml"


def get_log_file() -> Path:
    """Get default log file path."""
    return get_cache_dir() / "castqueue.log"
