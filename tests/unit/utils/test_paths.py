"""Tests for platform directory helpers."""

from castqueue.utils.paths import (
    get_cache_dir,
    get_config_dir,
    get_config_file,
    get_data_dir,
    get_log_file,
)


def test_dirs_are_app_specific():
    """Test every directory is namespaced by the app name."""
    for path in (get_config_dir(), get_data_dir(), get_cache_dir()):
        assert "castqueue" in str(path)


def test_config_file_in_config_dir():
    """Test config.yaml lives in the config directory."""
    assert get_config_file() == get_config_dir() / "config.yaml"


def test_log_file_in_cache_dir():
    """Test the log file lives in the cache directory."""
    assert get_log_file().parent == get_cache_dir()
