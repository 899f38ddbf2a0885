"""Default configuration values."""

from castqueue.config.schema import GlobalConfig

DEFAULT_GLOBAL_CONFIG = GlobalConfig()

DEFAULT_CONFIG_CONTENT = """\
# castqueue configuration
version: "1"
log_level: INFO

cache:
  freshness_minutes: 30
  expiry_minutes: 120
  sweep_interval_minutes: 5
  fetch_timeout_seconds: 30
  persist: true

queue:
  consume_mode: remove  # or mark_played
  persist: true

retry:
  max_attempts: 2
  min_wait_seconds: 0.5
  max_wait_seconds: 5
  jitter: true
"""


def get_default_config_content() -> str:
    """Get default config.yaml content."""
    return DEFAULT_CONFIG_CONTENT
