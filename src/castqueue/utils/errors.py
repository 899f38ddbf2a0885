"""Custom exceptions for castqueue."""


class CastQueueError(Exception):
    """Base exception for all castqueue errors."""

    pass


class ConfigError(CastQueueError):
    """Configuration-related errors."""

    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""

    pass


class FetchError(CastQueueError):
    """Episode feed could not be fetched or parsed.

    The reason string is what the presentation layer shows next to a
    failed cache entry.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class TransientFetchError(FetchError):
    """Fetch failure worth retrying (connection reset, 5xx, rate limit)."""

    pass


class FetchTimeoutError(FetchError):
    """Fetch exceeded its timeout."""

    pass


class FetchCancelledError(FetchError):
    """In-flight fetch was cancelled before it completed."""

    pass


class QueueError(CastQueueError):
    """Play queue errors."""

    pass


class QueueIndexError(QueueError, IndexError):
    """Queue index out of range."""

    def __init__(self, index: int, length: int) -> None:
        super().__init__(f"Queue index {index} out of range for queue of length {length}")
        self.index = index
        self.length = length


class NotFoundError(CastQueueError):
    """Unknown podcast or episode id."""

    pass


class PersistenceError(CastQueueError):
    """Reading or writing persisted state failed."""

    pass
