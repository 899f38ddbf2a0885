"""Retry utilities for feed fetches.

Implements exponential backoff with jitter for transient fetch failures.
Only ``TransientFetchError`` is retried; every other ``FetchError`` fails
the attempt immediately.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

from castqueue.utils.errors import FetchError, TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 2,
        max_wait_seconds: float = 5,
        min_wait_seconds: float = 0.5,
        jitter: bool = True,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including initial)
            max_wait_seconds: Maximum wait time between retries
            min_wait_seconds: Minimum wait time between retries
            jitter: Whether to add jitter to wait times
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.max_wait_seconds = max_wait_seconds
        self.min_wait_seconds = min_wait_seconds
        self.jitter = jitter


DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    max_wait_seconds=5,
    min_wait_seconds=0.5,
    jitter=True,
)

# Fast configuration for testing (minimal delays)
TEST_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=0.01,
    min_wait_seconds=0.001,
    jitter=False,
)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging.

    Args:
        retry_state: Tenacity retry state
    """
    if retry_state.outcome and retry_state.outcome.failed:
        exception = retry_state.outcome.exception()
        logger.warning(
            "Fetch attempt %d failed: %s: %s",
            retry_state.attempt_number,
            type(exception).__name__,
            exception,
        )


def backoff_wait(config: RetryConfig) -> wait_base:
    """Exponential backoff from min to max wait, plus optional random jitter.

    Args:
        config: Retry configuration

    Returns:
        Tenacity wait strategy
    """
    wait: wait_base = wait_exponential(
        multiplier=config.min_wait_seconds, max=config.max_wait_seconds
    )
    if config.jitter:
        wait = wait + wait_random(0, config.max_wait_seconds)
    return wait


async def retry_fetch(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
) -> T:
    """Run an async fetch operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory performing one attempt
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)

    Returns:
        Result of the first successful attempt

    Raises:
        FetchError: The last failure once attempts are exhausted, or the
            first non-transient failure
    """
    config = config or DEFAULT_RETRY_CONFIG

    retrying = AsyncRetrying(
        stop=stop_after_attempt(config.max_attempts),
        wait=backoff_wait(config),
        retry=retry_if_exception_type(TransientFetchError),
        before_sleep=log_retry_attempt,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            return await operation()

    # AsyncRetrying with reraise=True either returns or raises above
    raise FetchError("Fetch retry loop exited without a result")


def classify_http_error(status_code: int, error_message: str = "") -> FetchError:
    """Classify an HTTP failure from a feed request.

    Args:
        status_code: HTTP status code
        error_message: Error message from the server or client library

    Returns:
        TransientFetchError for retryable statuses, FetchError otherwise

    Example:
        try:
            response = requests.get(feed_url)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise classify_http_error(e.response.status_code, str(e))
    """
    if status_code == 429:
        return TransientFetchError(f"Rate limit exceeded: {error_message}")

    if status_code == 408:
        return TransientFetchError(f"Request timeout: {error_message}")

    if 500 <= status_code < 600:
        return TransientFetchError(f"Server error (HTTP {status_code}): {error_message}")

    if status_code in (401, 403):
        return FetchError(f"Authentication failed (HTTP {status_code}): {error_message}")

    if status_code == 404:
        return FetchError(f"Feed not found (HTTP 404): {error_message}")

    return FetchError(f"HTTP error {status_code}: {error_message}")
