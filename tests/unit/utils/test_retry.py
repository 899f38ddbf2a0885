"""Tests for fetch retry utilities."""

import warnings
from unittest.mock import Mock

import pytest

from castqueue.utils.errors import FetchError, TransientFetchError
from castqueue.utils.retry import (
    DEFAULT_RETRY_CONFIG,
    TEST_RETRY_CONFIG,
    RetryConfig,
    backoff_wait,
    classify_http_error,
    retry_fetch,
)


class TestRetryConfig:
    """Test retry configuration."""

    def test_defaults(self):
        """Test default configuration values."""
        assert DEFAULT_RETRY_CONFIG.max_attempts == 2
        assert DEFAULT_RETRY_CONFIG.jitter is True

    def test_invalid_attempts(self):
        """Test that zero attempts is rejected."""
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


class TestClassifyHttpError:
    """Test HTTP error classification."""

    def test_rate_limit_429(self):
        """Test 429 classified as transient."""
        error = classify_http_error(429, "Too many requests")
        assert isinstance(error, TransientFetchError)
        assert "Rate limit exceeded" in str(error)

    def test_server_errors_5xx(self):
        """Test 5xx classified as transient."""
        for status_code in [500, 502, 503, 504]:
            error = classify_http_error(status_code, "Server error")
            assert isinstance(error, TransientFetchError)

    def test_timeout_408(self):
        """Test 408 classified as transient."""
        assert isinstance(classify_http_error(408, "Request timeout"), TransientFetchError)

    def test_not_found_404(self):
        """Test 404 is permanent."""
        error = classify_http_error(404, "Not found")
        assert type(error) is FetchError
        assert "Feed not found" in error.reason

    def test_auth_errors_401_403(self):
        """Test 401/403 are permanent."""
        for status_code in [401, 403]:
            error = classify_http_error(status_code, "Unauthorized")
            assert not isinstance(error, TransientFetchError)

    def test_unknown_error(self):
        """Test unknown status codes are permanent."""
        assert not isinstance(classify_http_error(999, "Unknown"), TransientFetchError)


class TestRetryFetch:
    """Test the async retry loop."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        """Test a successful call is not retried."""
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await retry_fetch(operation, TEST_RETRY_CONFIG) == "ok"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self):
        """Test transient failures are retried."""
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise TransientFetchError("connection reset")
            return "ok"

        assert await retry_fetch(operation, TEST_RETRY_CONFIG) == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """Test the last transient error is re-raised."""
        calls = []

        async def operation():
            calls.append(1)
            raise TransientFetchError(f"attempt {len(calls)}")

        with pytest.raises(TransientFetchError, match="attempt 3"):
            await retry_fetch(operation, TEST_RETRY_CONFIG)
        assert len(calls) == TEST_RETRY_CONFIG.max_attempts

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self):
        """Test non-transient errors fail immediately."""
        calls = []

        async def operation():
            calls.append(1)
            raise FetchError("feed is not RSS")

        with pytest.raises(FetchError, match="not RSS"):
            await retry_fetch(operation, TEST_RETRY_CONFIG)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_other_exceptions_not_retried(self):
        """Test unrelated exceptions pass straight through."""
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError("bad data")

        with pytest.raises(ValueError):
            await retry_fetch(operation, TEST_RETRY_CONFIG)
        assert len(calls) == 1


class TestBackoffWait:
    """Test the wait strategy between attempts."""

    def test_no_deprecation_warnings(self):
        """Test building the wait strategy uses only supported parameters."""
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            backoff_wait(DEFAULT_RETRY_CONFIG)
            backoff_wait(TEST_RETRY_CONFIG)

    def test_exponential_without_jitter(self):
        """Test waits start at the minimum and are capped at the maximum."""
        config = RetryConfig(
            max_attempts=5, min_wait_seconds=0.5, max_wait_seconds=3, jitter=False
        )
        wait = backoff_wait(config)

        assert wait(Mock(attempt_number=1)) == pytest.approx(0.5)
        assert wait(Mock(attempt_number=2)) == pytest.approx(1.0)
        assert wait(Mock(attempt_number=10)) == pytest.approx(3)

    def test_jitter_stays_bounded(self):
        """Test jitter adds at most max_wait_seconds."""
        config = RetryConfig(min_wait_seconds=0.5, max_wait_seconds=2, jitter=True)
        wait = backoff_wait(config)

        for _ in range(20):
            assert 0.5 <= wait(Mock(attempt_number=1)) <= 2.5
