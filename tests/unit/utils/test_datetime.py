"""Tests for datetime helpers."""

from datetime import datetime, timedelta, timezone

from helpers import make_episode

from castqueue.utils.datetime import ensure_utc, now_utc


def test_now_utc_is_aware():
    """Test now_utc returns an aware UTC datetime."""
    assert now_utc().tzinfo == timezone.utc


def test_ensure_utc_naive_assumed_utc():
    """Test naive datetimes are treated as UTC."""
    result = ensure_utc(datetime(2024, 1, 1, 9, 30))
    assert result == datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


def test_ensure_utc_converts_offsets():
    """Test aware datetimes are converted to UTC."""
    pacific = timezone(timedelta(hours=-8))
    result = ensure_utc(datetime(2024, 1, 1, 1, 0, tzinfo=pacific))
    assert result == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert result.tzinfo == timezone.utc


def test_episode_dates_normalized():
    """Test episode publish dates are stored in UTC."""
    episode = make_episode("1", published_at=datetime(2024, 5, 1, 12, 0))
    assert episode.published_at.tzinfo == timezone.utc
