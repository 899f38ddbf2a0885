"""Shared fixtures for castqueue tests."""

import pytest
from helpers import FakeClock, day, make_episode

from castqueue.episodes.models import EpisodeRecord
from castqueue.playback.store import InMemoryPlaybackStateStore
from castqueue.utils.retry import TEST_RETRY_CONFIG


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def playback_store() -> InMemoryPlaybackStateStore:
    return InMemoryPlaybackStateStore()


@pytest.fixture
def retry_config():
    """Fast retries so failure tests don't sleep."""
    return TEST_RETRY_CONFIG


@pytest.fixture
def sample_episodes() -> list[EpisodeRecord]:
    """Three distinct episodes for podcast pod-1, oldest first."""
    return [
        make_episode("1", "First", day(1)),
        make_episode("2", "Second", day(2)),
        make_episode("3", "Third", day(3)),
    ]
