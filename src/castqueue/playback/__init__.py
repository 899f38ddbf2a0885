"""Playback state models and stores."""

from castqueue.playback.models import PlaybackState
from castqueue.playback.store import (
    InMemoryPlaybackStateStore,
    JsonPlaybackStateStore,
    PlaybackStateStore,
)

__all__ = [
    "PlaybackState",
    "PlaybackStateStore",
    "InMemoryPlaybackStateStore",
    "JsonPlaybackStateStore",
]
