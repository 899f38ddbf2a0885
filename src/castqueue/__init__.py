"""castqueue - episode cache and play queue for podcast clients."""

from castqueue.episodes import (
    CacheState,
    CacheStatus,
    EpisodeCache,
    EpisodeFetchResult,
    EpisodeRecord,
    FeedFetcher,
    merge,
)
from castqueue.library import EpisodeLibrary, create_library
from castqueue.playback import (
    InMemoryPlaybackStateStore,
    JsonPlaybackStateStore,
    PlaybackState,
    PlaybackStateStore,
)
from castqueue.queue import PlayQueue, QueueEntry, QueueSnapshot, QueueStore

__version__ = "0.1.0"

__all__ = [
    "EpisodeLibrary",
    "create_library",
    "EpisodeCache",
    "EpisodeRecord",
    "EpisodeFetchResult",
    "CacheState",
    "CacheStatus",
    "FeedFetcher",
    "merge",
    "PlaybackState",
    "PlaybackStateStore",
    "InMemoryPlaybackStateStore",
    "JsonPlaybackStateStore",
    "PlayQueue",
    "QueueEntry",
    "QueueSnapshot",
    "QueueStore",
]
