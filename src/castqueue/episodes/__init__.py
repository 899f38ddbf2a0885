"""Episode fetching, merging and caching."""

from castqueue.episodes.cache import EpisodeCache
from castqueue.episodes.fetcher import FeedFetcher
from castqueue.episodes.merge import merge, sort_episodes
from castqueue.episodes.models import (
    CacheState,
    CacheStats,
    CacheStatus,
    EpisodeFetchResult,
    EpisodeRecord,
)
from castqueue.episodes.storage import EpisodeCacheStore

__all__ = [
    "EpisodeCache",
    "EpisodeCacheStore",
    "FeedFetcher",
    "merge",
    "sort_episodes",
    "EpisodeRecord",
    "EpisodeFetchResult",
    "CacheState",
    "CacheStatus",
    "CacheStats",
]
