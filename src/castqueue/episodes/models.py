"""Data models for episodes and per-podcast cache state."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from castqueue.utils.datetime import ensure_utc


class EpisodeRecord(BaseModel):
    """A single podcast episode as returned by a feed fetcher.

    ``played`` and ``resume_position`` belong to the playback state store and
    are overlaid during merge; whatever a fetcher puts there is ignored.
    """

    id: str
    podcast_id: str | None = None  # Records without one are dropped by merge
    title: str = ""
    published_at: datetime | None = None
    played: bool = False
    resume_position: float = Field(default=0.0, ge=0)  # Seconds
    audio_ref: str | None = None
    artwork_ref: str | None = None
    description: str | None = None
    duration: float | None = Field(default=None, ge=0)  # Seconds

    @field_validator("published_at")
    @classmethod
    def normalize_published_at(cls, v: datetime | None) -> datetime | None:
        """Compare all publish dates in UTC."""
        if v is None:
            return None
        return ensure_utc(v)


class CacheState(str, Enum):
    """Lifecycle state of a podcast's cache entry."""

    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"
    LOADING = "loading"
    FAILED = "failed"


class EpisodeFetchResult(BaseModel):
    """Result of an episode list read."""

    episodes: list[EpisodeRecord] = Field(default_factory=list)
    from_cache: bool = False
    state: CacheState = CacheState.EMPTY  # Freshness of the returned data
    refreshing: bool = False  # A fetch for this podcast is in flight
    error: str | None = None  # Reason of the last failed fetch, if any


class CacheStatus(BaseModel):
    """Display-oriented status of one podcast's cache entry."""

    podcast_id: str
    state: CacheState
    last_updated: datetime | None = None
    episode_count: int = 0
    error: str | None = None


class CacheStats(BaseModel):
    """Aggregate statistics over all cache entries."""

    total_podcasts: int = 0
    fresh_entries: int = 0
    stale_entries: int = 0
    loading_entries: int = 0
    failed_entries: int = 0
    total_episodes: int = 0
