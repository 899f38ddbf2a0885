"""Per-podcast episode cache with single-flight fetching.

Each podcast has one cache entry holding its last good episode list, the
time of the last successful fetch, the last failure reason, and the handle of
the fetch currently in flight. Freshness is computed when the entry is read:

- younger than the freshness window: served without a fetch
- older than that but within the expiry threshold: served immediately while
  a background refresh runs
- older than the expiry threshold: evicted, the next read fetches from scratch

Failures never discard cached episodes. ``get_episodes`` raises only when a
podcast has nothing cached and its fetch fails.
"""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from castqueue.config.schema import CacheConfig
from castqueue.episodes.fetcher import FeedFetcher
from castqueue.episodes.merge import merge
from castqueue.episodes.models import (
    CacheState,
    CacheStats,
    CacheStatus,
    EpisodeFetchResult,
    EpisodeRecord,
)
from castqueue.episodes.storage import EpisodeCacheStore, PersistedCacheEntry
from castqueue.playback.store import PlaybackStateStore
from castqueue.utils.datetime import Clock, now_utc
from castqueue.utils.errors import (
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
    PersistenceError,
)
from castqueue.utils.retry import RetryConfig, retry_fetch

logger = logging.getLogger(__name__)

RefreshListener = Callable[[str, list[EpisodeRecord]], None]


@dataclass
class _CacheEntry:
    episodes: list[EpisodeRecord] = field(default_factory=list)
    fetched_at: datetime | None = None
    failed: bool = False
    error: str | None = None
    last_attempt_at: datetime | None = None
    task: asyncio.Task | None = None


class EpisodeCache:
    """Freshness-bounded episode lists with coalesced fetches.

    The entry map is guarded by a lock held only for state transitions. The
    fetch itself runs as an asyncio task outside the lock; concurrent readers
    of the same podcast await that one task instead of starting another.

    Example:
        >>> cache = EpisodeCache(fetcher, playback_store)
        >>> result = await cache.get_episodes("podcast-1")
        >>> result.from_cache
        False
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        playback_store: PlaybackStateStore,
        config: CacheConfig | None = None,
        retry_config: RetryConfig | None = None,
        store: EpisodeCacheStore | None = None,
        clock: Clock = now_utc,
    ) -> None:
        """Initialize cache.

        Args:
            fetcher: Source of raw episode records
            playback_store: Read for the played/resume overlay during merge
            config: Freshness, expiry and timeout settings
            retry_config: Retry policy for transient fetch failures
            store: Optional on-disk persistence for last good lists
            clock: Returns the current UTC time
        """
        self.config = config or CacheConfig()
        self.fetcher = fetcher
        self.playback_store = playback_store
        self.retry_config = retry_config
        self.store = store
        self._clock = clock

        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[RefreshListener] = []
        self._sweeper: asyncio.Task | None = None

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(minutes=self.config.freshness_minutes)

    @property
    def expiry_threshold(self) -> timedelta:
        return timedelta(minutes=self.config.expiry_minutes)

    # Reads

    async def get_episodes(
        self,
        podcast_id: str,
        force_refresh: bool = False,
        timeout: float | None = None,
    ) -> EpisodeFetchResult:
        """Get episodes for a podcast, fetching only when needed.

        Args:
            podcast_id: Podcast identifier
            force_refresh: Fetch even if cached data is fresh
            timeout: Fetch timeout in seconds (default from config). Callers
                joining a fetch already in flight share its timeout.

        Returns:
            Episodes plus where they came from and the entry state

        Raises:
            FetchError: Nothing is cached for the podcast and the fetch failed
        """
        timeout = self.config.fetch_timeout_seconds if timeout is None else timeout

        with self._lock:
            now = self._clock()
            entry = self._live_entry(podcast_id, now, create=True)

            if entry.fetched_at is not None and not force_refresh:
                return self._serve_cached(podcast_id, entry, now, timeout)

            if entry.task is None:
                task = self._start_fetch(podcast_id, entry, timeout)
            else:
                logger.debug("Joining in-flight fetch for podcast %s", podcast_id)
                task = entry.task

        try:
            episodes = await self._await_fetch(podcast_id, task)
        except FetchError as e:
            fallback = self._fallback(podcast_id, e)
            if fallback is None:
                raise
            return fallback

        return EpisodeFetchResult(
            episodes=list(episodes),
            from_cache=False,
            state=CacheState.FRESH,
        )

    async def refresh(self, podcast_id: str, timeout: float | None = None) -> EpisodeFetchResult:
        """Force a fetch, joining one already in flight."""
        return await self.get_episodes(podcast_id, force_refresh=True, timeout=timeout)

    def peek(self, podcast_id: str) -> list[EpisodeRecord] | None:
        """Cached episodes if present and not expired. Never fetches."""
        with self._lock:
            entry = self._live_entry(podcast_id, self._clock(), create=False)
            if entry is None or entry.fetched_at is None:
                return None
            return list(entry.episodes)

    def has_fresh_cache(self, podcast_id: str) -> bool:
        """Whether the podcast's data is inside the freshness window."""
        with self._lock:
            now = self._clock()
            entry = self._live_entry(podcast_id, now, create=False)
            return entry is not None and self._is_fresh(entry, now)

    def cache_status(self, podcast_id: str) -> CacheStatus:
        """State and last update time of a podcast's entry, for display."""
        with self._lock:
            now = self._clock()
            entry = self._live_entry(podcast_id, now, create=False)
            if entry is None:
                return CacheStatus(podcast_id=podcast_id, state=CacheState.EMPTY)
            return CacheStatus(
                podcast_id=podcast_id,
                state=self._state_of(entry, now),
                last_updated=entry.fetched_at,
                episode_count=len(entry.episodes),
                error=entry.error if entry.failed else None,
            )

    def resolve_episode(self, episode_id: str) -> EpisodeRecord | None:
        """Find a cached episode by id across all podcasts."""
        with self._lock:
            now = self._clock()
            for podcast_id in list(self._entries):
                entry = self._live_entry(podcast_id, now, create=False)
                if entry is None:
                    continue
                for episode in entry.episodes:
                    if episode.id == episode_id:
                        return episode
        return None

    def stats(self) -> CacheStats:
        """Aggregate counts over all live entries."""
        with self._lock:
            now = self._clock()
            stats = CacheStats()
            for podcast_id in list(self._entries):
                entry = self._live_entry(podcast_id, now, create=False)
                if entry is None:
                    continue
                stats.total_podcasts += 1
                stats.total_episodes += len(entry.episodes)
                state = self._state_of(entry, now)
                if state == CacheState.FRESH:
                    stats.fresh_entries += 1
                elif state == CacheState.STALE:
                    stats.stale_entries += 1
                elif state == CacheState.LOADING:
                    stats.loading_entries += 1
                elif state == CacheState.FAILED:
                    stats.failed_entries += 1
            return stats

    # Mutations

    def cancel(self, podcast_id: str) -> bool:
        """Cancel the podcast's in-flight fetch.

        Its completion becomes a no-op and the entry returns to the state it
        had before the fetch started. Callers waiting on it receive
        ``FetchCancelledError`` (or cached data when there is some).

        Returns:
            True if a fetch was in flight
        """
        with self._lock:
            entry = self._entries.get(podcast_id)
            if entry is None or entry.task is None:
                return False
            task, entry.task = entry.task, None

        task.cancel()
        logger.info("Cancelled in-flight fetch for podcast %s", podcast_id)
        return True

    async def clear(self, podcast_id: str) -> None:
        """Drop a podcast's entry entirely."""
        self.cancel(podcast_id)
        with self._lock:
            removed = self._entries.pop(podcast_id, None) is not None
        if removed:
            logger.info("Cleared cache for podcast %s", podcast_id)
            await self._persist()

    async def clear_all(self) -> None:
        """Drop every entry."""
        for podcast_id in self._podcast_ids():
            self.cancel(podcast_id)
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared %d cache entries", count)
        await self._persist()

    def apply_playback(self, episode_id: str) -> None:
        """Re-read playback state for one episode into every cached copy."""
        state = self.playback_store.get(episode_id)
        played = state.played if state else False
        position = state.resume_position if state else 0.0

        with self._lock:
            for entry in self._entries.values():
                entry.episodes = [
                    e.model_copy(update={"played": played, "resume_position": position})
                    if e.id == episode_id
                    else e
                    for e in entry.episodes
                ]

    def add_listener(self, listener: RefreshListener) -> None:
        """Call ``listener(podcast_id, episodes)`` after each successful fetch."""
        self._listeners.append(listener)

    # Expiry

    def sweep_expired(self) -> int:
        """Evict every expired entry.

        Entries with a fetch in flight keep their handle but lose their
        expired episodes.

        Returns:
            Number of entries evicted or emptied
        """
        with self._lock:
            now = self._clock()
            count = 0
            for podcast_id in list(self._entries):
                entry = self._entries[podcast_id]
                if self._is_expired(entry, now):
                    self._evict(podcast_id, entry)
                    count += 1

        if count:
            logger.info("Swept %d expired cache entries", count)
        return count

    async def run_sweeper(self) -> None:
        """Sweep expired entries every ``sweep_interval_minutes`` until cancelled."""
        interval = self.config.sweep_interval_minutes * 60
        while True:
            await asyncio.sleep(interval)
            if self.sweep_expired():
                await self._persist()

    def start_sweeper(self) -> asyncio.Task:
        """Start the periodic sweep task (idempotent)."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self.run_sweeper())
            logger.debug("Started cache sweeper")
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep task."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        """Stop the sweeper and cancel every in-flight fetch."""
        await self.stop_sweeper()
        for podcast_id in self._podcast_ids():
            self.cancel(podcast_id)

    def _podcast_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    # Persistence

    async def load_persisted(self) -> int:
        """Load last good lists from the store.

        Entries already expired are skipped, as are podcasts that already
        have an entry in memory. Playback state is overlaid again.

        Returns:
            Number of entries loaded
        """
        if self.store is None:
            return 0

        persisted = await self.store.load()
        loaded = 0
        with self._lock:
            now = self._clock()
            for podcast_id, saved in persisted.items():
                if podcast_id in self._entries:
                    continue
                if now - saved.fetched_at > self.expiry_threshold:
                    continue
                self._entries[podcast_id] = _CacheEntry(
                    episodes=merge(saved.episodes, self.playback_store.get, podcast_id),
                    fetched_at=saved.fetched_at,
                )
                loaded += 1

        logger.info("Restored %d cached podcast(s) from disk", loaded)
        return loaded

    async def _persist(self) -> None:
        if self.store is None or not self.config.persist:
            return

        with self._lock:
            snapshot = {
                podcast_id: PersistedCacheEntry(
                    fetched_at=entry.fetched_at, episodes=list(entry.episodes)
                )
                for podcast_id, entry in self._entries.items()
                if entry.fetched_at is not None
            }

        try:
            await self.store.save(snapshot)
        except PersistenceError as e:
            # In-memory cache stays authoritative
            logger.warning("%s", e)

    # Internals (callers hold the lock)

    def _live_entry(self, podcast_id: str, now: datetime, create: bool) -> _CacheEntry | None:
        entry = self._entries.get(podcast_id)
        if entry is not None and self._is_expired(entry, now):
            entry = self._evict(podcast_id, entry)
        if entry is None and create:
            entry = _CacheEntry()
            self._entries[podcast_id] = entry
        return entry

    def _evict(self, podcast_id: str, entry: _CacheEntry) -> _CacheEntry | None:
        if entry.task is not None:
            entry.episodes = []
            entry.fetched_at = None
            logger.debug("Expired data dropped for podcast %s (fetch in flight)", podcast_id)
            return entry
        del self._entries[podcast_id]
        logger.debug("Evicted expired cache entry for podcast %s", podcast_id)
        return None

    def _is_expired(self, entry: _CacheEntry, now: datetime) -> bool:
        if entry.fetched_at is None and entry.task is not None:
            return False
        reference = entry.fetched_at or entry.last_attempt_at
        if reference is None:
            # Nothing fetched, nothing attempted, nothing in flight
            return True
        return now - reference > self.expiry_threshold

    def _is_fresh(self, entry: _CacheEntry, now: datetime) -> bool:
        return entry.fetched_at is not None and now - entry.fetched_at < self.freshness_window

    def _state_of(self, entry: _CacheEntry, now: datetime) -> CacheState:
        if entry.task is not None:
            return CacheState.LOADING
        return self._data_state(entry, now)

    def _data_state(self, entry: _CacheEntry, now: datetime) -> CacheState:
        if entry.failed:
            return CacheState.FAILED
        if entry.fetched_at is None:
            return CacheState.EMPTY
        if self._is_fresh(entry, now):
            return CacheState.FRESH
        return CacheState.STALE

    def _serve_cached(
        self, podcast_id: str, entry: _CacheEntry, now: datetime, timeout: float
    ) -> EpisodeFetchResult:
        state = self._data_state(entry, now)

        # Failed entries retry once their data leaves the freshness window
        if not self._is_fresh(entry, now) and entry.task is None:
            logger.info(
                "Serving stale episodes for podcast %s, refreshing in background", podcast_id
            )
            self._start_fetch(podcast_id, entry, timeout)
        else:
            logger.debug("Cache hit for podcast %s (%s)", podcast_id, state.value)

        return EpisodeFetchResult(
            episodes=list(entry.episodes),
            from_cache=True,
            state=state,
            refreshing=entry.task is not None,
            error=entry.error if entry.failed else None,
        )

    def _start_fetch(self, podcast_id: str, entry: _CacheEntry, timeout: float) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._fetch(podcast_id, entry, timeout))
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.debug("Started fetch for podcast %s (timeout %.1fs)", podcast_id, timeout)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        # Background refreshes have no waiter; retrieve so asyncio does not warn
        if not task.cancelled():
            task.exception()

    # Fetch pipeline

    async def _fetch(
        self, podcast_id: str, entry: _CacheEntry, timeout: float
    ) -> list[EpisodeRecord]:
        task = asyncio.current_task()

        try:
            raw = await asyncio.wait_for(
                retry_fetch(lambda: self.fetcher.fetch(podcast_id), self.retry_config),
                timeout=timeout,
            )
            episodes = merge(raw, self.playback_store.get, podcast_id=podcast_id)
        except asyncio.TimeoutError:
            error: FetchError = FetchTimeoutError(
                f"Fetching episodes timed out after {timeout:g}s"
            )
            self._record_failure(podcast_id, entry, task, error)
            raise error from None
        except FetchError as e:
            self._record_failure(podcast_id, entry, task, e)
            raise
        except Exception as e:
            logger.exception("Unexpected error fetching podcast %s", podcast_id)
            error = FetchError(f"Unexpected fetch failure: {e}")
            self._record_failure(podcast_id, entry, task, error)
            raise error from e

        if not self._record_success(podcast_id, entry, task, episodes):
            raise FetchCancelledError(f"Fetch for podcast {podcast_id} was superseded")

        await self._persist()
        self._notify(podcast_id, episodes)
        return episodes

    def _is_current(self, podcast_id: str, entry: _CacheEntry, task: asyncio.Task | None) -> bool:
        return self._entries.get(podcast_id) is entry and entry.task is task

    def _record_success(
        self,
        podcast_id: str,
        entry: _CacheEntry,
        task: asyncio.Task | None,
        episodes: list[EpisodeRecord],
    ) -> bool:
        with self._lock:
            if not self._is_current(podcast_id, entry, task):
                logger.debug("Discarding superseded fetch result for podcast %s", podcast_id)
                return False
            now = self._clock()
            entry.episodes = episodes
            entry.fetched_at = now
            entry.last_attempt_at = now
            entry.failed = False
            entry.error = None
            entry.task = None

        logger.info("Cached %d episodes for podcast %s", len(episodes), podcast_id)
        return True

    def _record_failure(
        self,
        podcast_id: str,
        entry: _CacheEntry,
        task: asyncio.Task | None,
        error: FetchError,
    ) -> None:
        with self._lock:
            if not self._is_current(podcast_id, entry, task):
                return
            entry.failed = True
            entry.error = error.reason
            entry.last_attempt_at = self._clock()
            entry.task = None
            has_data = entry.fetched_at is not None

        if has_data:
            logger.warning(
                "Fetch failed for podcast %s, keeping cached episodes: %s", podcast_id, error.reason
            )
        else:
            logger.error("Fetch failed for podcast %s: %s", podcast_id, error.reason)

    async def _await_fetch(self, podcast_id: str, task: asyncio.Task) -> list[EpisodeRecord]:
        try:
            # Shielded so one caller giving up does not cancel the shared fetch
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise FetchCancelledError(
                    f"Fetch for podcast {podcast_id} was cancelled"
                ) from None
            raise

    def _fallback(self, podcast_id: str, error: FetchError) -> EpisodeFetchResult | None:
        with self._lock:
            now = self._clock()
            entry = self._live_entry(podcast_id, now, create=False)
            if entry is None or entry.fetched_at is None:
                return None
            return EpisodeFetchResult(
                episodes=list(entry.episodes),
                from_cache=True,
                state=self._data_state(entry, now),
                refreshing=entry.task is not None,
                error=error.reason,
            )

    def _notify(self, podcast_id: str, episodes: list[EpisodeRecord]) -> None:
        for listener in list(self._listeners):
            try:
                listener(podcast_id, list(episodes))
            except Exception:
                logger.exception("Episode refresh listener failed for podcast %s", podcast_id)
