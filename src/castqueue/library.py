"""Episode library: the cache, the play queue and playback state wired together.

This is the object the presentation layer talks to. It owns no state of its
own beyond the wiring; every instance is constructed explicitly, usually via
``create_library``.
"""

import logging
from pathlib import Path

from castqueue.config.schema import GlobalConfig
from castqueue.episodes.cache import EpisodeCache
from castqueue.episodes.fetcher import FeedFetcher
from castqueue.episodes.merge import overlay_playback
from castqueue.episodes.models import CacheStatus, EpisodeFetchResult, EpisodeRecord
from castqueue.episodes.storage import EpisodeCacheStore
from castqueue.playback.models import PlaybackState
from castqueue.playback.store import JsonPlaybackStateStore, PlaybackStateStore
from castqueue.queue.play_queue import PlayQueue
from castqueue.queue.storage import QueueStore
from castqueue.utils.datetime import Clock, now_utc
from castqueue.utils.errors import NotFoundError, PersistenceError
from castqueue.utils.paths import get_cache_dir, get_data_dir
from castqueue.utils.retry import RetryConfig

logger = logging.getLogger(__name__)


class EpisodeLibrary:
    """Facade over EpisodeCache, PlayQueue and the playback state store."""

    def __init__(
        self,
        cache: EpisodeCache,
        queue: PlayQueue,
        playback_store: PlaybackStateStore,
        queue_store: QueueStore | None = None,
        autosave_queue: bool = True,
    ) -> None:
        """Initialize library.

        Args:
            cache: Episode cache
            queue: Play queue
            playback_store: Playback state store (written only by mark/save calls)
            queue_store: Optional queue persistence
            autosave_queue: Save the queue after every mutation
        """
        self.cache = cache
        self.queue = queue
        self.playback_store = playback_store
        self.queue_store = queue_store
        self._restoring = False

        self.cache.add_listener(self._on_episodes_refreshed)
        if queue_store is not None and autosave_queue:
            self.queue.add_listener(self._autosave_queue)

    # Episode lists

    async def get_episodes(
        self, podcast_id: str, force_refresh: bool = False, timeout: float | None = None
    ) -> EpisodeFetchResult:
        return await self.cache.get_episodes(
            podcast_id, force_refresh=force_refresh, timeout=timeout
        )

    async def refresh(self, podcast_id: str, timeout: float | None = None) -> EpisodeFetchResult:
        return await self.cache.refresh(podcast_id, timeout=timeout)

    def cache_status(self, podcast_id: str) -> CacheStatus:
        return self.cache.cache_status(podcast_id)

    def cancel_fetch(self, podcast_id: str) -> bool:
        """Cancel a podcast's pending fetch, e.g. when the user navigates away."""
        return self.cache.cancel(podcast_id)

    # Playback state

    def playback_state(self, episode_id: str) -> PlaybackState:
        return self.playback_store.get(episode_id) or PlaybackState()

    def mark_played(self, episode_id: str, played: bool = True) -> None:
        """Set an episode's played flag in the store and in every cached copy."""
        state = self.playback_state(episode_id)
        self.playback_store.set(episode_id, played, state.resume_position)
        self._propagate_playback(episode_id)
        logger.info("Marked episode %s as %s", episode_id, "played" if played else "unplayed")

    def mark_unplayed(self, episode_id: str) -> None:
        self.mark_played(episode_id, played=False)

    def save_progress(self, episode_id: str, resume_position: float) -> None:
        """Store how far into an episode the user got."""
        state = self.playback_state(episode_id)
        self.playback_store.set(episode_id, state.played, max(resume_position, 0.0))
        self._propagate_playback(episode_id)

    # Queue

    def advance(self) -> EpisodeRecord | None:
        """Playback of the current episode completed.

        Marks it played and moves the queue on. The finished episode is the
        one the queue consumed, read atomically with the move.

        Returns:
            The next episode, or None when the queue has run out
        """
        finished, next_episode = self.queue.consume_current()
        if finished is not None:
            try:
                self.playback_store.set(finished.id, True, 0.0)
            except PersistenceError as e:
                logger.warning("Could not persist played flag for episode %s: %s", finished.id, e)
            self._propagate_playback(finished.id)
        if next_episode is None:
            logger.info("Play queue finished, playback stopped")
        return next_episode

    def resolve_episode(self, episode_id: str) -> EpisodeRecord:
        """Look up a cached episode by id.

        Raises:
            NotFoundError: If no cached podcast contains the episode
        """
        episode = self.cache.resolve_episode(episode_id)
        if episode is None:
            raise NotFoundError(f"Episode {episode_id} not found in cache")
        return episode

    def save_queue(self) -> None:
        if self.queue_store is None:
            return
        try:
            self.queue_store.save(self.queue.snapshot())
        except PersistenceError as e:
            logger.warning("%s", e)

    def restore_queue(self) -> int:
        """Rebuild the queue from its saved snapshot.

        Cached records are preferred. Episodes whose podcast is no longer
        cached come back from the records saved with the queue, with current
        playback state applied. Only ids with neither are dropped. The saved
        file is not rewritten by the restore itself.

        Returns:
            Number of dropped episodes
        """
        if self.queue_store is None:
            return 0
        snapshot = self.queue_store.load()

        def resolve(episode_id: str) -> EpisodeRecord | None:
            episode = self.cache.resolve_episode(episode_id)
            if episode is not None:
                return episode
            saved = snapshot.saved_record(episode_id)
            return overlay_playback(saved, self.playback_store.get) if saved else None

        self._restoring = True
        try:
            return self.queue.restore(snapshot, resolve)
        finally:
            self._restoring = False

    # Lifecycle

    async def start(self) -> None:
        """Load persisted state and start the expiry sweeper."""
        await self.cache.load_persisted()
        self.restore_queue()
        self.cache.start_sweeper()

    async def close(self) -> None:
        """Persist the queue, stop the sweeper and cancel pending fetches."""
        self.save_queue()
        await self.cache.close()

    # Internals

    def _autosave_queue(self, _queue: PlayQueue) -> None:
        if not self._restoring:
            self.save_queue()

    def _propagate_playback(self, episode_id: str) -> None:
        self.cache.apply_playback(episode_id)
        episode = self.cache.resolve_episode(episode_id)
        if episode is None:
            # Queued from a saved record, not in any cached list
            queued = next((e for e in self.queue.episodes() if e.id == episode_id), None)
            if queued is not None:
                episode = overlay_playback(queued, self.playback_store.get)
        if episode is not None:
            self.queue.refresh_records([episode])

    def _on_episodes_refreshed(self, podcast_id: str, episodes: list[EpisodeRecord]) -> None:
        updated = self.queue.refresh_records(episodes)
        if updated:
            logger.debug("Updated %d queued episode(s) from podcast %s", updated, podcast_id)


def create_library(
    fetcher: FeedFetcher,
    config: GlobalConfig | None = None,
    data_dir: Path | None = None,
    playback_store: PlaybackStateStore | None = None,
    clock: Clock = now_utc,
) -> EpisodeLibrary:
    """Build an EpisodeLibrary from configuration.

    Args:
        fetcher: Feed fetcher supplying raw episode records
        config: Global configuration (defaults if None)
        data_dir: Directory for queue, playback state and cache files.
            Defaults to ``config.data_dir`` or the platform directories.
        playback_store: Playback state store (JSON file in data_dir if None)
        clock: Current-time source for the cache

    Returns:
        Wired EpisodeLibrary (call ``await library.start()`` before use)
    """
    config = config or GlobalConfig()
    data_dir = data_dir or config.data_dir
    if data_dir is None:
        data_dir = get_data_dir()
        cache_dir = get_cache_dir()
    else:
        cache_dir = data_dir / "cache"

    if playback_store is None:
        playback_store = JsonPlaybackStateStore(data_dir / "playback_state.json")

    cache = EpisodeCache(
        fetcher,
        playback_store,
        config=config.cache,
        retry_config=RetryConfig(**config.retry.model_dump()),
        store=EpisodeCacheStore(cache_dir) if config.cache.persist else None,
        clock=clock,
    )
    queue = PlayQueue(consume_mode=config.queue.consume_mode)
    queue_store = QueueStore(data_dir) if config.queue.persist else None

    logger.debug("Created episode library with data dir %s", data_dir)
    return EpisodeLibrary(cache, queue, playback_store, queue_store=queue_store)
