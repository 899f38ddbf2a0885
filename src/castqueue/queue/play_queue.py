"""Ordered play queue with a now-playing cursor.

The cursor tracks an episode id, not an index, so reordering never moves it
to a different episode. Every mutation validates its indices before touching
anything: an out-of-range index raises ``QueueIndexError`` and leaves the
queue exactly as it was.
"""

import logging
import random
import threading
from collections.abc import Callable, Iterable

from castqueue.config.schema import ConsumeMode
from castqueue.episodes.models import EpisodeRecord
from castqueue.queue.models import QueueEntry, QueueSnapshot
from castqueue.utils.errors import QueueIndexError

logger = logging.getLogger(__name__)

EpisodeResolver = Callable[[str], EpisodeRecord | None]


class PlayQueue:
    """Thread-safe ordered queue of episodes.

    All reads and writes go through one re-entrant lock, so a completed
    mutation is visible to every later read. Listeners run after the lock is
    released.

    Example:
        >>> queue = PlayQueue()
        >>> queue.enqueue(episode_a)
        True
        >>> queue.enqueue_next(episode_b)
        >>> [e.id for e in queue.episodes()]
        ['b', 'a']
    """

    def __init__(self, consume_mode: ConsumeMode = "remove") -> None:
        """Initialize an empty queue.

        Args:
            consume_mode: What ``advance`` does with a finished entry:
                "remove" drops it, "mark_played" keeps it flagged as played
        """
        self.consume_mode = consume_mode
        self._entries: list[QueueEntry] = []
        self._cursor_id: str | None = None
        self._lock = threading.RLock()
        self._listeners: list[Callable[["PlayQueue"], None]] = []

    # Reads

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, episode_id: object) -> bool:
        with self._lock:
            return any(entry.episode_id == episode_id for entry in self._entries)

    def entries(self) -> list[QueueEntry]:
        with self._lock:
            return list(self._entries)

    def episodes(self) -> list[EpisodeRecord]:
        with self._lock:
            return [entry.episode for entry in self._entries]

    def index_of(self, episode_id: str) -> int | None:
        with self._lock:
            return self._index_of(episode_id)

    def current(self) -> EpisodeRecord | None:
        """The episode under the cursor, or None when nothing is playing."""
        with self._lock:
            index = self._cursor_index()
            return None if index is None else self._entries[index].episode

    def current_index(self) -> int | None:
        with self._lock:
            return self._cursor_index()

    # Mutations

    def enqueue(self, episode: EpisodeRecord) -> bool:
        """Append an episode.

        Returns:
            False if the episode was already queued (nothing changes)
        """
        with self._lock:
            if self._index_of(episode.id) is not None:
                logger.debug("Episode %s already queued", episode.id)
                return False
            self._entries.append(QueueEntry(episode=episode))
            logger.info("Queued episode %s at position %d", episode.id, len(self._entries) - 1)

        self._notify()
        return True

    def enqueue_next(self, episode: EpisodeRecord) -> None:
        """Queue an episode to play right after the current one.

        With nothing playing it goes to the front. An episode already queued
        elsewhere is moved rather than duplicated.
        """
        with self._lock:
            if episode.id == self._cursor_id:
                return

            existing = self._index_of(episode.id)
            if existing is not None:
                self._entries.pop(existing)

            cursor = self._cursor_index()
            position = 0 if cursor is None else cursor + 1
            self._entries.insert(position, QueueEntry(episode=episode))
            logger.info("Episode %s will play next (position %d)", episode.id, position)

        self._notify()

    def remove(self, index: int) -> EpisodeRecord:
        """Remove the entry at ``index``.

        If it was playing, the cursor moves to the entry that followed it,
        or to none when there is no such entry. Later entries shift down by
        one; re-resolve indices after any mutation.

        Returns:
            The removed episode

        Raises:
            QueueIndexError: If index is out of range
        """
        with self._lock:
            self._check_index(index)
            entry = self._pop(index)

        self._notify()
        return entry.episode

    def remove_episode(self, episode_id: str) -> bool:
        """Remove an episode by id. Returns False if it was not queued."""
        with self._lock:
            index = self._index_of(episode_id)
            if index is None:
                return False
            self._pop(index)

        self._notify()
        return True

    def move(self, from_index: int, to_index: int) -> None:
        """Move an entry; the cursor stays on the episode it was on.

        Raises:
            QueueIndexError: If either index is out of range
        """
        with self._lock:
            self._check_index(from_index)
            self._check_index(to_index)
            if from_index == to_index:
                return
            self._move(from_index, to_index)

        self._notify()

    def move_to_end(self, index: int) -> None:
        """Play later: send an entry to the tail without removing it.

        Raises:
            QueueIndexError: If index is out of range
        """
        with self._lock:
            self._check_index(index)
            last = len(self._entries) - 1
            if index == last:
                return
            self._move(index, last)

        self._notify()

    def play_at(self, index: int) -> EpisodeRecord:
        """Point the cursor at an entry.

        Raises:
            QueueIndexError: If index is out of range
        """
        with self._lock:
            self._check_index(index)
            entry = self._entries[index]
            self._cursor_id = entry.episode_id
            logger.info("Now playing episode %s", entry.episode_id)

        self._notify()
        return entry.episode

    def advance(self) -> EpisodeRecord | None:
        """Consume the current entry and move to the next one.

        Returns:
            The new current episode, or None when playback stops
        """
        _finished, current = self.consume_current()
        return current

    def consume_current(self) -> tuple[EpisodeRecord | None, EpisodeRecord | None]:
        """Consume the current entry, reporting what was finished.

        Both episodes are read under the same lock as the mutation, so a
        concurrent removal can never make the caller act on the wrong one.

        Returns:
            (finished episode, new current episode); (None, None) when
            nothing was playing
        """
        with self._lock:
            index = self._cursor_index()
            if index is None:
                return None, None

            finished = self._entries[index]
            if self.consume_mode == "remove":
                self._entries.pop(index)
                next_index = index
            else:
                self._entries[index] = QueueEntry(
                    episode=finished.episode.model_copy(update={"played": True})
                )
                next_index = index + 1

            if next_index < len(self._entries):
                self._cursor_id = self._entries[next_index].episode_id
            else:
                self._cursor_id = None

            logger.info(
                "Finished episode %s, next: %s", finished.episode_id, self._cursor_id or "none"
            )
            current = self._entries[next_index].episode if self._cursor_id else None

        self._notify()
        return finished.episode, current

    def shuffle(self, rng: random.Random | None = None) -> None:
        """Shuffle the queue; the playing entry keeps its position.

        Args:
            rng: Random source (module-level random if None)
        """
        with self._lock:
            if len(self._entries) < 2:
                return
            index = self._cursor_index()
            playing = self._entries.pop(index) if index is not None else None
            (rng or random).shuffle(self._entries)
            if playing is not None:
                self._entries.insert(index, playing)
            logger.info("Shuffled play queue (%d episodes)", len(self._entries))

        self._notify()

    def stop(self) -> None:
        """Clear the cursor without touching the entries."""
        with self._lock:
            if self._cursor_id is None:
                return
            self._cursor_id = None

        self._notify()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._cursor_id = None
            logger.info("Cleared play queue")

        self._notify()

    def refresh_records(self, records: Iterable[EpisodeRecord]) -> int:
        """Swap in newer copies of queued episodes (matched by id).

        Order and cursor are unchanged.

        Returns:
            Number of entries updated
        """
        by_id = {record.id: record for record in records}
        updated = 0
        with self._lock:
            for index, entry in enumerate(self._entries):
                record = by_id.get(entry.episode_id)
                if record is not None and record != entry.episode:
                    self._entries[index] = QueueEntry(episode=record)
                    updated += 1

        if updated:
            self._notify()
        return updated

    # Persistence

    def snapshot(self) -> QueueSnapshot:
        with self._lock:
            return QueueSnapshot(
                episode_ids=[entry.episode_id for entry in self._entries],
                cursor=self._cursor_index(),
                episodes=[entry.episode for entry in self._entries],
            )

    def restore(self, snapshot: QueueSnapshot, resolver: EpisodeResolver) -> int:
        """Replace the queue contents from a snapshot.

        Each id is resolved through ``resolver`` first, then through the
        record saved in the snapshot. Ids neither can supply are dropped. If
        the playing episode is dropped, the cursor moves to the next
        surviving entry after it.

        Returns:
            Number of ids that could not be resolved
        """
        cursor_id = (
            snapshot.episode_ids[snapshot.cursor] if snapshot.cursor is not None else None
        )

        entries: list[QueueEntry] = []
        seen: set[str] = set()
        new_cursor: str | None = None
        cursor_passed = False
        dropped = 0

        for episode_id in snapshot.episode_ids:
            if episode_id == cursor_id:
                cursor_passed = True
            if episode_id in seen:
                continue
            episode = resolver(episode_id) or snapshot.saved_record(episode_id)
            if episode is None:
                logger.debug("Dropping unknown episode %s from restored queue", episode_id)
                dropped += 1
                continue
            seen.add(episode_id)
            entries.append(QueueEntry(episode=episode))
            if cursor_passed and new_cursor is None:
                new_cursor = episode_id

        with self._lock:
            self._entries = entries
            self._cursor_id = new_cursor

        logger.info("Restored queue with %d episode(s), %d dropped", len(entries), dropped)
        self._notify()
        return dropped

    # Listeners

    def add_listener(self, listener: Callable[["PlayQueue"], None]) -> None:
        """Call ``listener(queue)`` after every mutation."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Queue listener failed")

    # Internals (callers hold the lock)

    def _index_of(self, episode_id: str) -> int | None:
        for index, entry in enumerate(self._entries):
            if entry.episode_id == episode_id:
                return index
        return None

    def _pop(self, index: int) -> QueueEntry:
        entry = self._entries.pop(index)
        if entry.episode_id == self._cursor_id:
            self._cursor_id = (
                self._entries[index].episode_id if index < len(self._entries) else None
            )
        logger.info("Removed episode %s from queue", entry.episode_id)
        return entry

    def _move(self, from_index: int, to_index: int) -> None:
        entry = self._entries.pop(from_index)
        self._entries.insert(to_index, entry)
        logger.debug("Moved episode %s from %d to %d", entry.episode_id, from_index, to_index)

    def _cursor_index(self) -> int | None:
        if self._cursor_id is None:
            return None
        return self._index_of(self._cursor_id)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._entries):
            raise QueueIndexError(index, len(self._entries))
