"""Playback state stores.

The episode cache and play queue only read playback state. Writes happen
through explicit mark-played / save-progress calls on the library.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from castqueue.playback.models import PlaybackState
from castqueue.utils.errors import PersistenceError

logger = logging.getLogger(__name__)


@runtime_checkable
class PlaybackStateStore(Protocol):
    """Durable per-episode played flag and resume position."""

    def get(self, episode_id: str) -> PlaybackState | None:
        """Return stored state, or None when nothing was ever stored."""
        ...

    def set(self, episode_id: str, played: bool, resume_position: float) -> None:
        """Store state for an episode."""
        ...


class InMemoryPlaybackStateStore:
    """Thread-safe dictionary-backed store."""

    def __init__(self, initial: dict[str, PlaybackState] | None = None) -> None:
        self._states: dict[str, PlaybackState] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, episode_id: str) -> PlaybackState | None:
        with self._lock:
            state = self._states.get(episode_id)
            return state.model_copy() if state else None

    def set(self, episode_id: str, played: bool, resume_position: float) -> None:
        state = PlaybackState(played=played, resume_position=resume_position)
        with self._lock:
            self._states[episode_id] = state

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


class JsonPlaybackStateStore(InMemoryPlaybackStateStore):
    """Store persisted to a single JSON file.

    Every ``set`` rewrites the file atomically (temp file, then rename).
    Corrupt or unreadable files load as empty so a bad file never blocks
    startup; individual invalid entries are skipped.

    Example:
        >>> store = JsonPlaybackStateStore(Path("~/.local/share/castqueue/playback_state.json"))
        >>> store.set("ep-1", played=True, resume_position=0)
        >>> store.get("ep-1").played
        True
    """

    def __init__(self, path: Path) -> None:
        """Initialize and load existing state.

        Args:
            path: JSON file holding episode id -> state
        """
        super().__init__()
        self.path = path
        self._states = self._load()

    def set(self, episode_id: str, played: bool, resume_position: float) -> None:
        state = PlaybackState(played=played, resume_position=resume_position)
        with self._lock:
            self._states[episode_id] = state
            self._write()

    def _load(self) -> dict[str, PlaybackState]:
        if not self.path.exists():
            return {}

        try:
            with self.path.open("r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable playback state file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed playback state file %s", self.path)
            return {}

        states: dict[str, PlaybackState] = {}
        for episode_id, raw in data.items():
            try:
                states[episode_id] = PlaybackState.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping invalid playback state for episode %s", episode_id)

        logger.debug("Loaded playback state for %d episodes", len(states))
        return states

    def _write(self) -> None:
        """Write all state to disk. Caller holds the lock."""
        data = {episode_id: state.model_dump() for episode_id, state in self._states.items()}
        temp_file = self.path.with_suffix(".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_file.open("w") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(self.path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise PersistenceError(f"Failed to save playback state: {e}") from e
