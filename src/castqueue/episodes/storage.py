"""On-disk persistence for cached episode lists."""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import BaseModel, Field, ValidationError

from castqueue.episodes.models import EpisodeRecord
from castqueue.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

CACHE_FILE_VERSION = 1


class PersistedCacheEntry(BaseModel):
    """Last good episode list for one podcast."""

    fetched_at: datetime
    episodes: list[EpisodeRecord] = Field(default_factory=list)


class EpisodeCacheStore:
    """JSON file holding every podcast's last good episode list.

    Writes go to a temp file that is renamed over the target, so a crash
    mid-write leaves the previous file intact. Saving an empty mapping
    deletes the file.
    """

    FILE_NAME = "episode_cache.json"

    def __init__(self, cache_dir: Path) -> None:
        """Initialize store.

        Args:
            cache_dir: Directory for the cache file
        """
        self.cache_dir = cache_dir
        self.path = cache_dir / self.FILE_NAME
        self._write_lock = asyncio.Lock()

    async def load(self) -> dict[str, PersistedCacheEntry]:
        """Load persisted entries (async).

        Returns:
            Podcast id -> entry. Empty if the file is missing or corrupt.
        """
        if not self.path.exists():
            return {}

        try:
            async with aiofiles.open(self.path, "r") as f:
                content = await f.read()
            data = json.loads(content)
            raw_entries: dict[str, Any] = data["entries"]
        except (json.JSONDecodeError, KeyError, TypeError, OSError) as e:
            logger.warning("Discarding unreadable episode cache %s: %s", self.path, e)
            await self._delete_file(self.path)
            return {}

        entries: dict[str, PersistedCacheEntry] = {}
        for podcast_id, raw in raw_entries.items():
            try:
                entries[podcast_id] = PersistedCacheEntry.model_validate(raw)
            except ValidationError:
                logger.warning("Skipping invalid cached entry for podcast %s", podcast_id)

        logger.debug("Loaded %d persisted cache entries", len(entries))
        return entries

    async def save(self, entries: dict[str, PersistedCacheEntry]) -> None:
        """Replace the persisted cache with ``entries`` (async).

        Raises:
            PersistenceError: If the file cannot be written
        """
        async with self._write_lock:
            if not entries:
                await self._delete_file(self.path)
                return

            data = {
                "version": CACHE_FILE_VERSION,
                "entries": {
                    podcast_id: entry.model_dump(mode="json")
                    for podcast_id, entry in entries.items()
                },
            }
            temp_path = self.path.with_suffix(".tmp")

            try:
                await asyncio.to_thread(self.cache_dir.mkdir, parents=True, exist_ok=True)
                async with aiofiles.open(temp_path, "w") as f:
                    await f.write(json.dumps(data))

                # Atomic rename (still sync, but fast)
                await asyncio.to_thread(temp_path.replace, self.path)

            except (OSError, TypeError) as e:
                if temp_path.exists():
                    await self._delete_file(temp_path)
                raise PersistenceError(f"Failed to persist episode cache: {e}") from e

        logger.debug("Persisted %d cache entries to %s", len(entries), self.path)

    async def _delete_file(self, path: Path) -> None:
        """Delete file asynchronously.

        Args:
            path: Path to file to delete
        """
        try:
            # aiofiles doesn't have unlink, use thread pool
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.debug("Could not delete %s: %s", path, e)
