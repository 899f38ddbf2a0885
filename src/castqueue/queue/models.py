"""Play queue data models."""

from pydantic import BaseModel, Field, model_validator

from castqueue.episodes.models import EpisodeRecord


class QueueEntry(BaseModel):
    """An episode waiting in (or playing from) the queue.

    Position is the entry's place in the queue's list, never a stored field.
    """

    episode: EpisodeRecord

    @property
    def episode_id(self) -> str:
        return self.episode.id


class QueueSnapshot(BaseModel):
    """Persisted queue layout: ordered episode ids plus the cursor index.

    ``episodes`` holds the queued records as they were when saved, so the
    queue can be rebuilt after the episode cache has expired.
    """

    episode_ids: list[str] = Field(default_factory=list)
    cursor: int | None = None
    episodes: list[EpisodeRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_cursor(self) -> "QueueSnapshot":
        """Drop a cursor that does not point into the id list."""
        if self.cursor is not None and not 0 <= self.cursor < len(self.episode_ids):
            self.cursor = None
        return self

    def saved_record(self, episode_id: str) -> EpisodeRecord | None:
        """The record saved with this snapshot for an id, if any."""
        for episode in self.episodes:
            if episode.id == episode_id:
                return episode
        return None
