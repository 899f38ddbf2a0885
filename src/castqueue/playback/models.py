"""Playback state models."""

from pydantic import BaseModel, Field


class PlaybackState(BaseModel):
    """Locally-owned playback progress for one episode."""

    played: bool = False
    resume_position: float = Field(default=0.0, ge=0)  # Seconds
