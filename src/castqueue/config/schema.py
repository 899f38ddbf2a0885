"""Configuration schema models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
ConsumeMode = Literal["remove", "mark_played"]


class CacheConfig(BaseModel):
    """Episode cache freshness and persistence settings."""

    freshness_minutes: float = Field(default=30, gt=0)
    expiry_minutes: float = Field(default=120, gt=0)  # Staleness ceiling
    sweep_interval_minutes: float = Field(default=5, gt=0)
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    persist: bool = True

    @model_validator(mode="after")
    def validate_windows(self) -> "CacheConfig":
        """Ensure expiry comes after the freshness window."""
        if self.expiry_minutes <= self.freshness_minutes:
            raise ValueError("expiry_minutes must be greater than freshness_minutes")
        return self


class QueueConfig(BaseModel):
    """Play queue behavior settings."""

    # "remove" drops finished entries, "mark_played" keeps them and steps past
    consume_mode: ConsumeMode = "remove"
    persist: bool = True


class FetchRetryConfig(BaseModel):
    """Retry policy for transient feed fetch failures."""

    max_attempts: int = Field(default=2, ge=1)
    min_wait_seconds: float = Field(default=0.5, ge=0)
    max_wait_seconds: float = Field(default=5, ge=0)
    jitter: bool = True


class GlobalConfig(BaseModel):
    """Global castqueue configuration."""

    version: str = "1"
    log_level: LogLevel = "INFO"
    data_dir: Path | None = None  # Defaults to the platform data dir

    cache: CacheConfig = Field(default_factory=CacheConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    retry: FetchRetryConfig = Field(default_factory=FetchRetryConfig)
