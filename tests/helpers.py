"""Test doubles and builders shared across the suite."""

import asyncio
from datetime import datetime, timedelta, timezone

from castqueue.episodes.models import EpisodeRecord

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Feed fetcher returning canned results.

    ``results`` is consumed in order; each item is a list of records or an
    exception to raise. The last item repeats. When ``gate`` is set, fetches
    wait for it before answering.
    """

    def __init__(self, *results: list[EpisodeRecord] | Exception) -> None:
        self.results = list(results) or [[]]
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def fetch(self, podcast_id: str) -> list[EpisodeRecord]:
        self.calls.append(podcast_id)
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return list(result)


def make_episode(
    id: str,
    title: str | None = None,
    published_at: datetime | None = None,
    podcast_id: str | None = "pod-1",
    **kwargs,
) -> EpisodeRecord:
    """Build an EpisodeRecord with sensible defaults."""
    return EpisodeRecord(
        id=id,
        podcast_id=podcast_id,
        title=title if title is not None else f"Episode {id}",
        published_at=published_at,
        **kwargs,
    )


def day(month: int, day_of_month: int = 1) -> datetime:
    """A 2024 date at midnight UTC."""
    return datetime(2024, month, day_of_month, tzinfo=timezone.utc)
