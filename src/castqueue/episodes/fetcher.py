"""Feed fetcher interface.

RSS download and parsing live outside castqueue. A fetcher turns a podcast
id into raw, unordered episode records or raises ``FetchError``.
"""

from typing import Protocol, runtime_checkable

from castqueue.episodes.models import EpisodeRecord


@runtime_checkable
class FeedFetcher(Protocol):
    """Source of raw episode records for a podcast."""

    async def fetch(self, podcast_id: str) -> list[EpisodeRecord]:
        """Fetch all episode candidates for a podcast.

        Raises:
            FetchError: Network or parse failure. Raise TransientFetchError
                for failures worth retrying.
        """
        ...
