"""Collapse raw feed results into a canonical episode list.

``merge`` is pure: the same raw records and the same playback lookup always
produce the same list. Steps, in order:

1. drop records without a usable podcast id
2. keep the first record seen for each episode id
3. resolve (podcast id, title) collisions: newer publish date wins, a dated
   record beats a dateless one, otherwise the first seen wins
4. overlay played flag and resume position from the playback lookup
5. sort newest first, dateless episodes last by case-insensitive title
"""

import logging
from collections.abc import Callable, Iterable

from castqueue.episodes.models import EpisodeRecord
from castqueue.playback.models import PlaybackState

logger = logging.getLogger(__name__)

PlaybackLookup = Callable[[str], PlaybackState | None]


def merge(
    raw: Iterable[EpisodeRecord],
    playback_lookup: PlaybackLookup,
    podcast_id: str | None = None,
) -> list[EpisodeRecord]:
    """Deduplicate, overlay playback state, and sort fetched episodes.

    Args:
        raw: Unordered records from a feed fetcher
        playback_lookup: Returns stored playback state for an episode id
        podcast_id: When given, records owned by another podcast are dropped

    Returns:
        Canonical episode list (possibly empty)
    """
    valid = [record for record in raw if _has_valid_podcast(record, podcast_id)]

    by_id: dict[str, EpisodeRecord] = {}
    for record in valid:
        if record.id in by_id:
            logger.debug("Dropping duplicate episode id %s (%r)", record.id, record.title)
            continue
        by_id[record.id] = record

    survivors = _resolve_title_collisions(by_id.values())
    overlaid = [overlay_playback(record, playback_lookup) for record in survivors]

    dropped = len(valid) - len(overlaid)
    if dropped:
        logger.debug("Merge dropped %d duplicate episode(s)", dropped)

    return sort_episodes(overlaid)


def sort_episodes(episodes: Iterable[EpisodeRecord]) -> list[EpisodeRecord]:
    """Sort newest first; dateless episodes follow, by case-insensitive title.

    Ties are broken by title, then id, so the order is total.
    """
    episodes = list(episodes)
    dated = [e for e in episodes if e.published_at is not None]
    dateless = [e for e in episodes if e.published_at is None]

    dated.sort(key=lambda e: (-e.published_at.timestamp(), e.title.casefold(), e.id))
    dateless.sort(key=lambda e: (e.title.casefold(), e.id))

    return dated + dateless


def _has_valid_podcast(record: EpisodeRecord, podcast_id: str | None) -> bool:
    if record.podcast_id is None or not record.podcast_id.strip():
        logger.debug("Dropping episode %s without podcast id", record.id)
        return False
    if podcast_id is not None and record.podcast_id != podcast_id:
        logger.debug(
            "Dropping episode %s owned by podcast %s (expected %s)",
            record.id,
            record.podcast_id,
            podcast_id,
        )
        return False
    return True


def _resolve_title_collisions(records: Iterable[EpisodeRecord]) -> list[EpisodeRecord]:
    # Winners keep the slot of the first record seen with their title
    slots: dict[tuple[str, str], int] = {}
    kept: list[EpisodeRecord] = []

    for record in records:
        key = (record.podcast_id or "", record.title)
        if key not in slots:
            slots[key] = len(kept)
            kept.append(record)
            continue

        incumbent = kept[slots[key]]
        if _beats(record, incumbent):
            logger.debug(
                "Episode %s replaces %s for title %r", record.id, incumbent.id, record.title
            )
            kept[slots[key]] = record
        else:
            logger.debug(
                "Episode %s loses title %r to %s", record.id, record.title, incumbent.id
            )

    return kept


def _beats(challenger: EpisodeRecord, incumbent: EpisodeRecord) -> bool:
    """Whether a later-seen record should replace an earlier one with the same title."""
    if challenger.published_at is not None and incumbent.published_at is not None:
        return challenger.published_at > incumbent.published_at
    # Exactly one dated: the dated one wins. Neither dated: first seen wins.
    return challenger.published_at is not None and incumbent.published_at is None


def overlay_playback(record: EpisodeRecord, playback_lookup: PlaybackLookup) -> EpisodeRecord:
    """Copy of ``record`` carrying the stored played flag and resume position.

    Stored state is authoritative; whatever the record carried is replaced.
    """
    state = playback_lookup(record.id)
    if state is None:
        return record.model_copy(update={"played": False, "resume_position": 0.0})
    return record.model_copy(
        update={"played": state.played, "resume_position": state.resume_position}
    )
