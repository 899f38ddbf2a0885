"""Tests for episode merge/deduplication."""

from datetime import datetime, timedelta, timezone

from helpers import day, make_episode

from castqueue.episodes.merge import merge, sort_episodes
from castqueue.playback.models import PlaybackState
from castqueue.playback.store import InMemoryPlaybackStateStore


def no_state(_episode_id: str) -> None:
    return None


class TestValidation:
    """Records without a usable podcast id."""

    def test_drops_missing_podcast_id(self) -> None:
        """Records without a podcast id are dropped."""
        raw = [make_episode("1", podcast_id=None), make_episode("2")]

        result = merge(raw, no_state)

        assert [e.id for e in result] == ["2"]

    def test_drops_blank_podcast_id(self) -> None:
        """Whitespace-only podcast ids count as missing."""
        raw = [make_episode("1", podcast_id="  ")]

        assert merge(raw, no_state) == []

    def test_drops_records_for_other_podcast(self) -> None:
        """With an expected podcast id, foreign records are dropped."""
        raw = [make_episode("1", podcast_id="pod-1"), make_episode("2", podcast_id="pod-2")]

        result = merge(raw, no_state, podcast_id="pod-1")

        assert [e.id for e in result] == ["1"]

    def test_empty_input_returns_empty_list(self) -> None:
        """An empty fetch is a valid empty list, not an error."""
        assert merge([], no_state) == []


class TestDedupById:
    """First occurrence of an id wins."""

    def test_same_id_keeps_first_seen(self) -> None:
        """Later records with a seen id are discarded."""
        raw = [
            make_episode("1", "Original", day(1)),
            make_episode("1", "Retitled", day(5)),
        ]

        result = merge(raw, no_state)

        assert len(result) == 1
        assert result[0].title == "Original"
        assert result[0].published_at == day(1)


class TestDedupByTitle:
    """Same title, different ids, same podcast."""

    def test_more_recent_wins(self) -> None:
        """Between two dated records, the newer one survives."""
        raw = [
            make_episode("a", "Ep", day(1)),
            make_episode("b", "Ep", day(2)),
        ]

        result = merge(raw, no_state)

        assert [e.id for e in result] == ["b"]

    def test_more_recent_wins_regardless_of_order(self) -> None:
        """Order of appearance does not matter when both are dated."""
        raw = [
            make_episode("b", "Ep", day(2)),
            make_episode("a", "Ep", day(1)),
        ]

        assert [e.id for e in merge(raw, no_state)] == ["b"]

    def test_dated_beats_dateless(self) -> None:
        """A dated record wins over a dateless one in either order."""
        dated = make_episode("dated", "Ep", day(1))
        dateless = make_episode("dateless", "Ep", None)

        assert [e.id for e in merge([dated, dateless], no_state)] == ["dated"]
        assert [e.id for e in merge([dateless, dated], no_state)] == ["dated"]

    def test_both_dateless_keeps_first_seen(self) -> None:
        """Without dates the first record seen is kept."""
        raw = [make_episode("x", "Ep"), make_episode("y", "Ep")]

        assert [e.id for e in merge(raw, no_state)] == ["x"]

    def test_equal_dates_keep_first_seen(self) -> None:
        """Identical timestamps resolve to the first record seen."""
        raw = [make_episode("x", "Ep", day(1)), make_episode("y", "Ep", day(1))]

        assert [e.id for e in merge(raw, no_state)] == ["x"]

    def test_title_match_is_case_sensitive(self) -> None:
        """Titles differing only in case are distinct episodes."""
        raw = [make_episode("x", "Ep"), make_episode("y", "EP")]

        assert {e.id for e in merge(raw, no_state)} == {"x", "y"}

    def test_three_way_collision(self) -> None:
        """The newest of several same-title records survives."""
        raw = [
            make_episode("a", "Ep", day(2)),
            make_episode("b", "Ep", None),
            make_episode("c", "Ep", day(3)),
            make_episode("d", "Ep", day(1)),
        ]

        assert [e.id for e in merge(raw, no_state)] == ["c"]

    def test_loser_stays_discarded_on_refetch(self) -> None:
        """Merging the same input again drops the same record."""
        raw = [make_episode("a", "Ep", day(1)), make_episode("b", "Ep", day(2))]

        first = merge(raw, no_state)
        second = merge(raw, no_state)

        assert first == second
        assert [e.id for e in second] == ["b"]


class TestPlaybackOverlay:
    """Played flag and resume position come from the store."""

    def test_stored_played_overrides_fetched(self) -> None:
        """Stored played=True survives a fetched played=False."""
        store = InMemoryPlaybackStateStore()
        store.set("1", played=True, resume_position=0)
        raw = [make_episode("1", played=False)]

        result = merge(raw, store.get)

        assert result[0].played is True

    def test_resume_position_overlaid(self) -> None:
        """Resume position is taken from the store."""
        store = InMemoryPlaybackStateStore()
        store.set("1", played=False, resume_position=754.5)

        result = merge([make_episode("1")], store.get)

        assert result[0].resume_position == 754.5

    def test_defaults_without_stored_state(self) -> None:
        """Unknown episodes are unplayed at position zero."""
        raw = [make_episode("1", played=True, resume_position=99)]

        result = merge(raw, no_state)

        assert result[0].played is False
        assert result[0].resume_position == 0

    def test_merge_does_not_write_store(self) -> None:
        """Merging never writes to the store."""
        store = InMemoryPlaybackStateStore()
        merge([make_episode("1"), make_episode("2")], store.get)

        assert len(store) == 0

    def test_input_records_not_mutated(self) -> None:
        """Overlay works on copies."""
        record = make_episode("1")
        merge([record], lambda _: PlaybackState(played=True, resume_position=10))

        assert record.played is False
        assert record.resume_position == 0


class TestSorting:
    """Newest first, dateless last by title."""

    def test_sorted_newest_first(self, sample_episodes) -> None:
        """Dated records sort descending."""
        result = merge(sample_episodes, no_state)

        assert [e.id for e in result] == ["3", "2", "1"]

    def test_dateless_after_dated_by_title(self) -> None:
        """Dateless records follow, ordered case-insensitively."""
        raw = [
            make_episode("z", "zebra"),
            make_episode("d", "Dated", day(1)),
            make_episode("a", "Apple"),
            make_episode("m", "mango"),
        ]

        result = merge(raw, no_state)

        assert [e.id for e in result] == ["d", "a", "m", "z"]

    def test_mixed_timezones_compare_by_instant(self) -> None:
        """Publish dates in other offsets sort by absolute time."""
        plus_five = timezone(timedelta(hours=5))
        raw = [
            make_episode("early", "Early", datetime(2024, 1, 1, 10, 0, tzinfo=plus_five)),
            make_episode("late", "Late", datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)),
        ]

        result = merge(raw, no_state)

        assert [e.id for e in result] == ["late", "early"]

    def test_sort_episodes_accepts_generator(self, sample_episodes) -> None:
        """sort_episodes works on any iterable."""
        result = sort_episodes(e for e in sample_episodes)

        assert [e.id for e in result] == ["3", "2", "1"]


def test_end_to_end_scenario() -> None:
    """Older duplicate dropped, played overlay applied, dateless last."""
    store = InMemoryPlaybackStateStore()
    store.set("2", played=True, resume_position=0)
    raw = [
        make_episode("1", "Ep1", day(1), podcast_id="P"),
        make_episode("2", "Ep1", day(2), podcast_id="P"),
        make_episode("3", "Ep2", None, podcast_id="P"),
    ]

    result = merge(raw, store.get)

    assert [(e.id, e.title, e.published_at, e.played) for e in result] == [
        ("2", "Ep1", day(2), True),
        ("3", "Ep2", None, False),
    ]
