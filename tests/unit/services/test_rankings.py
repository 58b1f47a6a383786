"""
Unit tests for services.rankings module.

Tests:
- compute_rankings(): nested windows, zero entries, dedupe, stable ties, level
- RankingService.fetch_rankings() against fake relays
- Sessions with a forged signature or tampered content are not counted
- suggest_level(): level derived from the seven-day session average
"""

import dataclasses

import pytest

from fixtures.events import (
    NOW,
    PUBKEY_A,
    PUBKEY_B,
    PUBKEY_C,
    PUBKEY_D,
    forged,
    make_event,
    make_session,
)
from fixtures.relays import UNREACHABLE_RELAY, RelayFactory

from pomostr.models.constants import EventKind, PomodoroLevel
from pomostr.models.ranking import RankingEntry, RankingWindow
from pomostr.services.rankings import RankingService, compute_rankings


HOUR = 3600
DAY = 24 * HOUR


def counts(entries: tuple[RankingEntry, ...]) -> dict[str, int]:
    return {entry.pubkey: entry.session_count for entry in entries}


# =============================================================================
# compute_rankings Tests
# =============================================================================


class TestComputeRankings:
    """Pure leaderboard computation."""

    def test_nested_windows(self) -> None:
        events = [
            make_session(PUBKEY_A, created_at=NOW - HOUR),
            make_session(PUBKEY_A, created_at=NOW - 3 * DAY),
            make_session(PUBKEY_A, created_at=NOW - 20 * DAY),
            make_session(PUBKEY_B, created_at=NOW - 2 * HOUR),
        ]
        rankings = compute_rankings([PUBKEY_A, PUBKEY_B], events, NOW)

        assert counts(rankings.daily) == {PUBKEY_A: 1, PUBKEY_B: 1}
        assert counts(rankings.weekly) == {PUBKEY_A: 2, PUBKEY_B: 1}
        assert counts(rankings.monthly) == {PUBKEY_A: 3, PUBKEY_B: 1}

    def test_daily_le_weekly_le_monthly(self) -> None:
        events = [
            make_session(pubkey, created_at=NOW - offset)
            for pubkey in (PUBKEY_A, PUBKEY_B, PUBKEY_C)
            for offset in (0, 5 * HOUR, 2 * DAY, 9 * DAY, 29 * DAY)
        ]
        rankings = compute_rankings([PUBKEY_A, PUBKEY_B, PUBKEY_C], events, NOW)
        for pubkey in (PUBKEY_A, PUBKEY_B, PUBKEY_C):
            daily = rankings.count_of(pubkey, RankingWindow.DAILY)
            weekly = rankings.count_of(pubkey, RankingWindow.WEEKLY)
            monthly = rankings.count_of(pubkey, RankingWindow.MONTHLY)
            assert daily <= weekly <= monthly

    def test_every_requested_pubkey_present(self) -> None:
        rankings = compute_rankings([PUBKEY_A, PUBKEY_B], [], NOW)
        assert rankings.daily == (RankingEntry(PUBKEY_A, 0), RankingEntry(PUBKEY_B, 0))
        assert len(rankings.weekly) == len(rankings.monthly) == 2

    def test_duplicate_event_counts_once(self) -> None:
        event = make_session(PUBKEY_A, created_at=NOW - HOUR)
        rankings = compute_rankings([PUBKEY_A], [event, event, event], NOW)
        assert rankings.count_of(PUBKEY_A, RankingWindow.DAILY) == 1

    def test_distinct_sessions_all_count(self) -> None:
        events = [make_session(PUBKEY_A, created_at=NOW - HOUR, duration=d) for d in (25, 30, 50)]
        rankings = compute_rankings([PUBKEY_A], events, NOW)
        assert rankings.count_of(PUBKEY_A, RankingWindow.DAILY) == 3

    def test_ignores_foreign_kinds_authors_and_old_events(self) -> None:
        events = [
            make_event(PUBKEY_A, EventKind.FRIEND_SIGNAL, created_at=NOW),
            make_session(PUBKEY_D, created_at=NOW),
            make_session(PUBKEY_A, created_at=NOW - RankingWindow.MONTHLY - 1),
        ]
        rankings = compute_rankings([PUBKEY_A], events, NOW)
        assert rankings.monthly == (RankingEntry(PUBKEY_A, 0),)

    def test_window_boundary_inclusive(self) -> None:
        event = make_session(PUBKEY_A, created_at=NOW - RankingWindow.DAILY)
        rankings = compute_rankings([PUBKEY_A], [event], NOW)
        assert rankings.count_of(PUBKEY_A, RankingWindow.DAILY) == 1

    def test_sorted_descending_with_stable_ties(self) -> None:
        events = [
            make_session(PUBKEY_C, created_at=NOW - HOUR),
            make_session(PUBKEY_C, created_at=NOW - 2 * HOUR),
            make_session(PUBKEY_A, created_at=NOW - HOUR),
            make_session(PUBKEY_B, created_at=NOW - HOUR),
        ]
        rankings = compute_rankings([PUBKEY_A, PUBKEY_B, PUBKEY_C, PUBKEY_D], events, NOW)
        expected = [PUBKEY_C, PUBKEY_A, PUBKEY_B, PUBKEY_D]
        assert [entry.pubkey for entry in rankings.daily] == expected

    def test_duplicate_pubkeys_collapsed(self) -> None:
        rankings = compute_rankings([PUBKEY_A, PUBKEY_A], [], NOW)
        assert len(rankings.daily) == 1

    def test_level_from_most_recent_event(self) -> None:
        events = [
            make_session(PUBKEY_A, created_at=NOW - 2 * DAY, level="master"),
            make_session(PUBKEY_A, created_at=NOW - HOUR, level="practitioner"),
            make_session(PUBKEY_A, created_at=NOW - 5 * DAY, level="beginner"),
        ]
        rankings = compute_rankings([PUBKEY_A, PUBKEY_B], events, NOW)
        assert rankings.monthly[0].level is PomodoroLevel.PRACTITIONER
        assert rankings.monthly[1].level is None


# =============================================================================
# RankingService Tests
# =============================================================================


class TestRankingService:
    """fetch_rankings() over ephemeral connections."""

    async def test_empty_input_skips_network(self, relay_factory: RelayFactory) -> None:
        relay = await relay_factory()
        rankings = await RankingService([relay.url]).fetch_rankings([])
        assert rankings.daily == ()
        assert relay.connections == 0

    async def test_merges_relays_and_dedupes(self, relay_factory: RelayFactory) -> None:
        shared = make_session(PUBKEY_A, created_at=NOW - HOUR)
        only_second = make_session(PUBKEY_B, created_at=NOW - 3 * DAY)
        first = await relay_factory([shared])
        second = await relay_factory([shared, only_second])

        service = RankingService([first.url, second.url, UNREACHABLE_RELAY], timeout=2.0)
        rankings = await service.fetch_rankings([PUBKEY_A, PUBKEY_B, PUBKEY_C], now=NOW)

        assert counts(rankings.daily) == {PUBKEY_A: 1, PUBKEY_B: 0, PUBKEY_C: 0}
        assert counts(rankings.weekly) == {PUBKEY_A: 1, PUBKEY_B: 1, PUBKEY_C: 0}
        assert rankings.rank_of(PUBKEY_C, RankingWindow.MONTHLY) == 3

    async def test_request_filter(self, relay_factory: RelayFactory) -> None:
        relay = await relay_factory()
        await RankingService([relay.url], timeout=2.0).fetch_rankings([PUBKEY_A], now=NOW)
        req_filter = relay.frames("REQ")[0][2]
        assert req_filter == {
            "kinds": [8808],
            "authors": [PUBKEY_A],
            "since": NOW - RankingWindow.MONTHLY,
            "limit": 500,
        }

    async def test_silent_relay_contributes_nothing(self, relay_factory: RelayFactory) -> None:
        silent = await relay_factory(respond=False)
        service = RankingService([silent.url], timeout=0.3)
        rankings = await service.fetch_rankings([PUBKEY_A], now=NOW)
        assert rankings.daily == (RankingEntry(PUBKEY_A, 0),)

    async def test_forged_sessions_not_counted(self, relay_factory: RelayFactory) -> None:
        forgeries = [forged(make_session(PUBKEY_A, created_at=NOW - i)) for i in range(5)]
        tampered = dataclasses.replace(make_session(PUBKEY_B, created_at=NOW), content="x")
        relay = await relay_factory([*forgeries, tampered, make_session(PUBKEY_C)])

        service = RankingService([relay.url], timeout=2.0)
        rankings = await service.fetch_rankings([PUBKEY_A, PUBKEY_B, PUBKEY_C], now=NOW)

        assert counts(rankings.daily) == {PUBKEY_A: 0, PUBKEY_B: 0, PUBKEY_C: 1}


class TestSuggestLevel:
    """RankingService.suggest_level() from the seven-day average."""

    @pytest.mark.parametrize(
        ("sessions", "expected"),
        [
            (0, PomodoroLevel.BEGINNER),
            (13, PomodoroLevel.BEGINNER),
            (14, PomodoroLevel.PRACTITIONER),
            (28, PomodoroLevel.MASTER),
        ],
    )
    async def test_level_from_weekly_average(
        self, relay_factory: RelayFactory, sessions: int, expected: PomodoroLevel
    ) -> None:
        events = [make_session(PUBKEY_A, created_at=NOW - i * 5 * HOUR) for i in range(sessions)]
        relay = await relay_factory(events)
        service = RankingService([relay.url], timeout=2.0)
        assert await service.suggest_level(PUBKEY_A, now=NOW) is expected

    async def test_older_sessions_ignored(self, relay_factory: RelayFactory) -> None:
        events = [make_session(PUBKEY_A, created_at=NOW - 8 * DAY - i) for i in range(30)]
        relay = await relay_factory(events)
        service = RankingService([relay.url], timeout=2.0)
        assert await service.suggest_level(PUBKEY_A, now=NOW) is PomodoroLevel.BEGINNER

    async def test_unreachable_relays_give_beginner(self) -> None:
        service = RankingService([UNREACHABLE_RELAY], timeout=1.0)
        assert await service.suggest_level(PUBKEY_A, now=NOW) is PomodoroLevel.BEGINNER
