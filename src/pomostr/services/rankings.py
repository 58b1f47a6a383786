"""Leaderboards computed from Pomodoro session-completion events.

[RankingService][pomostr.services.rankings.RankingService] fetches every
Kind 8808 event of the requested pubkeys from the last thirty days once,
with a full [fan_out()][pomostr.services.common.aggregator.fan_out] over
the ranking relays, and buckets them into daily, weekly, and monthly
leaderboards with [compute_rankings()][pomostr.services.rankings.compute_rankings].

Counting rules:

* Each distinct event counts once per occurrence: two sessions by the same
  author both count, but the same event id returned by several relays
  counts once.
* Windows are nested by ``created_at`` (never arrival time): an event in
  the daily window also counts toward weekly and monthly.
* Every requested pubkey appears in all three lists, with zero when it has
  no events.
* Lists are sorted by count, descending; ties keep the input order.

[suggest_level()][pomostr.services.rankings.RankingService.suggest_level]
reuses the same query to derive a level from the seven-day average of
sessions per day.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

from pomostr.core.logger import Logger
from pomostr.models.constants import TAG_LEVEL, EventKind, PomodoroLevel
from pomostr.models.event import Event
from pomostr.models.filter import Filter
from pomostr.models.ranking import RankingEntry, Rankings, RankingWindow

from .common.aggregator import fan_out
from .common.constants import RANKING_LIMIT, RANKING_TIMEOUT, QueryPrefix


WEEK_DAYS = RankingWindow.WEEKLY // RankingWindow.DAILY


def compute_rankings(pubkeys: Sequence[str], events: Iterable[Event], now: int) -> Rankings:
    """Bucket session events into nested leaderboards.

    Events are ignored unless they are Kind 8808, authored by a requested
    pubkey, and no older than the monthly window. Repeated event ids count
    once. The entry ``level`` is taken from the most recent event that
    carries a ``level`` tag.
    """
    order = list(dict.fromkeys(pubkeys))
    requested = set(order)
    daily_since = now - RankingWindow.DAILY
    weekly_since = now - RankingWindow.WEEKLY
    monthly_since = now - RankingWindow.MONTHLY

    daily = dict.fromkeys(order, 0)
    weekly = dict.fromkeys(order, 0)
    monthly = dict.fromkeys(order, 0)
    latest_level: dict[str, tuple[int, PomodoroLevel]] = {}
    seen: set[str] = set()

    for event in events:
        if (
            event.kind != EventKind.POMODORO_SESSION
            or event.pubkey not in requested
            or event.created_at < monthly_since
            or event.id in seen
        ):
            continue
        seen.add(event.id)

        monthly[event.pubkey] += 1
        if event.created_at >= weekly_since:
            weekly[event.pubkey] += 1
        if event.created_at >= daily_since:
            daily[event.pubkey] += 1

        tag = event.first_tag_value(TAG_LEVEL)
        if tag is not None:
            previous = latest_level.get(event.pubkey)
            if previous is None or event.created_at > previous[0]:
                latest_level[event.pubkey] = (event.created_at, PomodoroLevel.from_tag(tag))

    def _board(counts: dict[str, int]) -> tuple[RankingEntry, ...]:
        entries = [
            RankingEntry(
                pubkey=pubkey,
                session_count=counts[pubkey],
                level=latest_level[pubkey][1] if pubkey in latest_level else None,
            )
            for pubkey in order
        ]
        # Stable sort: ties keep input order
        return tuple(sorted(entries, key=lambda entry: entry.session_count, reverse=True))

    return Rankings(daily=_board(daily), weekly=_board(weekly), monthly=_board(monthly))


class RankingService:
    """Fetches and computes leaderboards for a set of pubkeys.

    Args:
        relays: Relays queried concurrently on every fetch.
        timeout: Per-relay timeout in seconds.
    """

    def __init__(self, relays: Sequence[str], *, timeout: float = RANKING_TIMEOUT) -> None:
        self._relays = list(relays)
        self._timeout = timeout
        self._logger = Logger("rankings")

    async def fetch_rankings(self, pubkeys: Iterable[str], now: int | None = None) -> Rankings:
        """Fetch the last thirty days of session events and compute leaderboards.

        Empty input returns empty rankings without touching the network.
        Unreachable or slow relays simply contribute nothing (or whatever
        arrived before their timeout).
        """
        order = list(dict.fromkeys(pubkeys))
        if not order:
            return Rankings()
        if now is None:
            now = int(time.time())

        event_filter = Filter(
            kinds=(EventKind.POMODORO_SESSION,),
            authors=tuple(order),
            since=max(0, now - RankingWindow.MONTHLY),
            limit=RANKING_LIMIT,
        )
        outcomes = await fan_out(
            self._relays, event_filter, timeout=self._timeout, prefix=QueryPrefix.RANKING
        )
        rankings = compute_rankings(order, (e for o in outcomes for e in o.events), now)

        self._logger.info(
            "rankings_fetched",
            pubkeys=len(order),
            relays=len(self._relays),
            responded=sum(1 for o in outcomes if o.ok),
            events=sum(len(o.events) for o in outcomes),
        )
        return rankings

    async def suggest_level(self, pubkey: str, now: int | None = None) -> PomodoroLevel:
        """Derive a level from *pubkey*'s average sessions per day over the last week."""
        rankings = await self.fetch_rankings([pubkey], now)
        weekly = rankings.count_of(pubkey, RankingWindow.WEEKLY)
        level = PomodoroLevel.from_average(weekly / WEEK_DAYS)
        self._logger.debug("level_suggested", pubkey=pubkey, weekly=weekly, level=level.value)
        return level
