"""
Leaderboard entries computed from session-completion events.

The three windows in [Rankings][pomostr.models.ranking.Rankings] are
nested: every event that counts toward ``daily`` also counts toward
``weekly`` and ``monthly``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from .constants import PomodoroLevel


class RankingWindow(IntEnum):
    """Window length in seconds for each leaderboard."""

    DAILY = 86_400
    WEEKLY = 604_800
    MONTHLY = 2_592_000


@dataclass(frozen=True, slots=True)
class RankingEntry:
    """One pubkey's session count in a window.

    Attributes:
        pubkey: Author public key (hex).
        session_count: Number of session events in the window.
        level: Most recent self-reported level, if any event carried one.
    """

    pubkey: str
    session_count: int
    level: PomodoroLevel | None = None


@dataclass(frozen=True, slots=True)
class Rankings:
    """Daily, weekly and monthly leaderboards, each sorted by count descending."""

    daily: tuple[RankingEntry, ...] = ()
    weekly: tuple[RankingEntry, ...] = ()
    monthly: tuple[RankingEntry, ...] = ()

    def window(self, window: RankingWindow) -> tuple[RankingEntry, ...]:
        match window:
            case RankingWindow.DAILY:
                return self.daily
            case RankingWindow.WEEKLY:
                return self.weekly
            case RankingWindow.MONTHLY:
                return self.monthly

    def rank_of(self, pubkey: str, window: RankingWindow) -> int | None:
        """Return the 1-based position of *pubkey* in *window*, or ``None``."""
        for position, entry in enumerate(self.window(window), start=1):
            if entry.pubkey == pubkey:
                return position
        return None

    def count_of(self, pubkey: str, window: RankingWindow) -> int:
        """Return the session count of *pubkey* in *window* (0 if absent)."""
        for entry in self.window(window):
            if entry.pubkey == pubkey:
                return entry.session_count
        return 0
