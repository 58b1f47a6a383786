"""Shared constants for the models layer.

Defines enumerations used across multiple model modules and by the
upper layers. Placing them here avoids circular dependencies between
the models, nips, and services layers.

See Also:
    [pomostr.models.event][]: Carries [EventKind][pomostr.models.constants.EventKind]
        values in the ``kind`` field.
    [pomostr.models.relay][]: Uses [RelayState][pomostr.models.constants.RelayState]
        and [ConnectionState][pomostr.models.constants.ConnectionState].
    [pomostr.nips.event_builders][]: Emits the tag names defined here.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Nostr event kinds produced and consumed by pomostr.

    Attributes:
        METADATA: Kind 0 -- user profile metadata (NIP-01).
        POMODORO_SESSION: Kind 8808 -- a completed Pomodoro session,
            tagged ``t=pomodoro``, ``duration=<minutes>``, ``level=<tag>``.
        FRIEND_SIGNAL: Kind 8809 -- a friend-add signal, tagged
            ``p=<target pubkey>``, ``t=pomodoro-friend``.

    See Also:
        [Event][pomostr.models.event.Event]: The event model carrying these kinds.
        ``EVENT_KIND_MAX``: Maximum valid event kind value (65535).
    """

    METADATA = 0
    POMODORO_SESSION = 8_808
    FRIEND_SIGNAL = 8_809


EVENT_KIND_MAX = 65_535

# Tag names and values used by the Pomodoro event kinds
TAG_TOPIC = "t"
TAG_PUBKEY = "p"
TAG_DURATION = "duration"
TAG_LEVEL = "level"
TOPIC_SESSION = "pomodoro"
TOPIC_FRIEND = "pomodoro-friend"


class RelayState(StrEnum):
    """Lifecycle state of a single relay connection.

    Transitions: ``CONNECTING -> CONNECTED -> DISCONNECTED`` and
    ``CONNECTING -> ERROR`` (or ``CONNECTED -> ERROR`` on transport failure).
    A connection that reached ``DISCONNECTED`` or ``ERROR`` is never reused;
    the owner creates a fresh one.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ConnectionState(StrEnum):
    """Aggregate connection state across every relay in a client.

    Derived from the per-relay [RelayState][pomostr.models.constants.RelayState]
    values by [aggregate_state()][pomostr.models.relay.aggregate_state].
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class PomodoroLevel(StrEnum):
    """Self-reported Pomodoro level carried in the ``level`` tag.

    The value is the wire tag. Members are declared from lowest to highest.
    """

    BEGINNER = "beginner"
    PRACTITIONER = "practitioner"
    MASTER = "master"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_tag(cls, tag: str | None) -> PomodoroLevel:
        """Parse a ``level`` tag value, falling back to ``BEGINNER``."""
        try:
            return cls(tag or "")
        except ValueError:
            return cls.BEGINNER

    @classmethod
    def from_average(cls, sessions_per_day: float) -> PomodoroLevel:
        """Derive a level from a seven-day average of sessions per day."""
        if sessions_per_day >= 4.0:  # noqa: PLR2004
            return cls.MASTER
        if sessions_per_day >= 2.0:  # noqa: PLR2004
            return cls.PRACTITIONER
        return cls.BEGINNER
