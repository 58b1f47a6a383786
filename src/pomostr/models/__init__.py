"""Pure frozen dataclasses with zero I/O for Nostr events, filters, and relay state.

The models layer is the foundation of the diamond DAG. It has **no dependencies**
on any other pomostr package -- only the Python standard library. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__`` so
invalid instances never escape the constructor. Validation failures raise
``ValueError`` or ``TypeError``; the wire codec in [pomostr.nips.nip01][]
translates them into protocol errors.

Attributes:
    Event: Content-addressed signed event; the constructor rejects any ``id``
        that does not match the canonical serialization.
    UnsignedEvent: Event template handed to a signer.
    Filter: Immutable relay query predicate.
    RelayStatus: Closed variant over [RelayState][pomostr.models.constants.RelayState].
    UserMetadata: Lenient projection of a kind-0 profile event.
    RankingEntry: One pubkey's session count in a leaderboard window.
    Rankings: Daily, weekly, and monthly leaderboards.

See Also:
    [pomostr.models.event][]: Event and template models.
    [pomostr.models.relay][]: URL normalization and status aggregation.
    [pomostr.models.constants][]: Shared constants and enumerations.
"""

from .constants import (
    EVENT_KIND_MAX,
    TAG_DURATION,
    TAG_LEVEL,
    TAG_PUBKEY,
    TAG_TOPIC,
    TOPIC_FRIEND,
    TOPIC_SESSION,
    ConnectionState,
    EventKind,
    PomodoroLevel,
    RelayState,
)
from .event import Event, Tags, UnsignedEvent
from .filter import Filter
from .metadata import UserMetadata
from .ranking import RankingEntry, Rankings, RankingWindow
from .relay import RelayStatus, aggregate_state, normalize_relay_url


__all__ = [
    "EVENT_KIND_MAX",
    "TAG_DURATION",
    "TAG_LEVEL",
    "TAG_PUBKEY",
    "TAG_TOPIC",
    "TOPIC_FRIEND",
    "TOPIC_SESSION",
    "ConnectionState",
    "Event",
    "EventKind",
    "Filter",
    "PomodoroLevel",
    "RankingEntry",
    "RankingWindow",
    "Rankings",
    "RelayState",
    "RelayStatus",
    "Tags",
    "UnsignedEvent",
    "UserMetadata",
    "aggregate_state",
    "normalize_relay_url",
]
