"""
NIP-01 relay wire codec.

Outbound frames are compact JSON arrays:

```text
["REQ", <subscription id>, <filter>, ...]
["CLOSE", <subscription id>]
["EVENT", <event object>]
```

Inbound frames are decoded by their leading type discriminator into one of
the frozen message types below. Anything that is not valid JSON, not an
array, carries an unknown discriminator, has the wrong arity or field types,
or holds an event whose id or Schnorr signature fails nostr-sdk verification raises
[ProtocolError][pomostr.core.exceptions.ProtocolError]. Callers drop and
count such frames; they are never fatal.

Examples:
    ```python
    encode_req("ranking_1700000000000", [Filter(kinds=(8808,), limit=500)])
    # '["REQ","ranking_1700000000000",{"kinds":[8808],"limit":500}]'

    match parse_relay_message(raw):
        case EventMessage(subscription_id=sid, event=event): ...
        case EoseMessage(subscription_id=sid): ...
    ```
"""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pomostr.core.exceptions import ProtocolError
from pomostr.models.event import Event
from pomostr.models.filter import Filter


# =============================================================================
# Message Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class EventMessage:
    """``["EVENT", subscription_id, event]``"""

    subscription_id: str
    event: Event


@dataclass(frozen=True, slots=True)
class EoseMessage:
    """``["EOSE", subscription_id]`` -- end of stored events."""

    subscription_id: str


@dataclass(frozen=True, slots=True)
class OkMessage:
    """``["OK", event_id, accepted, message]`` -- publication acknowledgment."""

    event_id: str
    accepted: bool
    message: str


@dataclass(frozen=True, slots=True)
class NoticeMessage:
    """``["NOTICE", message]``"""

    message: str


@dataclass(frozen=True, slots=True)
class ClosedMessage:
    """``["CLOSED", subscription_id, message]`` -- relay-side subscription end."""

    subscription_id: str
    message: str


RelayMessage = EventMessage | EoseMessage | OkMessage | NoticeMessage | ClosedMessage


# =============================================================================
# Encoding
# =============================================================================


def _dumps(frame: list[Any]) -> str:
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def subscription_id(prefix: str, now_ms: int | None = None) -> str:
    """Return ``<prefix>_<millisecond timestamp>``."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}_{now_ms}"


def encode_req(sub_id: str, filters: Sequence[Filter]) -> str:
    """Encode a REQ frame for one subscription and one or more filters."""
    if not filters:
        raise ValueError("REQ requires at least one filter")
    return _dumps(["REQ", sub_id, *(f.to_dict() for f in filters)])


def encode_close(sub_id: str) -> str:
    return _dumps(["CLOSE", sub_id])


def encode_event(event: Event) -> str:
    """Encode an EVENT frame; the event must carry a signature."""
    if event.sig is None:
        raise ValueError("Cannot publish an unsigned event")
    return _dumps(["EVENT", event.to_dict()])


# =============================================================================
# Decoding
# =============================================================================


def _expect_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ProtocolError(f"{what} must be a string")
    return value


def _parse_event(frame: list[Any]) -> EventMessage:
    if len(frame) != 3:  # noqa: PLR2004
        raise ProtocolError("EVENT frame must have 3 elements")
    sub_id = _expect_str(frame[1], "subscription id")
    try:
        event = Event.from_dict(frame[2])
    except (ValueError, TypeError) as e:
        raise ProtocolError(f"Invalid event: {e}") from e
    return EventMessage(sub_id, event)


def _parse_eose(frame: list[Any]) -> EoseMessage:
    if len(frame) != 2:  # noqa: PLR2004
        raise ProtocolError("EOSE frame must have 2 elements")
    return EoseMessage(_expect_str(frame[1], "subscription id"))


def _parse_ok(frame: list[Any]) -> OkMessage:
    if len(frame) != 4:  # noqa: PLR2004
        raise ProtocolError("OK frame must have 4 elements")
    event_id = _expect_str(frame[1], "event id")
    if not isinstance(frame[2], bool):
        raise ProtocolError("OK accepted flag must be a boolean")
    return OkMessage(event_id, frame[2], _expect_str(frame[3], "OK message"))


def _parse_notice(frame: list[Any]) -> NoticeMessage:
    if len(frame) != 2:  # noqa: PLR2004
        raise ProtocolError("NOTICE frame must have 2 elements")
    return NoticeMessage(_expect_str(frame[1], "notice"))


def _parse_closed(frame: list[Any]) -> ClosedMessage:
    # The message is optional in older relays
    if len(frame) not in (2, 3):
        raise ProtocolError("CLOSED frame must have 2 or 3 elements")
    message = _expect_str(frame[2], "CLOSED message") if len(frame) == 3 else ""  # noqa: PLR2004
    return ClosedMessage(_expect_str(frame[1], "subscription id"), message)


_PARSERS = {
    "EVENT": _parse_event,
    "EOSE": _parse_eose,
    "OK": _parse_ok,
    "NOTICE": _parse_notice,
    "CLOSED": _parse_closed,
}


def parse_relay_message(raw: str | bytes, *, relay: str | None = None) -> RelayMessage:
    """Decode one inbound relay frame.

    Args:
        raw: The text frame as received.
        relay: Source relay URL, attached to any raised error.

    Raises:
        ProtocolError: If the frame is malformed, has an unknown
            discriminator, or carries an invalid event.
    """
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Frame is not valid JSON: {e}", relay=relay) from e

    if not isinstance(frame, list) or not frame:
        raise ProtocolError("Frame must be a non-empty JSON array", relay=relay)

    parser = _PARSERS.get(frame[0]) if isinstance(frame[0], str) else None
    if parser is None:
        raise ProtocolError(f"Unknown frame type {frame[0]!r}", relay=relay)

    try:
        return parser(frame)
    except ProtocolError as e:
        if e.relay is None:
            e.relay = relay
        raise
