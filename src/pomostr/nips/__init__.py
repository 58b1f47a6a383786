"""Nostr Implementation Possibilities -- wire codec and event templates.

The NIPs layer sits in the middle of the diamond DAG, depending on
[pomostr.models][pomostr.models] and on
[pomostr.core.exceptions][pomostr.core.exceptions] for its error type. It
performs no I/O.

Attributes:
    nip01: Encodes REQ/CLOSE/EVENT frames and decodes inbound
        EVENT/EOSE/OK/NOTICE/CLOSED frames into typed messages.
    event_builders: Builds unsigned Kind 0, 8808, and 8809 templates.
"""

from pomostr.nips.event_builders import (
    build_friend_signal,
    build_profile_event,
    build_session_event,
)
from pomostr.nips.nip01 import (
    ClosedMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    OkMessage,
    RelayMessage,
    encode_close,
    encode_event,
    encode_req,
    parse_relay_message,
    subscription_id,
)


__all__ = [
    "ClosedMessage",
    "EoseMessage",
    "EventMessage",
    "NoticeMessage",
    "OkMessage",
    "RelayMessage",
    "build_friend_signal",
    "build_profile_event",
    "build_session_event",
    "encode_close",
    "encode_event",
    "encode_req",
    "parse_relay_message",
    "subscription_id",
]
