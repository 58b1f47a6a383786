"""
Immutable Nostr events backed by nostr-sdk.

[UnsignedEvent][pomostr.models.event.UnsignedEvent] is the template handed to
a signer; [Event][pomostr.models.event.Event] is the signed record exchanged
with relays. Both are frozen dataclasses with plain hex/int/tuple fields so
services can compare, hash, and serialize them cheaply.

Content addressing and Schnorr verification are delegated to ``nostr_sdk``:
templates are built with ``EventBuilder`` and every event parsed from the
wire goes through ``nostr_sdk.Event.from_json()`` and ``verify()``, which
checks both the NIP-01 id and the signature. An event that fails either
check never leaves [Event.from_json()][pomostr.models.event.Event.from_json].

See Also:
    [pomostr.nips.nip01][]: Wire codec that builds events from relay frames.
    [pomostr.utils.signing][]: Signers that turn templates into events.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from nostr_sdk import Event as NostrEvent
from nostr_sdk import EventBuilder, Kind, NostrSdkError, PublicKey, Tag, Timestamp
from nostr_sdk import UnsignedEvent as NostrUnsignedEvent

from ._validation import validate_hex, validate_instance, validate_str_no_null, validate_timestamp
from .constants import EVENT_KIND_MAX


Tags = tuple[tuple[str, ...], ...]

_ID_LENGTH = 64
_PUBKEY_LENGTH = 64
_SIG_LENGTH = 128
_REQUIRED_FIELDS = ("id", "pubkey", "created_at", "kind", "sig")


def _freeze_tags(tags: Any) -> Tags:
    """Convert a list-of-lists tag structure into nested tuples of strings."""
    if isinstance(tags, str) or not isinstance(tags, list | tuple):
        raise TypeError(f"tags must be a sequence, got {type(tags).__name__}")
    frozen: list[tuple[str, ...]] = []
    for tag in tags:
        if isinstance(tag, str) or not isinstance(tag, list | tuple):
            raise TypeError(f"tag must be a sequence, got {type(tag).__name__}")
        for value in tag:
            validate_str_no_null(value, "tag value")
        frozen.append(tuple(tag))
    return tuple(frozen)


def _sdk_tags(inner: NostrEvent | NostrUnsignedEvent) -> Tags:
    return tuple(tuple(tag.as_vec()) for tag in inner.tags().to_vec())


def _validate_common(pubkey: Any, created_at: Any, kind: Any, content: Any) -> None:
    validate_hex(pubkey, "pubkey", _PUBKEY_LENGTH)
    validate_timestamp(created_at, "created_at")
    validate_timestamp(kind, "kind")
    if kind > EVENT_KIND_MAX:
        raise ValueError(f"kind must be <= {EVENT_KIND_MAX}, got {kind}")
    validate_str_no_null(content, "content")


def _tag_values(tags: Tags, name: str) -> list[str]:
    return [tag[1] for tag in tags if len(tag) >= 2 and tag[0] == name]  # noqa: PLR2004


@dataclass(frozen=True, slots=True)
class UnsignedEvent:
    """Event template awaiting an id and signature.

    Produced by [pomostr.nips.event_builders][] and consumed by a
    [Signer][pomostr.utils.signing.Signer]. The ``tags`` argument accepts
    any sequence of sequences and is normalized to nested tuples.

    Attributes:
        pubkey: Author public key (64 lowercase hex characters).
        created_at: Unix timestamp in seconds.
        kind: Event kind (0..65535).
        tags: Ordered tag tuples; the first element of each is the tag name.
        content: Free-form content, often empty or JSON.
    """

    pubkey: str
    created_at: int
    kind: int
    tags: Tags = ()
    content: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze_tags(self.tags))
        _validate_common(self.pubkey, self.created_at, self.kind, self.content)

    @classmethod
    def from_nostr_unsigned(cls, inner: NostrUnsignedEvent) -> UnsignedEvent:
        """Wrap an ``nostr_sdk.UnsignedEvent``, typically from ``EventBuilder.build()``."""
        validate_instance(inner, NostrUnsignedEvent, "unsigned event")
        return cls(
            pubkey=inner.author().to_hex(),
            created_at=inner.created_at().as_secs(),
            kind=inner.kind().as_u16(),
            tags=_sdk_tags(inner),
            content=inner.content(),
        )

    def to_nostr_unsigned(self) -> NostrUnsignedEvent:
        """Build the equivalent ``nostr_sdk.UnsignedEvent``, id included.

        Raises:
            ValueError: If nostr-sdk rejects the author key or a tag.
        """
        try:
            builder = (
                EventBuilder(Kind(self.kind), self.content)
                .tags([Tag.parse(list(tag)) for tag in self.tags])
                .custom_created_at(Timestamp.from_secs(self.created_at))
            )
            return builder.build(PublicKey.parse(self.pubkey))
        except NostrSdkError as e:
            raise ValueError(f"Invalid event template: {e}") from e

    def event_id(self) -> str:
        """Return the id an event built from this template will carry."""
        return self.to_nostr_unsigned().id().to_hex()

    def tag_values(self, name: str) -> list[str]:
        """Return the second element of every tag named *name*."""
        return _tag_values(self.tags, name)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object handed to external signers (no id, no sig)."""
        return {
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Construction validates field shapes only:

    * ``id`` and ``pubkey`` must be 64 lowercase hex characters, ``sig``
      (when present) 128.
    * ``kind`` must fit in 16 bits and ``created_at`` must be non-negative.
    * Content and tag values must not contain null bytes.

    Identity and authorship are established by the constructors that go
    through nostr-sdk: [from_json()][pomostr.models.event.Event.from_json]
    and [from_dict()][pomostr.models.event.Event.from_dict] reject events
    whose id or Schnorr signature does not verify, and
    [from_nostr_event()][pomostr.models.event.Event.from_nostr_event] wraps
    an event the SDK has already signed or verified.

    Raises:
        ValueError: If any field is malformed, or (when parsing) the id or
            signature does not verify.
        TypeError: If a field has the wrong type.

    Examples:
        ```python
        event = Event.from_json(raw)
        event.kind                  # 8808
        event.first_tag_value("duration")  # '25'
        event.to_dict()             # wire object for ["EVENT", ...]
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tags
    content: str
    sig: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        """Validate field shapes on construction."""
        object.__setattr__(self, "tags", _freeze_tags(self.tags))
        validate_hex(self.id, "id", _ID_LENGTH)
        _validate_common(self.pubkey, self.created_at, self.kind, self.content)
        if self.sig is not None:
            validate_hex(self.sig, "sig", _SIG_LENGTH)

    @classmethod
    def from_nostr_event(cls, inner: NostrEvent) -> Event:
        """Wrap a ``nostr_sdk.Event`` without re-verifying it."""
        validate_instance(inner, NostrEvent, "event")
        return cls(
            id=inner.id().to_hex(),
            pubkey=inner.author().to_hex(),
            created_at=inner.created_at().as_secs(),
            kind=inner.kind().as_u16(),
            tags=_sdk_tags(inner),
            content=inner.content(),
            sig=inner.signature(),
        )

    @classmethod
    def from_json(cls, raw: str) -> Event:
        """Parse an event and verify its id and signature.

        Raises:
            ValueError: If the JSON is not a well-formed event, or the id or
                signature does not verify.
        """
        try:
            inner = NostrEvent.from_json(raw)
        except NostrSdkError as e:
            raise ValueError(f"Invalid event JSON: {e}") from e
        if not inner.verify():
            raise ValueError(
                f"Event {inner.id().to_hex()[:16]}... failed id or signature verification"
            )
        return cls.from_nostr_event(inner)

    @classmethod
    def from_dict(cls, data: Any) -> Event:
        """Build and verify an event from a decoded wire object.

        Missing ``tags`` and ``content`` default to empty.

        Raises:
            ValueError: If the object is missing fields or fails verification.
            TypeError: If *data* is not a dict.
        """
        validate_instance(data, dict, "event")
        for name in _REQUIRED_FIELDS:
            if name not in data:
                raise ValueError(f"Event is missing field {name!r}")
        return cls.from_json(json.dumps({"tags": [], "content": "", **data}))

    def verify(self) -> bool:
        """Return True if the id and signature verify under nostr-sdk."""
        if self.sig is None:
            return False
        try:
            return NostrEvent.from_json(self.to_json()).verify()
        except NostrSdkError:
            return False

    def to_dict(self) -> dict[str, Any]:
        """Return the wire object ``{id, pubkey, created_at, kind, tags, content, sig}``."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def tag_values(self, name: str) -> list[str]:
        """Return the second element of every tag named *name*, in order."""
        return _tag_values(self.tags, name)

    def first_tag_value(self, name: str) -> str | None:
        """Return the value of the first tag named *name*, or ``None``."""
        values = _tag_values(self.tags, name)
        return values[0] if values else None

    def matches_template(self, template: UnsignedEvent) -> bool:
        """Return True if this event carries exactly the template's fields."""
        return (
            self.pubkey == template.pubkey
            and self.kind == template.kind
            and self.tags == template.tags
            and self.content == template.content
        )
