"""Unsigned event templates for the kinds pomostr publishes.

Standalone functions building ``nostr_sdk.EventBuilder`` instances for
profile metadata (Kind 0), Pomodoro session completion (Kind 8808), and
friend-add signals (Kind 8809), returned as
[UnsignedEvent][pomostr.models.event.UnsignedEvent] templates for a
[Signer][pomostr.utils.signing.Signer]. Nothing here touches keys.

See Also:
    [pomostr.services.sessions][]: Publishes Kind 8808 templates.
    [pomostr.services.friends][]: Publishes Kind 8809 templates.
    [pomostr.services.metadata][]: Publishes Kind 0 templates.
"""

from __future__ import annotations

from nostr_sdk import EventBuilder, Kind, NostrSdkError, PublicKey, Tag, Timestamp

from pomostr.models.constants import (
    TAG_DURATION,
    TAG_LEVEL,
    TAG_PUBKEY,
    TAG_TOPIC,
    TOPIC_FRIEND,
    TOPIC_SESSION,
    EventKind,
    PomodoroLevel,
)
from pomostr.models.event import UnsignedEvent
from pomostr.models.metadata import UserMetadata


# =============================================================================
# Helpers
# =============================================================================


def _template(builder: EventBuilder, pubkey: str, created_at: int | None) -> UnsignedEvent:
    """Build *builder* for *pubkey*; ``created_at`` defaults to now.

    Raises:
        ValueError: If *pubkey* is not a valid public key.
    """
    if created_at is not None:
        builder = builder.custom_created_at(Timestamp.from_secs(created_at))
    try:
        author = PublicKey.parse(pubkey)
    except NostrSdkError as e:
        raise ValueError(f"Invalid author public key: {e}") from e
    return UnsignedEvent.from_nostr_unsigned(builder.build(author))


# =============================================================================
# Kind 0: Profile Metadata
# =============================================================================


def build_profile_event(metadata: UserMetadata, created_at: int | None = None) -> UnsignedEvent:
    """Build a Kind 0 template whose content is the profile JSON."""
    builder = EventBuilder(Kind(EventKind.METADATA), metadata.to_content())
    return _template(builder, metadata.pubkey, created_at)


# =============================================================================
# Kind 8808: Session Completion
# =============================================================================


def build_session_event(
    pubkey: str,
    duration_minutes: int,
    level: PomodoroLevel,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Build a Kind 8808 template.

    Tags are ``t=pomodoro``, ``duration=<minutes>`` and ``level=<tag>``, in
    that order; content is empty.

    Raises:
        ValueError: If *duration_minutes* is not positive.
    """
    if isinstance(duration_minutes, bool) or duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")
    builder = EventBuilder(Kind(EventKind.POMODORO_SESSION), "").tags(
        [
            Tag.parse([TAG_TOPIC, TOPIC_SESSION]),
            Tag.parse([TAG_DURATION, str(duration_minutes)]),
            Tag.parse([TAG_LEVEL, level.value]),
        ]
    )
    return _template(builder, pubkey, created_at)


# =============================================================================
# Kind 8809: Friend Signal
# =============================================================================


def build_friend_signal(pubkey: str, target: str, created_at: int | None = None) -> UnsignedEvent:
    """Build a Kind 8809 template tagging *target* with ``p`` and ``t=pomodoro-friend``."""
    builder = EventBuilder(Kind(EventKind.FRIEND_SIGNAL), "").tags(
        [Tag.parse([TAG_PUBKEY, target]), Tag.parse([TAG_TOPIC, TOPIC_FRIEND])]
    )
    return _template(builder, pubkey, created_at)
