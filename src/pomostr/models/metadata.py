"""
User profile metadata projected from kind-0 events.

[UserMetadata][pomostr.models.metadata.UserMetadata] is the cached view of
the latest kind-0 event per pubkey. Relays are untrusted, so parsing is
lenient: malformed JSON content or non-string fields produce an entry with
empty fields rather than an error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._validation import validate_hex, validate_timestamp


if TYPE_CHECKING:
    from .event import Event


logger = logging.getLogger(__name__)

_PUBKEY_PREVIEW = 12

# Wire field name -> attribute name
_CONTENT_FIELDS: dict[str, str] = {
    "name": "name",
    "display_name": "display_name",
    "about": "about",
    "picture": "picture",
    "banner": "banner",
    "nip05": "nip05",
    "lud16": "lud16",
    "website": "website",
}


def _clean(value: Any) -> str | None:
    """Keep non-blank strings, drop everything else."""
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True, slots=True)
class UserMetadata:
    """Profile metadata for one pubkey.

    Attributes:
        pubkey: Author public key (hex).
        name: Short handle.
        display_name: Preferred display name.
        about: Free-form bio.
        picture: Avatar URL.
        banner: Banner image URL.
        nip05: NIP-05 identifier.
        lud16: Lightning address.
        website: Personal website.
        created_at: Timestamp of the kind-0 event this projection came from;
            the cache orders updates by this value.
    """

    pubkey: str
    name: str | None = None
    display_name: str | None = None
    about: str | None = None
    picture: str | None = None
    banner: str | None = None
    nip05: str | None = None
    lud16: str | None = None
    website: str | None = None
    created_at: int = 0

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", 64)
        validate_timestamp(self.created_at, "created_at")

    @classmethod
    def from_content(cls, pubkey: str, content: str, created_at: int) -> UserMetadata:
        """Parse kind-0 JSON content; malformed content yields empty fields."""
        try:
            data = json.loads(content) if content else {}
        except json.JSONDecodeError:
            logger.debug("metadata_content_invalid pubkey=%s", pubkey[:_PUBKEY_PREVIEW])
            data = {}
        if not isinstance(data, dict):
            data = {}

        fields = {attr: _clean(data.get(key)) for key, attr in _CONTENT_FIELDS.items()}
        # Some clients still write the legacy camelCase key
        if fields["display_name"] is None:
            fields["display_name"] = _clean(data.get("displayName"))
        return cls(pubkey=pubkey, created_at=created_at, **fields)

    @classmethod
    def from_event(cls, event: Event) -> UserMetadata:
        return cls.from_content(event.pubkey, event.content, event.created_at)

    def to_content(self) -> str:
        """Serialize the profile fields as kind-0 JSON content, skipping empty ones."""
        data = {
            key: getattr(self, attr)
            for key, attr in _CONTENT_FIELDS.items()
            if getattr(self, attr) is not None
        }
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    @property
    def best_name(self) -> str:
        """Display name, else name, else a shortened pubkey."""
        return self.display_name or self.name or f"{self.pubkey[:_PUBKEY_PREVIEW]}..."
