"""Relay-set configuration shared by pomostr services.

Each query type reads from its own relay list so that search-capable
relays (NIP-50) can be targeted separately from general-purpose ones.
Lists are normalized and deduplicated on validation; a partial YAML
override replaces only the lists it names.

Examples:
    ```yaml
    relays:
      search:
        - wss://relay.nostr.band
        - wss://search.nos.today
      ranking:
        - relay.damus.io
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from pomostr.models.relay import normalize_relay_url


_GENERAL_RELAYS = ("wss://relay.damus.io", "wss://relay.primal.net", "wss://nos.lol")


class RelaySetsConfig(BaseModel):
    """Relay lists for each ephemeral query and publication type."""

    ranking: list[str] = Field(
        default_factory=lambda: list(_GENERAL_RELAYS),
        description="Relays queried for session events",
    )
    friends: list[str] = Field(
        default_factory=lambda: list(_GENERAL_RELAYS),
        description="Relays queried for, and published with, friend signals",
    )
    search: list[str] = Field(
        default_factory=lambda: ["wss://relay.nostr.band", "wss://search.nos.today"],
        description="NIP-50 search-capable relays, tried in order",
    )
    metadata: list[str] = Field(
        default_factory=lambda: [
            "wss://relay.nostr.band",
            "wss://relay.damus.io",
            "wss://relay.primal.net",
        ],
        description="Relays tried in order for batch profile fetches",
    )

    @field_validator("ranking", "friends", "search", "metadata")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(normalize_relay_url(url) for url in v))
