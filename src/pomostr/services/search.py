"""User search and batch metadata fetch over Kind 0 events.

Both operations use
[first_non_empty()][pomostr.services.common.aggregator.first_non_empty]:
relays are tried in order and the first one returning a usable profile wins.
A search accepts any Kind 0 event; a batch fetch accepts only Kind 0 events
authored by one of the requested pubkeys, so a relay answering with
unrelated events does not end the loop.
Every profile found is written to the shared
[MetadataCache][pomostr.services.metadata.MetadataCache].
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from pomostr.core.logger import Logger
from pomostr.models.constants import EventKind
from pomostr.models.filter import Filter
from pomostr.models.metadata import UserMetadata

from .common.aggregator import first_non_empty
from .common.constants import (
    METADATA_TIMEOUT,
    SEARCH_LIMIT,
    SEARCH_MIN_QUERY_LENGTH,
    SEARCH_TIMEOUT,
    QueryPrefix,
)


if TYPE_CHECKING:
    from pomostr.models.event import Event

    from .metadata import MetadataCache


def _is_profile(event: Event) -> bool:
    return event.kind == EventKind.METADATA


def _newest_per_author(events: Iterable[Event]) -> dict[str, UserMetadata]:
    newest: dict[str, UserMetadata] = {}
    for event in events:
        if event.kind != EventKind.METADATA:
            continue
        current = newest.get(event.pubkey)
        if current is None or event.created_at > current.created_at:
            newest[event.pubkey] = UserMetadata.from_event(event)
    return newest


class SearchService:
    """NIP-50 user search and profile lookups by pubkey."""

    def __init__(
        self,
        search_relays: Sequence[str],
        metadata_relays: Sequence[str],
        cache: MetadataCache,
        *,
        timeout: float = SEARCH_TIMEOUT,
        metadata_timeout: float = METADATA_TIMEOUT,
    ) -> None:
        self._search_relays = list(search_relays)
        self._metadata_relays = list(metadata_relays)
        self._cache = cache
        self._timeout = timeout
        self._metadata_timeout = metadata_timeout
        self._logger = Logger("search")

    async def search_users(self, query: str, exclude: Iterable[str] = ()) -> list[UserMetadata]:
        """Return profiles matching *query*, ordered by display name.

        Queries shorter than two characters (after stripping) return an empty
        list without contacting any relay. Pubkeys in *exclude* are left out
        of the result but still cached.
        """
        text = query.strip()
        if len(text) < SEARCH_MIN_QUERY_LENGTH:
            return []

        event_filter = Filter(kinds=(EventKind.METADATA,), search=text, limit=SEARCH_LIMIT)
        outcome = await first_non_empty(
            self._search_relays,
            event_filter,
            timeout=self._timeout,
            prefix=QueryPrefix.SEARCH,
            accept=_is_profile,
        )
        if outcome is None:
            self._logger.info("search_empty", query=text)
            return []

        profiles = _newest_per_author(outcome.events)
        for metadata in profiles.values():
            self._cache.put(metadata)

        skipped = set(exclude)
        results = sorted(
            (m for m in profiles.values() if m.pubkey not in skipped),
            key=lambda m: m.best_name.casefold(),
        )
        self._logger.info("search_finished", query=text, relay=outcome.relay, results=len(results))
        return results

    async def fetch_metadata(self, pubkeys: Iterable[str]) -> dict[str, UserMetadata]:
        """Fetch profiles for *pubkeys* and store them in the cache.

        Returns:
            The newest profile found per pubkey; pubkeys without one are absent.
        """
        authors = tuple(dict.fromkeys(pubkeys))
        if not authors:
            return {}

        requested = set(authors)
        event_filter = Filter(kinds=(EventKind.METADATA,), authors=authors)
        outcome = await first_non_empty(
            self._metadata_relays,
            event_filter,
            timeout=self._metadata_timeout,
            prefix=QueryPrefix.METADATA_BATCH,
            accept=lambda event: _is_profile(event) and event.pubkey in requested,
        )
        if outcome is None:
            return {}

        profiles = {
            pubkey: metadata
            for pubkey, metadata in _newest_per_author(outcome.events).items()
            if pubkey in requested
        }
        for metadata in profiles.values():
            self._cache.put(metadata)
        self._logger.info(
            "metadata_fetched", requested=len(authors), found=len(profiles), relay=outcome.relay
        )
        return profiles
