"""Profile metadata: the shared last-write-wins cache and profile I/O.

[MetadataCache][pomostr.services.metadata.MetadataCache] maps pubkey to the
[UserMetadata][pomostr.models.metadata.UserMetadata] with the greatest
``created_at`` seen so far. Arrival order never matters: an update with an
older or equal timestamp is rejected. The compare-and-update runs under a
``threading.Lock`` so concurrent writers for the same pubkey cannot lose an
update. Accepted updates are announced, still under the lock, on a bounded
[Broadcast][pomostr.core.broadcast.Broadcast] that drops the newest
notification rather than stalling the writer. Listeners therefore see
updates in acceptance order, and writers on worker threads reach listeners
through their event loop.

[ProfileService][pomostr.services.metadata.ProfileService] loads a single
profile over the persistent [NostrClient][pomostr.core.client.NostrClient]
and publishes the local user's own profile.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING

from pomostr.core.broadcast import Broadcast
from pomostr.core.logger import Logger
from pomostr.models.constants import EventKind
from pomostr.models.filter import Filter
from pomostr.models.metadata import UserMetadata
from pomostr.nips.event_builders import build_profile_event
from pomostr.nips.nip01 import subscription_id

from .common.constants import PROFILE_CONNECT_TIMEOUT, PROFILE_EVENT_TIMEOUT, QueryPrefix
from .common.mixins import SignedPublisherMixin
from .common.types import PublishFailed, PublishOutcome, Published


if TYPE_CHECKING:
    from pomostr.core.client import NostrClient
    from pomostr.models.event import Event
    from pomostr.utils.signing import Signer


class MetadataCache:
    """Thread-safe pubkey -> metadata mapping with last-write-wins by timestamp.

    Args:
        buffer: Per-listener capacity of the ``changes`` broadcast.
    """

    def __init__(self, *, buffer: int = 64) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, UserMetadata] = {}
        self._changes: Broadcast[UserMetadata] = Broadcast("metadata", maxsize=buffer)

    @property
    def changes(self) -> Broadcast[UserMetadata]:
        """Accepted updates, in acceptance order."""
        return self._changes

    def put(self, metadata: UserMetadata) -> bool:
        """Store *metadata* unless an entry at least as new exists.

        Returns:
            True if the entry was stored (and announced).
        """
        with self._lock:
            current = self._entries.get(metadata.pubkey)
            if current is not None and metadata.created_at <= current.created_at:
                return False
            self._entries[metadata.pubkey] = metadata
            self._changes.publish(metadata)
        return True

    def put_event(self, event: Event) -> bool:
        """Project a Kind 0 event and store it; other kinds are ignored."""
        if event.kind != EventKind.METADATA:
            return False
        return self.put(UserMetadata.from_event(event))

    def get(self, pubkey: str) -> UserMetadata | None:
        with self._lock:
            return self._entries.get(pubkey)

    def contains(self, pubkey: str) -> bool:
        with self._lock:
            return pubkey in self._entries

    def __contains__(self, pubkey: object) -> bool:
        return isinstance(pubkey, str) and self.contains(pubkey)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def snapshot(self) -> dict[str, UserMetadata]:
        """Return a point-in-time copy of every entry."""
        with self._lock:
            return dict(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class ProfileService(SignedPublisherMixin):
    """Loads and publishes profiles through the persistent client.

    Args:
        client: Connected (or connecting) multi-relay client.
        cache: Shared metadata cache.
        signer: Signing capability; required only for ``save_profile``.
        connect_timeout: Seconds to wait for the client to be connected.
        event_timeout: Seconds to wait for the first matching Kind 0 event.
    """

    def __init__(
        self,
        client: NostrClient,
        cache: MetadataCache,
        signer: Signer | None = None,
        *,
        connect_timeout: float = PROFILE_CONNECT_TIMEOUT,
        event_timeout: float = PROFILE_EVENT_TIMEOUT,
    ) -> None:
        self._client = client
        self._cache = cache
        self._signer = signer
        self._connect_timeout = connect_timeout
        self._event_timeout = event_timeout
        self._logger = Logger("profile")
        self._init_signing()

    async def load_profile(self, pubkey: str) -> UserMetadata | None:
        """Fetch the newest profile of *pubkey* into the cache and return it.

        Waits for the client to be connected, subscribes to Kind 0 for that
        author, takes the first matching event, and always unsubscribes.
        Falls back to the cached entry (or None) when nothing arrives.
        """
        if not await self._client.wait_connected(self._connect_timeout):
            self._logger.warning("profile_load_not_connected", pubkey=pubkey)
            return self._cache.get(pubkey)

        sub_id = subscription_id(QueryPrefix.PROFILE)
        event_filter = Filter(kinds=(EventKind.METADATA,), authors=(pubkey,), limit=1)

        # Listen before subscribing so the first frame cannot be missed
        async with self._client.events.listen() as listener:
            await self._client.subscribe(sub_id, [event_filter])
            try:
                async with asyncio.timeout(self._event_timeout):
                    async for item in listener:
                        event = item.event
                        if (
                            item.subscription_id == sub_id
                            and event.kind == EventKind.METADATA
                            and event.pubkey == pubkey
                        ):
                            self._cache.put_event(event)
                            break
            except TimeoutError:
                self._logger.debug("profile_load_timeout", pubkey=pubkey)
            finally:
                await self._client.unsubscribe(sub_id)

        return self._cache.get(pubkey)

    async def save_profile(self, metadata: UserMetadata) -> PublishOutcome:
        """Sign and publish *metadata* as the local user's Kind 0 event."""
        identity = self._signer.public_key_hex() if self._signer is not None else None
        if identity is None:
            return PublishFailed("No identity available")
        if metadata.pubkey != identity:
            return PublishFailed("Profile does not belong to the current identity")
        try:
            template = build_profile_event(metadata)
        except ValueError as e:
            return PublishFailed(str(e))
        return await self._sign_and_publish(template)

    async def _deliver(self, event: Event) -> Published:
        sent = await self._client.publish(event)
        if sent:
            self._cache.put_event(event)
        return Published(event, sent)
