"""
Unit tests for services.metadata module.

Tests:
- MetadataCache last-write-wins by created_at, regardless of arrival order
- MetadataCache change notifications and snapshot
- Updates written from worker threads reach an event-loop listener in order
- ProfileService.load_profile() over the persistent client
- ProfileService.save_profile() identity checks and cache update
"""

import asyncio
import threading
from collections.abc import AsyncIterator

import pytest
from fixtures.events import NOW, PUBKEY_A, PUBKEY_B, make_profile, make_session
from fixtures.relays import FakeRelay, RelayFactory

from pomostr.core.client import ClientConfig, NostrClient
from pomostr.models.metadata import UserMetadata
from pomostr.services.common.types import Published, PublishFailed
from pomostr.services.metadata import MetadataCache, ProfileService
from pomostr.utils.signing import LocalKeySigner


@pytest.fixture
async def client() -> AsyncIterator[NostrClient]:
    client = NostrClient(ClientConfig(default_relays=[], connect_timeout=2.0))
    yield client
    await client.close()


# =============================================================================
# MetadataCache Tests
# =============================================================================


class TestMetadataCache:
    """Last-write-wins cache."""

    def test_put_and_get(self) -> None:
        cache = MetadataCache()
        meta = UserMetadata(PUBKEY_A, name="alice", created_at=10)
        assert cache.put(meta) is True
        assert cache.get(PUBKEY_A) == meta
        assert PUBKEY_A in cache
        assert len(cache) == 1

    def test_older_update_rejected(self) -> None:
        cache = MetadataCache()
        newer = UserMetadata(PUBKEY_A, name="new", created_at=20)
        cache.put(newer)
        assert cache.put(UserMetadata(PUBKEY_A, name="old", created_at=10)) is False
        assert cache.get(PUBKEY_A) == newer

    def test_equal_timestamp_rejected(self) -> None:
        cache = MetadataCache()
        cache.put(UserMetadata(PUBKEY_A, name="first", created_at=10))
        assert cache.put(UserMetadata(PUBKEY_A, name="second", created_at=10)) is False
        assert cache.get(PUBKEY_A).name == "first"

    def test_arrival_order_does_not_matter(self) -> None:
        versions = [UserMetadata(PUBKEY_A, name=str(ts), created_at=ts) for ts in (3, 9, 1, 7)]
        forward, backward = MetadataCache(), MetadataCache()
        for meta in versions:
            forward.put(meta)
        for meta in reversed(versions):
            backward.put(meta)
        assert forward.get(PUBKEY_A) == backward.get(PUBKEY_A)
        assert forward.get(PUBKEY_A).created_at == 9

    def test_concurrent_writers_keep_newest(self) -> None:
        cache = MetadataCache()

        def writer(offset: int) -> None:
            for ts in range(offset, 400, 4):
                cache.put(UserMetadata(PUBKEY_A, created_at=ts))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert cache.get(PUBKEY_A).created_at == 399

    def test_put_event_only_accepts_kind_zero(self) -> None:
        cache = MetadataCache()
        assert cache.put_event(make_session(PUBKEY_A)) is False
        assert cache.put_event(make_profile(PUBKEY_A, '{"name":"alice"}')) is True
        assert cache.get(PUBKEY_A).name == "alice"

    async def test_accepted_updates_broadcast(self) -> None:
        cache = MetadataCache()
        listener = cache.changes.listen()
        first = UserMetadata(PUBKEY_A, created_at=2)
        cache.put(first)
        cache.put(UserMetadata(PUBKEY_A, created_at=1))
        second = UserMetadata(PUBKEY_B, created_at=1)
        cache.put(second)
        assert [await listener.get(), await listener.get()] == [first, second]
        assert listener.pending() == 0

    async def test_worker_thread_updates_reach_listener_in_order(self) -> None:
        cache = MetadataCache(buffer=500)
        accepted: list[int] = []
        guard = threading.Lock()

        def writer(offset: int) -> None:
            for ts in range(offset, 200, 4):
                if cache.put(UserMetadata(PUBKEY_A, created_at=ts)):
                    with guard:
                        accepted.append(ts)

        async with cache.changes.listen() as listener:
            await asyncio.gather(*(asyncio.to_thread(writer, n) for n in range(4)))
            received = [
                (await asyncio.wait_for(listener.get(), timeout=2.0)).created_at
                for _ in accepted
            ]
            assert listener.pending() == 0

        assert received == sorted(accepted)
        assert received[-1] == 199

    def test_snapshot_and_clear(self) -> None:
        cache = MetadataCache()
        cache.put(UserMetadata(PUBKEY_A, created_at=1))
        snapshot = cache.snapshot()
        cache.clear()
        assert list(snapshot) == [PUBKEY_A]
        assert len(cache) == 0
        assert cache.contains(PUBKEY_A) is False


# =============================================================================
# ProfileService Tests
# =============================================================================


class TestLoadProfile:
    """ProfileService.load_profile()."""

    async def test_loads_into_cache(self, client: NostrClient, relay_factory: RelayFactory) -> None:
        relay = await relay_factory([make_profile(PUBKEY_A, '{"name":"alice"}', created_at=NOW)])
        await client.connect([relay.url])
        cache = MetadataCache()
        service = ProfileService(client, cache, event_timeout=2.0)

        meta = await service.load_profile(PUBKEY_A)

        assert meta is not None
        assert meta.name == "alice"
        assert cache.get(PUBKEY_A) == meta
        req = relay.frames("REQ")[0]
        assert req[1].startswith("profile_")
        assert req[2] == {"kinds": [0], "authors": [PUBKEY_A], "limit": 1}
        await relay.wait_for_frames("CLOSE")
        assert client.subscriptions == {}

    async def test_not_connected_returns_cached(self, client: NostrClient) -> None:
        cache = MetadataCache()
        cached = UserMetadata(PUBKEY_A, name="cached", created_at=1)
        cache.put(cached)
        service = ProfileService(client, cache, connect_timeout=0.05)
        assert await service.load_profile(PUBKEY_A) == cached

    async def test_timeout_unsubscribes(self, client: NostrClient, relay: FakeRelay) -> None:
        await client.connect([relay.url])
        service = ProfileService(client, MetadataCache(), event_timeout=0.2)
        assert await service.load_profile(PUBKEY_B) is None
        await relay.wait_for_frames("CLOSE")

    async def test_stale_event_does_not_override_cache(
        self, client: NostrClient, relay_factory: RelayFactory
    ) -> None:
        relay = await relay_factory([make_profile(PUBKEY_A, '{"name":"old"}', created_at=5)])
        await client.connect([relay.url])
        cache = MetadataCache()
        cache.put(UserMetadata(PUBKEY_A, name="new", created_at=50))
        service = ProfileService(client, cache, event_timeout=2.0)
        assert (await service.load_profile(PUBKEY_A)).name == "new"


class TestSaveProfile:
    """ProfileService.save_profile()."""

    async def test_publishes_and_caches(
        self, client: NostrClient, relay: FakeRelay, local_signer: LocalKeySigner, pubkey: str
    ) -> None:
        await client.connect([relay.url])
        cache = MetadataCache()
        service = ProfileService(client, cache, local_signer)

        outcome = await service.save_profile(UserMetadata(pubkey, name="me", about="focus"))

        assert isinstance(outcome, Published)
        assert outcome.sent is True
        assert outcome.event.kind == 0
        assert cache.get(pubkey).name == "me"
        await relay.wait_for_frames("EVENT")

    async def test_foreign_profile_refused(
        self, client: NostrClient, local_signer: LocalKeySigner
    ) -> None:
        service = ProfileService(client, MetadataCache(), local_signer)
        outcome = await service.save_profile(UserMetadata(PUBKEY_A, name="x"))
        assert outcome == PublishFailed("Profile does not belong to the current identity")

    async def test_without_signer(self, client: NostrClient) -> None:
        outcome = await ProfileService(client, MetadataCache()).save_profile(UserMetadata(PUBKEY_A))
        assert outcome == PublishFailed("No identity available")

    async def test_not_sent_leaves_cache(
        self, client: NostrClient, local_signer: LocalKeySigner, pubkey: str
    ) -> None:
        cache = MetadataCache()
        service = ProfileService(client, cache, local_signer)
        outcome = await service.save_profile(UserMetadata(pubkey, name="me"))
        assert isinstance(outcome, Published)
        assert outcome.sent is False
        assert cache.get(pubkey) is None
