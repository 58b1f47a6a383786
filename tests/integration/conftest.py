"""Integration fixtures: several App instances sharing a small fake relay network.

Every relay list of every App points at the same two in-process relays, so
events published by one identity are visible to the queries of another.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
from fixtures.relays import FakeRelay, RelayFactory
from nostr_sdk import Keys

from pomostr.app import App
from pomostr.utils.signing import LocalKeySigner


AppFactory = Callable[[Keys], App]


@pytest.fixture
async def network(relay_factory: RelayFactory) -> list[FakeRelay]:
    return [await relay_factory(), await relay_factory()]


@pytest.fixture
async def app_factory(network: list[FakeRelay], tmp_path: Path) -> AsyncIterator[AppFactory]:
    """Build Apps for given keys; every App is closed after the test."""
    urls = [relay.url for relay in network]
    apps: list[App] = []

    def _make(keys: Keys) -> App:
        pubkey = keys.public_key().to_hex()
        app = App.from_dict(
            {
                "client": {"default_relays": urls, "connect_timeout": 2.0},
                "relays": {"ranking": urls, "friends": urls, "search": urls, "metadata": urls},
                "contacts_path": str(tmp_path / f"{pubkey[:8]}.json"),
            },
            signer=LocalKeySigner(keys),
        )
        apps.append(app)
        return app

    yield _make

    for app in apps:
        await app.client.close()
