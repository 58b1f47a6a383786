"""
Pytest configuration and shared fixtures for pomostr tests.

Provides:
- Fake relay factory (local aiohttp WebSocket servers)
- Key and signer fixtures backed by nostr-sdk
- Sample events for sessions, friend signals, and profiles
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import pytest
from fixtures.events import NOW, PUBKEY_A, PUBKEY_B, make_friend_signal, make_profile, make_session
from fixtures.relays import FakeRelay, RelayFactory
from nostr_sdk import Keys

from pomostr.models.event import Event
from pomostr.utils.signing import ExternalSigner, LocalKeySigner


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Relay Fixtures
# ============================================================================


@pytest.fixture
async def relay_factory() -> AsyncIterator[RelayFactory]:
    """Start fake relays on demand; all are stopped after the test."""
    started: list[FakeRelay] = []

    async def _make(*args: Any, **kwargs: Any) -> FakeRelay:
        relay = await FakeRelay(*args, **kwargs).start()
        started.append(relay)
        return relay

    yield _make

    for relay in started:
        await relay.stop()


@pytest.fixture
async def relay(relay_factory: RelayFactory) -> FakeRelay:
    """A single responsive relay with no stored events."""
    return await relay_factory()


# ============================================================================
# Key Fixtures
# ============================================================================


@pytest.fixture
def keys() -> Keys:
    return Keys.generate()


@pytest.fixture
def pubkey(keys: Keys) -> str:
    return keys.public_key().to_hex()


@pytest.fixture
def local_signer(keys: Keys) -> LocalKeySigner:
    return LocalKeySigner(keys)


@pytest.fixture
def external_signer(pubkey: str) -> ExternalSigner:
    return ExternalSigner(pubkey)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def session_event() -> Event:
    return make_session(PUBKEY_A, created_at=NOW, level="practitioner")


@pytest.fixture
def friend_signal() -> Event:
    return make_friend_signal(PUBKEY_B, PUBKEY_A)


@pytest.fixture
def profile_event() -> Event:
    return make_profile(PUBKEY_A, '{"name":"alice","display_name":"Alice"}')
