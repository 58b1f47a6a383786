"""
Unit tests for models.relay module.

Tests:
- normalize_relay_url() scheme coercion, trailing slashes, whitespace, case
- RelayStatus constructors and predicates
- aggregate_state() folding rules
"""

import pytest

from pomostr.models.constants import ConnectionState, RelayState
from pomostr.models.relay import RelayStatus, aggregate_state, normalize_relay_url


# =============================================================================
# normalize_relay_url() Tests
# =============================================================================


class TestNormalizeRelayUrl:
    """normalize_relay_url() produces the pool key."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("relay.damus.io", "wss://relay.damus.io"),
            ("wss://relay.damus.io/", "wss://relay.damus.io"),
            ("wss://relay.damus.io//", "wss://relay.damus.io"),
            ("  wss://nos.lol  ", "wss://nos.lol"),
            ("ws://127.0.0.1:7777", "ws://127.0.0.1:7777"),
            ("wss://relay.example.com/nostr/", "wss://relay.example.com/nostr"),
            ("WSS://Relay.Example.COM/Path", "wss://relay.example.com/Path"),
            ("Relay.Damus.IO", "wss://relay.damus.io"),
            ("wss://NOS.LOL?Token=AbC", "wss://nos.lol?Token=AbC"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        assert normalize_relay_url(raw) == expected

    def test_equivalent_inputs_share_key(self) -> None:
        keys = {normalize_relay_url(u) for u in ("nos.lol", "wss://nos.lol", "wss://nos.lol/")}
        assert keys == {"wss://nos.lol"}

    def test_case_variants_share_key(self) -> None:
        keys = {normalize_relay_url(u) for u in ("WSS://Nos.Lol", "wss://nos.lol/", "NOS.lol")}
        assert keys == {"wss://nos.lol"}

    def test_path_without_host_rejected(self) -> None:
        with pytest.raises(ValueError, match="host"):
            normalize_relay_url("wss:///nostr")

    def test_empty_host_rejected(self) -> None:
        with pytest.raises(ValueError, match="host"):
            normalize_relay_url("wss://")

    def test_null_byte_rejected(self) -> None:
        with pytest.raises(ValueError, match="null"):
            normalize_relay_url("wss://a\x00b")


# =============================================================================
# RelayStatus Tests
# =============================================================================


class TestRelayStatus:
    """RelayStatus constructors and predicates."""

    def test_constructors(self) -> None:
        assert RelayStatus.connecting().state is RelayState.CONNECTING
        assert RelayStatus.connected().state is RelayState.CONNECTED
        assert RelayStatus.disconnected().state is RelayState.DISCONNECTED
        error = RelayStatus.error("refused")
        assert error.state is RelayState.ERROR
        assert error.reason == "refused"

    def test_empty_error_reason_gets_default(self) -> None:
        assert RelayStatus.error("").reason == "Unknown error"

    def test_predicates(self) -> None:
        assert RelayStatus.connected().is_connected
        assert RelayStatus.connecting().is_active
        assert not RelayStatus.connecting().is_connected
        assert not RelayStatus.error("x").is_active
        assert not RelayStatus.disconnected().is_active

    def test_equality_by_value(self) -> None:
        assert RelayStatus.error("a") == RelayStatus.error("a")
        assert RelayStatus.error("a") != RelayStatus.error("b")


# =============================================================================
# aggregate_state() Tests
# =============================================================================


class TestAggregateState:
    """aggregate_state() folds per-relay statuses."""

    def test_empty_is_disconnected(self) -> None:
        assert aggregate_state([]) is ConnectionState.DISCONNECTED

    def test_any_connected_wins(self) -> None:
        statuses = [RelayStatus.error("x"), RelayStatus.connecting(), RelayStatus.connected()]
        assert aggregate_state(statuses) is ConnectionState.CONNECTED

    def test_connecting_without_connected(self) -> None:
        statuses = [RelayStatus.error("x"), RelayStatus.connecting()]
        assert aggregate_state(statuses) is ConnectionState.CONNECTING

    def test_all_errors(self) -> None:
        statuses = [RelayStatus.error("x"), RelayStatus.error("y")]
        assert aggregate_state(statuses) is ConnectionState.ERROR

    def test_mixed_error_and_disconnected(self) -> None:
        statuses = [RelayStatus.error("x"), RelayStatus.disconnected()]
        assert aggregate_state(statuses) is ConnectionState.DISCONNECTED
