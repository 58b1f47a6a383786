"""
Relay URL normalization and per-relay status values.

Two URLs that normalize identically are the same relay: the normalized
form is the key of every connection pool and status map. A bare host is
coerced to the encrypted ``wss://`` scheme, the scheme and host are
lowercased, and trailing slashes are trimmed. Path and query keep their case.

[RelayStatus][pomostr.models.relay.RelayStatus] is a closed variant over
[RelayState][pomostr.models.constants.RelayState] with an error reason;
[aggregate_state()][pomostr.models.relay.aggregate_state] folds many of
them into one [ConnectionState][pomostr.models.constants.ConnectionState].
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ._validation import validate_str_no_null
from .constants import ConnectionState, RelayState


_SCHEMES = ("wss://", "ws://")


def normalize_relay_url(url: str) -> str:
    """Normalize a relay URL into its pool key.

    Examples:
        ```python
        normalize_relay_url("relay.example.com")          # 'wss://relay.example.com'
        normalize_relay_url("wss://relay.example.com/")   # 'wss://relay.example.com'
        normalize_relay_url("ws://127.0.0.1:7777")        # 'ws://127.0.0.1:7777'
        normalize_relay_url("WSS://Relay.Example.com/Inbox")  # 'wss://relay.example.com/Inbox'
        ```

    Raises:
        ValueError: If the URL is empty or contains null bytes.
    """
    validate_str_no_null(url, "url")
    normalized = url.strip()
    if not normalized.lower().startswith(_SCHEMES):
        normalized = f"wss://{normalized}"
    scheme, _, rest = normalized.partition("://")
    rest = rest.rstrip("/")
    host, tail = _split_host(rest)
    if not host:
        raise ValueError("Relay URL must include a host")
    return f"{scheme.lower()}://{host.lower()}{tail}"


def _split_host(rest: str) -> tuple[str, str]:
    """Split ``host[:port]`` from the path, query, or fragment that follows it."""
    for i, char in enumerate(rest):
        if char in "/?#":
            return rest[:i], rest[i:]
    return rest, ""


@dataclass(frozen=True, slots=True)
class RelayStatus:
    """Status of one relay connection.

    Attributes:
        state: Lifecycle state.
        reason: Human-readable cause, set only for ``RelayState.ERROR``.

    Examples:
        ```python
        status = RelayStatus.error("connection refused")
        match status.state:
            case RelayState.CONNECTED: ...
            case RelayState.ERROR: print(status.reason)
        ```
    """

    state: RelayState
    reason: str | None = None

    @classmethod
    def connecting(cls) -> RelayStatus:
        return cls(RelayState.CONNECTING)

    @classmethod
    def connected(cls) -> RelayStatus:
        return cls(RelayState.CONNECTED)

    @classmethod
    def disconnected(cls) -> RelayStatus:
        return cls(RelayState.DISCONNECTED)

    @classmethod
    def error(cls, reason: str) -> RelayStatus:
        return cls(RelayState.ERROR, reason or "Unknown error")

    @property
    def is_connected(self) -> bool:
        return self.state is RelayState.CONNECTED

    @property
    def is_active(self) -> bool:
        """True while the relay is connected or still dialing."""
        return self.state in (RelayState.CONNECTED, RelayState.CONNECTING)


def aggregate_state(statuses: Iterable[RelayStatus]) -> ConnectionState:
    """Fold per-relay statuses into one aggregate state.

    ``CONNECTED`` if any relay is connected, else ``CONNECTING`` if any is
    dialing, else ``ERROR`` if every known relay failed, else
    ``DISCONNECTED``. An empty set of statuses is ``DISCONNECTED``.
    """
    states = [status.state for status in statuses]
    if RelayState.CONNECTED in states:
        return ConnectionState.CONNECTED
    if RelayState.CONNECTING in states:
        return ConnectionState.CONNECTING
    if states and all(state is RelayState.ERROR for state in states):
        return ConnectionState.ERROR
    return ConnectionState.DISCONNECTED
