"""
Multi-relay Nostr client with a central subscription registry.

[NostrClient][pomostr.core.client.NostrClient] owns a pool of persistent
[RelayConnection][pomostr.utils.transport.RelayConnection] objects keyed by
normalized relay URL. It multiplexes subscriptions across every connected
relay, replays all registered subscriptions to relays that finish their
handshake later, fans publications out fire-and-forget, and merges inbound
events from all relays into one
[Broadcast][pomostr.core.broadcast.Broadcast].

Relay status changes arrive through callbacks. A relay that reports
``ERROR`` or ``DISCONNECTED`` is removed from the pool (its last status is
kept for the aggregate) and is only dialed again by an explicit
[connect()][pomostr.core.client.NostrClient.connect] or
[reconnect()][pomostr.core.client.NostrClient.reconnect].

Every pool mutation happens in one synchronous step on the event loop and
every fan-out iterates over a snapshot, so concurrent connect, disconnect,
subscribe, and publish calls never observe a torn pool.

Examples:
    ```python
    client = NostrClient.from_yaml("config/pomostr.yaml")
    async with client:
        async with client.events.listen() as events:
            await client.subscribe("sessions", [Filter(kinds=(8808,))])
            async for item in events:
                print(item.relay_url, item.event.pubkey)
    ```

See Also:
    [pomostr.services.common.aggregator][]: Ephemeral per-query connections
        that do not use this pool.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType, TracebackType
from typing import Any

from pydantic import BaseModel, Field, field_validator

from pomostr.models.constants import ConnectionState
from pomostr.models.event import Event
from pomostr.models.filter import Filter
from pomostr.models.relay import RelayStatus, aggregate_state, normalize_relay_url
from pomostr.nips.nip01 import (
    ClosedMessage,
    EoseMessage,
    EventMessage,
    NoticeMessage,
    OkMessage,
    encode_close,
    encode_event,
    encode_req,
    parse_relay_message,
)
from pomostr.utils.transport import RelayConnection

from .broadcast import Broadcast, Observable
from .exceptions import ProtocolError
from .logger import Logger
from .metrics import EVENTS_PUBLISHED, RELAY_ACKS, RELAY_FRAMES_MALFORMED, RELAY_STATUS_TRANSITIONS
from .yaml import load_yaml


DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.damus.io",
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://relay.nostr.band",
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ClientConfig(BaseModel):
    """Configuration for [NostrClient][pomostr.core.client.NostrClient].

    Relay URLs are normalized and deduplicated on validation.
    """

    default_relays: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RELAYS),
        description="Relays dialed by connect() when no URLs are given",
    )
    connect_timeout: float = Field(
        default=10.0, ge=0.1, le=120.0, description="WebSocket handshake timeout in seconds"
    )
    heartbeat: float = Field(
        default=30.0, ge=1.0, le=600.0, description="WebSocket ping interval in seconds"
    )
    event_buffer: int = Field(
        default=1000, ge=1, le=100_000, description="Per-listener inbound event queue size"
    )

    @field_validator("default_relays")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        """Normalize every relay URL and drop duplicates, keeping order."""
        return list(dict.fromkeys(normalize_relay_url(url) for url in v))


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RelayEvent:
    """One inbound event with the relay and subscription it arrived on."""

    event: Event
    relay_url: str
    subscription_id: str


@dataclass(frozen=True, slots=True)
class Subscription:
    """A registered subscription: caller-chosen id and its filters."""

    id: str
    filters: tuple[Filter, ...]


ConnectionFactory = Callable[..., RelayConnection]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class NostrClient:
    """Pool of persistent relay connections.

    Supports direct instantiation with a
    [ClientConfig][pomostr.core.client.ClientConfig] or the
    [from_yaml()][pomostr.core.client.NostrClient.from_yaml] /
    [from_dict()][pomostr.core.client.NostrClient.from_dict] factories.

    Live values:

    * ``connection_state``: [Observable][pomostr.core.broadcast.Observable]
      aggregate [ConnectionState][pomostr.models.constants.ConnectionState].
    * ``relay_status``: [Observable][pomostr.core.broadcast.Observable]
      read-only mapping of relay URL to
      [RelayStatus][pomostr.models.relay.RelayStatus].
    * ``events``: [Broadcast][pomostr.core.broadcast.Broadcast] of
      [RelayEvent][pomostr.core.client.RelayEvent]; late listeners see
      nothing from the past and full listener queues drop the newest item.

    Args:
        config: Client configuration; defaults apply when omitted.
        connection_factory: Builds a
            [RelayConnection][pomostr.utils.transport.RelayConnection] for a
            URL; accepts the same keyword arguments.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._connection_factory = connection_factory or RelayConnection
        self._connections: dict[str, RelayConnection] = {}
        self._statuses: dict[str, RelayStatus] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._events: Broadcast[RelayEvent] = Broadcast(
            "events", maxsize=self._config.event_buffer
        )
        self._connection_state: Observable[ConnectionState] = Observable(
            "connection_state", ConnectionState.DISCONNECTED
        )
        self._relay_status: Observable[Mapping[str, RelayStatus]] = Observable(
            "relay_status", MappingProxyType({})
        )
        self._logger = Logger("client")

    @classmethod
    def from_yaml(cls, config_path: str) -> NostrClient:
        """Create a client from a YAML file via [load_yaml()][pomostr.core.yaml.load_yaml]."""
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> NostrClient:
        """Create a client from a dictionary of ClientConfig fields."""
        return cls(config=ClientConfig(**config_dict))

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ClientConfig:
        """The client configuration (read-only)."""
        return self._config

    @property
    def events(self) -> Broadcast[RelayEvent]:
        return self._events

    @property
    def connection_state(self) -> Observable[ConnectionState]:
        return self._connection_state

    @property
    def relay_status(self) -> Observable[Mapping[str, RelayStatus]]:
        return self._relay_status

    @property
    def relays(self) -> list[str]:
        """URLs currently in the pool (connecting or connected)."""
        return list(self._connections)

    @property
    def connected_relays(self) -> list[str]:
        return [url for url, conn in list(self._connections.items()) if conn.status.is_connected]

    @property
    def subscriptions(self) -> dict[str, Subscription]:
        return dict(self._subscriptions)

    def _connected(self) -> list[RelayConnection]:
        return [conn for conn in list(self._connections.values()) if conn.status.is_connected]

    # -------------------------------------------------------------------------
    # Status Tracking
    # -------------------------------------------------------------------------

    def _publish_statuses(self) -> None:
        self._relay_status.set(MappingProxyType(dict(self._statuses)))
        state = aggregate_state(self._statuses.values())
        if self._connection_state.set(state):
            self._logger.info("connection_state_changed", state=state)

    def _handle_status(self, conn: RelayConnection, status: RelayStatus) -> None:
        # Reports from connections already removed from the pool are stale
        if self._connections.get(conn.url) is not conn:
            return
        RELAY_STATUS_TRANSITIONS.labels(state=status.state.value).inc()

        if status.is_active:
            self._statuses[conn.url] = status
            if status.is_connected:
                self._logger.info("relay_connected", relay=conn.url)
        else:
            del self._connections[conn.url]
            self._statuses[conn.url] = status
            if status.reason:
                self._logger.warning("relay_error", relay=conn.url, reason=status.reason)
            else:
                self._logger.info("relay_disconnected", relay=conn.url)
            self._spawn(conn.close())
        self._publish_statuses()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # -------------------------------------------------------------------------
    # Connection Management
    # -------------------------------------------------------------------------

    async def connect(self, urls: Iterable[str] | None = None) -> dict[str, bool]:
        """Dial every URL not already in the pool, concurrently.

        Idempotent per normalized URL. Uses ``default_relays`` when *urls* is
        None. Never raises for transport failures: a failed relay ends up in
        ``ERROR`` status.

        Returns:
            Dial outcome per newly dialed URL.
        """
        targets = self._config.default_relays if urls is None else urls
        pending: list[str] = []
        for url in targets:
            normalized = normalize_relay_url(url)
            if normalized not in self._connections and normalized not in pending:
                pending.append(normalized)
        if not pending:
            return {}

        results = await asyncio.gather(*(self._dial(url) for url in pending))
        outcome = dict(zip(pending, results, strict=True))
        self._logger.debug(
            "connect_completed", dialed=len(pending), connected=sum(results)
        )
        return outcome

    async def connect_relay(self, url: str) -> bool:
        """Dial a single relay; True if it is connected afterwards."""
        normalized = normalize_relay_url(url)
        if normalized in self._connections:
            return self._connections[normalized].status.is_connected
        return await self._dial(normalized)

    async def reconnect(self, urls: Iterable[str] | None = None) -> dict[str, bool]:
        """Re-dial only relays whose status is neither CONNECTED nor CONNECTING.

        With *urls* None, considers every relay with a known status, or the
        default relays when no status is known yet.
        """
        if urls is None:
            candidates = list(self._statuses) or list(self._config.default_relays)
        else:
            candidates = [normalize_relay_url(url) for url in urls]
        stale = [
            url
            for url in candidates
            if (status := self._statuses.get(url)) is None or not status.is_active
        ]
        return await self.connect(stale)

    async def _dial(self, url: str) -> bool:
        conn = self._connection_factory(
            url,
            on_status=lambda _url, status: self._handle_status(conn, status),
            connect_timeout=self._config.connect_timeout,
            heartbeat=self._config.heartbeat,
        )
        # Inserted before the first await so concurrent connect() calls skip it
        self._connections[url] = conn
        if not await conn.open():
            return False
        if self._connections.get(url) is not conn:
            # Removed by disconnect while the handshake was in flight
            await conn.close()
            return False

        conn.start(functools.partial(self._dispatch, url))
        # Snapshot taken in the same step the relay became CONNECTED, so a
        # concurrent subscribe() either sees it connected or is replayed here
        replay = list(self._subscriptions.values())
        for sub in replay:
            if self._subscriptions.get(sub.id) is sub:
                await conn.send(encode_req(sub.id, sub.filters))
        if replay:
            self._logger.debug("subscriptions_replayed", relay=url, count=len(replay))
        return True

    async def disconnect(self) -> None:
        """Close every relay, empty the pool, and forget all statuses."""
        conns = list(self._connections.values())
        self._connections.clear()
        self._statuses.clear()
        self._publish_statuses()
        await asyncio.gather(*(conn.close() for conn in conns))
        if conns:
            self._logger.info("disconnected", relays=len(conns))

    async def disconnect_relay(self, url: str) -> bool:
        """Close one relay and forget its status; False if it was unknown."""
        normalized = normalize_relay_url(url)
        conn = self._connections.pop(normalized, None)
        known = self._statuses.pop(normalized, None) is not None
        self._publish_statuses()
        if conn is not None:
            await conn.close()
        return conn is not None or known

    async def wait_connected(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Wait up to *timeout* seconds for the aggregate state to be CONNECTED."""
        try:
            async with asyncio.timeout(timeout):
                await self._connection_state.wait_for(
                    lambda state: state is ConnectionState.CONNECTED
                )
        except TimeoutError:
            pass
        return self._connection_state.value is ConnectionState.CONNECTED

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(self, sub_id: str, filters: Sequence[Filter]) -> int:
        """Register a subscription and send REQ to every connected relay.

        Relays that connect later receive it on handshake completion.
        Registering an existing id replaces its filters.

        Returns:
            Number of relays the REQ was sent to.
        """
        sub = Subscription(sub_id, tuple(filters))
        frame = encode_req(sub.id, sub.filters)
        self._subscriptions[sub_id] = sub
        results = await asyncio.gather(*(conn.send(frame) for conn in self._connected()))
        self._logger.debug("subscribed", subscription=sub_id, relays=sum(results))
        return sum(results)

    async def unsubscribe(self, sub_id: str) -> int:
        """Forget a subscription and send one CLOSE to every connected relay.

        Returns:
            Number of relays the CLOSE was sent to; 0 for an unknown id.
        """
        if self._subscriptions.pop(sub_id, None) is None:
            return 0
        frame = encode_close(sub_id)
        results = await asyncio.gather(*(conn.send(frame) for conn in self._connected()))
        self._logger.debug("unsubscribed", subscription=sub_id, relays=sum(results))
        return sum(results)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(self, event: Event) -> bool:
        """Send EVENT to every connected relay without waiting for OK.

        Acknowledgments are logged and counted as they arrive but are not
        part of the result.

        Returns:
            True if at least one relay accepted the write.

        Raises:
            ValueError: If the event is unsigned.
        """
        frame = encode_event(event)
        targets = self._connected()
        results = await asyncio.gather(*(conn.send(frame) for conn in targets))
        sent = any(results)
        EVENTS_PUBLISHED.labels(outcome="sent" if sent else "not_sent").inc()
        if sent:
            self._logger.info(
                "event_published", event_id=event.id, kind=event.kind, relays=sum(results)
            )
        else:
            self._logger.warning("event_not_sent", event_id=event.id, relays=len(targets))
        return sent

    # -------------------------------------------------------------------------
    # Inbound Dispatch
    # -------------------------------------------------------------------------

    def _dispatch(self, url: str, raw: str) -> None:
        try:
            message = parse_relay_message(raw, relay=url)
        except ProtocolError as e:
            RELAY_FRAMES_MALFORMED.labels(relay=url).inc()
            self._logger.debug("frame_dropped", relay=url, error=str(e))
            return

        match message:
            case EventMessage(subscription_id=sub_id, event=event):
                self._events.publish(RelayEvent(event, url, sub_id))
            case OkMessage(event_id=event_id, accepted=accepted, message=text):
                RELAY_ACKS.labels(accepted=str(accepted).lower()).inc()
                if accepted:
                    self._logger.debug("event_accepted", relay=url, event_id=event_id)
                else:
                    self._logger.warning(
                        "event_rejected", relay=url, event_id=event_id, message=text
                    )
            case EoseMessage(subscription_id=sub_id):
                self._logger.debug("eose", relay=url, subscription=sub_id)
            case NoticeMessage(message=text):
                self._logger.debug("notice", relay=url, message=text)
            case ClosedMessage(subscription_id=sub_id, message=text):
                self._logger.debug(
                    "subscription_closed", relay=url, subscription=sub_id, message=text
                )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Disconnect every relay and end all live-value listeners."""
        await self.disconnect()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._events.close()
        self._connection_state.close()
        self._relay_status.close()

    async def __aenter__(self) -> NostrClient:
        """Connect to the default relays on context entry."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"NostrClient(relays={len(self._connections)}, "
            f"state={self._connection_state.value.value!r})"
        )
