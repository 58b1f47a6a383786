"""Ephemeral request/response aggregation across relay lists.

Every fetch-style service follows the same pattern: open a **dedicated,
short-lived connection per relay** (never the
[NostrClient][pomostr.core.client.NostrClient] pool), send one REQ, collect
EVENT frames until EOSE, CLOSED, end of stream, or the timeout (whichever
comes first), then send CLOSE and close the connection. Teardown is
best-effort and never raises.

Iteration policies over a relay list:

* [fan_out()][pomostr.services.common.aggregator.fan_out]: one concurrent
  worker per relay, joined with ``asyncio.gather``. Wall time is about the
  slowest worker, not the sum, and one relay timing out never cancels its
  siblings. Used by rankings and friend signals.
* [first_non_empty()][pomostr.services.common.aggregator.first_non_empty]:
  relays are tried in order and the loop stops at the first relay that
  returned at least one usable event, as judged by the caller's ``accept``
  predicate. Trades completeness for latency. Used by search and batch
  metadata fetch.
* [publish_to_relays()][pomostr.services.common.aggregator.publish_to_relays]:
  one concurrent worker per relay, each waiting for the relay's OK.

Relay failures never propagate: they are recorded in the returned
[QueryOutcome][pomostr.services.common.types.QueryOutcome] or
[RelayAck][pomostr.services.common.types.RelayAck].
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable, Sequence
from dataclasses import replace

from pomostr.core.exceptions import ProtocolError
from pomostr.core.logger import Logger
from pomostr.core.metrics import (
    EVENTS_PUBLISHED,
    QUERY_DURATION_SECONDS,
    RELAY_ACKS,
    RELAY_FRAMES_MALFORMED,
)
from pomostr.models.constants import RelayState
from pomostr.models.event import Event
from pomostr.models.filter import Filter
from pomostr.models.relay import normalize_relay_url
from pomostr.nips.nip01 import (
    ClosedMessage,
    EoseMessage,
    EventMessage,
    OkMessage,
    RelayMessage,
    encode_close,
    encode_event,
    encode_req,
    parse_relay_message,
    subscription_id,
)
from pomostr.utils.transport import DEFAULT_CONNECT_TIMEOUT, RelayConnection, open_relay

from .types import PublishReport, QueryOutcome, RelayAck


_CLOSE_SEND_TIMEOUT = 1.0

_logger = Logger("aggregator")


def _decode(conn: RelayConnection, raw: str) -> RelayMessage | None:
    try:
        return parse_relay_message(raw, relay=conn.url)
    except ProtocolError as e:
        RELAY_FRAMES_MALFORMED.labels(relay=conn.url).inc()
        _logger.debug("frame_dropped", relay=conn.url, error=str(e))
        return None


def _stream_error(conn: RelayConnection) -> str | None:
    status = conn.status
    return status.reason if status.state is RelayState.ERROR else None


async def _collect(conn: RelayConnection, sub_id: str, events: list[Event]) -> str | None:
    """Append matching events until the query ends; return a stream error, if any."""
    while (raw := await conn.receive()) is not None:
        match _decode(conn, raw):
            case EventMessage(subscription_id=sid, event=event) if sid == sub_id:
                events.append(event)
            case EoseMessage(subscription_id=sid) if sid == sub_id:
                return None
            case ClosedMessage(subscription_id=sid, message=message) if sid == sub_id:
                _logger.debug("query_closed_by_relay", relay=conn.url, message=message)
                return None
            case _:
                continue
    return _stream_error(conn)


# =============================================================================
# Single Relay
# =============================================================================


async def query_relay(
    url: str,
    event_filter: Filter,
    *,
    timeout: float,  # noqa: ASYNC109
    prefix: str,
) -> QueryOutcome:
    """Run one REQ against one relay over a dedicated connection.

    The *timeout* bounds the whole worker, handshake included. Events that
    arrived before it elapsed are kept.

    Args:
        url: Relay URL (normalized here).
        event_filter: The single filter sent in the REQ.
        timeout: Seconds before the worker stops with partial results.
        prefix: Subscription id prefix; the id is ``<prefix>_<ms timestamp>``.

    Returns:
        The relay's [QueryOutcome][pomostr.services.common.types.QueryOutcome].
        Never raises for relay failures.
    """
    relay = normalize_relay_url(url)
    sub_id = subscription_id(prefix)
    events: list[Event] = []
    started = time.monotonic()
    deadline = asyncio.get_running_loop().time() + timeout

    async with open_relay(relay, connect_timeout=min(DEFAULT_CONNECT_TIMEOUT, timeout)) as conn:
        if not conn.status.is_connected:
            outcome = QueryOutcome(relay, error=conn.status.reason or "Connection failed")
        elif not await conn.send(encode_req(sub_id, [event_filter])):
            outcome = QueryOutcome(relay, error="Failed to send REQ")
        else:
            try:
                async with asyncio.timeout_at(deadline):
                    error = await _collect(conn, sub_id, events)
                outcome = QueryOutcome(
                    relay, tuple(events), completed=error is None, error=error
                )
            except TimeoutError:
                outcome = QueryOutcome(relay, tuple(events), timed_out=True)
            with contextlib.suppress(Exception):
                await asyncio.wait_for(conn.send(encode_close(sub_id)), _CLOSE_SEND_TIMEOUT)

    QUERY_DURATION_SECONDS.labels(query=prefix).observe(time.monotonic() - started)
    _logger.debug(
        "query_finished",
        relay=relay,
        subscription=sub_id,
        events=len(outcome.events),
        timed_out=outcome.timed_out,
        error=outcome.error,
    )
    return outcome


async def _guarded_query(
    url: str, event_filter: Filter, *, timeout: float, prefix: str  # noqa: ASYNC109
) -> QueryOutcome:
    try:
        return await query_relay(url, event_filter, timeout=timeout, prefix=prefix)
    except (ValueError, OSError) as e:
        # Invalid URLs and unexpected socket errors are localized to the relay
        _logger.warning("query_failed", relay=url, error=str(e))
        return QueryOutcome(url, error=str(e))


# =============================================================================
# Relay Lists
# =============================================================================


async def fan_out(
    relays: Sequence[str],
    event_filter: Filter,
    *,
    timeout: float,  # noqa: ASYNC109
    prefix: str,
) -> list[QueryOutcome]:
    """Query every relay concurrently and return every outcome, in relay order."""
    if not relays:
        return []
    outcomes = await asyncio.gather(
        *(_guarded_query(url, event_filter, timeout=timeout, prefix=prefix) for url in relays)
    )
    _logger.debug(
        "fan_out_finished",
        prefix=prefix,
        relays=len(relays),
        events=sum(len(o.events) for o in outcomes),
        failed=sum(1 for o in outcomes if not o.ok),
    )
    return list(outcomes)


async def first_non_empty(
    relays: Sequence[str],
    event_filter: Filter,
    *,
    timeout: float,  # noqa: ASYNC109
    prefix: str,
    accept: Callable[[Event], bool] | None = None,
) -> QueryOutcome | None:
    """Query relays in order; return the first outcome holding a usable event.

    An event is usable when *accept* returns True for it, or always when
    *accept* is None. The returned outcome keeps only the usable events. A
    relay answering with nothing usable does not stop the loop; later relays
    are not consulted once a result exists.
    """
    for url in relays:
        outcome = await _guarded_query(url, event_filter, timeout=timeout, prefix=prefix)
        usable = outcome.events if accept is None else tuple(e for e in outcome.events if accept(e))
        if usable:
            return replace(outcome, events=usable)
        if outcome.error:
            _logger.debug("relay_skipped", relay=outcome.relay, error=outcome.error)
        elif outcome.events:
            _logger.debug("relay_unusable", relay=outcome.relay, events=len(outcome.events))
    return None


# =============================================================================
# Publishing
# =============================================================================


async def _await_ok(conn: RelayConnection, event_id: str) -> OkMessage | None:
    while (raw := await conn.receive()) is not None:
        match _decode(conn, raw):
            case OkMessage(event_id=ok_id) as ok if ok_id == event_id:
                return ok
            case _:
                continue
    return None


async def _publish_one(url: str, event: Event, frame: str, timeout: float) -> RelayAck:  # noqa: ASYNC109
    try:
        relay = normalize_relay_url(url)
    except ValueError as e:
        return RelayAck(url, sent=False, message=str(e))
    deadline = asyncio.get_running_loop().time() + timeout

    async with open_relay(relay, connect_timeout=min(DEFAULT_CONNECT_TIMEOUT, timeout)) as conn:
        if not conn.status.is_connected:
            ack = RelayAck(relay, sent=False, message=conn.status.reason or "Connection failed")
        elif not await conn.send(frame):
            ack = RelayAck(relay, sent=False, message="Failed to send EVENT")
        else:
            try:
                async with asyncio.timeout_at(deadline):
                    ok = await _await_ok(conn, event.id)
            except TimeoutError:
                ack = RelayAck(relay, sent=True, message="No OK before timeout")
            else:
                if ok is None:
                    ack = RelayAck(
                        relay, sent=True, message=_stream_error(conn) or "Closed before OK"
                    )
                else:
                    RELAY_ACKS.labels(accepted=str(ok.accepted).lower()).inc()
                    ack = RelayAck(relay, sent=True, accepted=ok.accepted, message=ok.message)

    _logger.debug(
        "relay_ack", relay=relay, sent=ack.sent, accepted=ack.accepted, message=ack.message
    )
    return ack


async def publish_to_relays(
    relays: Sequence[str],
    event: Event,
    *,
    timeout: float,  # noqa: ASYNC109
) -> PublishReport:
    """Publish *event* to every relay over dedicated connections.

    Workers start in list order and run concurrently; each waits up to
    *timeout* for the relay's OK. A failing relay never stops the others.

    Raises:
        ValueError: If the event is unsigned.
    """
    frame = encode_event(event)
    acks = await asyncio.gather(*(_publish_one(url, event, frame, timeout) for url in relays))
    report = PublishReport(event.id, tuple(acks))
    EVENTS_PUBLISHED.labels(outcome="sent" if report.sent else "not_sent").inc()
    _logger.info(
        "event_broadcast",
        event_id=event.id,
        kind=event.kind,
        relays=len(relays),
        accepted=len(report.accepted_by),
        rejected=len(report.rejected_by),
    )
    return report
