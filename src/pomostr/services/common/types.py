"""Shared result types for pomostr services.

Lightweight frozen dataclasses produced by the ephemeral query aggregator
and consumed by the domain services. Keeping them in their own module
avoids circular imports between ``aggregator`` and individual services.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pomostr.models.event import Event, UnsignedEvent


@dataclass(frozen=True, slots=True)
class QueryOutcome:
    """Result of one ephemeral REQ against one relay.

    Valid combinations:

    - ``completed=True``: the relay signalled EOSE, CLOSED, or end of stream.
    - ``timed_out=True``: the worker's timeout elapsed; ``events`` holds
      whatever arrived before it.
    - ``error`` set: the relay could not be reached or the stream broke;
      ``events`` may still hold frames received before the failure.

    Attributes:
        relay: Normalized relay URL.
        events: Valid events received for this query's subscription id, in
            arrival order.
        completed: The relay ended the query itself.
        timed_out: The timeout elapsed first.
        error: Human-readable failure cause, if any.
    """

    relay: str
    events: tuple[Event, ...] = ()
    completed: bool = False
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class RelayAck:
    """One relay's answer to a published event.

    Attributes:
        relay: Normalized relay URL.
        sent: The EVENT frame was written to the relay.
        accepted: ``True``/``False`` from the relay's OK frame, or ``None``
            when no OK arrived before the timeout.
        message: OK message or failure cause.
    """

    relay: str
    sent: bool
    accepted: bool | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class PublishReport:
    """Per-relay acknowledgments for one published event, in relay-list order."""

    event_id: str
    acks: tuple[RelayAck, ...] = field(default_factory=tuple)

    @property
    def sent(self) -> bool:
        """True if at least one relay received the EVENT frame."""
        return any(ack.sent for ack in self.acks)

    @property
    def accepted_by(self) -> list[str]:
        return [ack.relay for ack in self.acks if ack.accepted is True]

    @property
    def rejected_by(self) -> list[str]:
        return [ack.relay for ack in self.acks if ack.accepted is False]


@dataclass(frozen=True, slots=True)
class Published:
    """The signed event went out.

    Attributes:
        event: The signed event.
        sent: At least one relay received the EVENT frame.
        report: Per-relay acknowledgments, when the event was published
            over dedicated connections rather than the client pool.
    """

    event: Event
    sent: bool
    report: PublishReport | None = None


@dataclass(frozen=True, slots=True)
class AwaitingSignature:
    """An external signer holds the template; complete with the signed JSON later."""

    request_id: str
    template: UnsignedEvent


@dataclass(frozen=True, slots=True)
class PublishFailed:
    """Nothing was published; ``reason`` is user-facing."""

    reason: str


PublishOutcome = Published | AwaitingSignature | PublishFailed
