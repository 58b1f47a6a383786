"""Reusable service mixins for pomostr.

See Also:
    [SessionPublisher][pomostr.services.sessions.SessionPublisher],
    [FriendSignalService][pomostr.services.friends.FriendSignalService],
    [ProfileService][pomostr.services.metadata.ProfileService]: The services
        that compose [SignedPublisherMixin][pomostr.services.common.mixins.SignedPublisherMixin].
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pomostr.core.metrics import EVENTS_PUBLISHED
from pomostr.utils.signing import (
    ExternalSigner,
    PendingSignature,
    Signed,
    SigningFailed,
)

from .types import AwaitingSignature, PublishFailed, PublishOutcome, Published


if TYPE_CHECKING:
    from pomostr.core.logger import Logger
    from pomostr.models.event import Event, UnsignedEvent
    from pomostr.utils.signing import Signer


# ---------------------------------------------------------------------------
# Signed Publisher
# ---------------------------------------------------------------------------


class SignedPublisherMixin:
    """Mixin encapsulating sign-then-publish with external signer round trips.

    ``_sign_and_publish()`` signs a template and hands the event to
    ``_deliver()``. An external signer yields
    [AwaitingSignature][pomostr.services.common.types.AwaitingSignature];
    the signed JSON is later passed to ``complete_signature()``, which
    validates it against the original template before delivering it.
    Request ids are tracked per service, so a shared external signer cannot
    route one service's request through another.

    Note:
        The consumer must set ``self._signer``, ``self._logger`` and call
        ``_init_signing()`` in ``__init__``, and implement ``_deliver()``.
    """

    # Own attributes -- set by consumer in __init__
    _signer: Signer | None
    _logger: Logger
    _pending_requests: set[str]

    def _init_signing(self) -> None:
        self._pending_requests = set()

    async def _deliver(self, event: Event) -> Published:
        raise NotImplementedError

    @property
    def pending_requests(self) -> frozenset[str]:
        return frozenset(self._pending_requests)

    async def _sign_and_publish(self, template: UnsignedEvent) -> PublishOutcome:
        if self._signer is None:
            EVENTS_PUBLISHED.labels(outcome="failed").inc()
            return PublishFailed("No signer configured")

        match await self._signer.sign(template):
            case Signed(event=event):
                return await self._deliver(event)
            case PendingSignature(request_id=request_id, template=pending):
                self._pending_requests.add(request_id)
                EVENTS_PUBLISHED.labels(outcome="awaiting_signature").inc()
                self._logger.info("signature_requested", request_id=request_id, kind=pending.kind)
                return AwaitingSignature(request_id, pending)
            case SigningFailed(reason=reason):
                EVENTS_PUBLISHED.labels(outcome="failed").inc()
                self._logger.warning("signing_failed", kind=template.kind, reason=reason)
                return PublishFailed(reason)
        return PublishFailed("Unexpected signing result")

    async def complete_signature(self, request_id: str, signed_json: str) -> PublishOutcome:
        """Publish the externally signed event for a pending request.

        The event id must match its content, and its author, kind, tags, and
        content must match the template the request was issued for.
        """
        if request_id not in self._pending_requests:
            return PublishFailed(f"Unknown signing request {request_id}")
        self._pending_requests.discard(request_id)
        if not isinstance(self._signer, ExternalSigner):
            return PublishFailed("No external signer configured")

        match self._signer.resolve(request_id, signed_json):
            case Signed(event=event):
                return await self._deliver(event)
            case SigningFailed(reason=reason):
                EVENTS_PUBLISHED.labels(outcome="failed").inc()
                self._logger.warning("signature_rejected", request_id=request_id, reason=reason)
                return PublishFailed(reason)
        return PublishFailed("Unexpected signing result")

    def cancel_signature(self, request_id: str) -> PublishFailed:
        """Abandon a pending request; nothing is retried."""
        self._pending_requests.discard(request_id)
        if isinstance(self._signer, ExternalSigner):
            return PublishFailed(self._signer.cancel(request_id).reason)
        return PublishFailed("Signing cancelled")
