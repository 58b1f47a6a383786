"""Friend signals: Kind 8809 events that tag a pubkey to invite it.

Inbound signals are gathered with a full
[fan_out()][pomostr.services.common.aggregator.fan_out] over the friend
relays and reduced to the set of distinct authors. Outbound signals are
published over dedicated connections with
[publish_to_relays()][pomostr.services.common.aggregator.publish_to_relays],
so the caller gets per-relay acknowledgments.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from pomostr.core.logger import Logger
from pomostr.models.constants import TAG_PUBKEY, EventKind
from pomostr.models.filter import Filter
from pomostr.nips.event_builders import build_friend_signal
from pomostr.utils.keys import parse_public_key

from .common.aggregator import fan_out, publish_to_relays
from .common.constants import (
    FRIEND_SIGNAL_LIMIT,
    FRIEND_SIGNAL_TIMEOUT,
    PUBLISH_TIMEOUT,
    QueryPrefix,
)
from .common.mixins import SignedPublisherMixin
from .common.types import PublishFailed, PublishOutcome, Published


if TYPE_CHECKING:
    from pomostr.models.event import Event
    from pomostr.utils.signing import Signer


class FriendSignalService(SignedPublisherMixin):
    """Discovers who added the local user and announces new friends.

    Args:
        relays: Friend-signal relays, used for both reading and publishing.
        signer: Identity provider and signing capability.
        timeout: Per-relay timeout for inbound queries.
        publish_timeout: Per-relay timeout waiting for OK on publish.
    """

    def __init__(
        self,
        relays: Sequence[str],
        signer: Signer | None,
        *,
        timeout: float = FRIEND_SIGNAL_TIMEOUT,
        publish_timeout: float = PUBLISH_TIMEOUT,
    ) -> None:
        self._relays = list(relays)
        self._signer = signer
        self._timeout = timeout
        self._publish_timeout = publish_timeout
        self._logger = Logger("friends")
        self._init_signing()

    def _identity(self) -> str | None:
        return self._signer.public_key_hex() if self._signer is not None else None

    async def fetch_inbound(self) -> frozenset[str]:
        """Return the authors of every friend signal that tags the local user.

        Without an identity the result is empty and no relay is contacted.
        The same author seen on several relays, or in several signals,
        appears once; the local user never appears.
        """
        me = self._identity()
        if me is None:
            return frozenset()

        event_filter = Filter(
            kinds=(EventKind.FRIEND_SIGNAL,), limit=FRIEND_SIGNAL_LIMIT
        ).with_tag(TAG_PUBKEY, (me,))
        outcomes = await fan_out(
            self._relays, event_filter, timeout=self._timeout, prefix=QueryPrefix.FRIEND
        )

        authors = frozenset(
            event.pubkey
            for outcome in outcomes
            for event in outcome.events
            if event.kind == EventKind.FRIEND_SIGNAL
            and event.pubkey != me
            and me in event.tag_values(TAG_PUBKEY)
        )
        self._logger.info(
            "friend_signals_fetched",
            relays=len(self._relays),
            responded=sum(1 for o in outcomes if o.ok),
            authors=len(authors),
        )
        return authors

    async def publish_friend_add(self, target: str) -> PublishOutcome:
        """Sign and publish a friend signal for *target* (npub or hex)."""
        me = self._identity()
        if me is None:
            return PublishFailed("No identity available")
        target_hex = parse_public_key(target)
        if target_hex is None:
            return PublishFailed("Invalid npub or hex key")
        if target_hex == me:
            return PublishFailed("You can't add yourself")
        try:
            template = build_friend_signal(me, target_hex)
        except ValueError as e:
            return PublishFailed(str(e))
        return await self._sign_and_publish(template)

    async def _deliver(self, event: Event) -> Published:
        report = await publish_to_relays(self._relays, event, timeout=self._publish_timeout)
        return Published(event, report.sent, report)
