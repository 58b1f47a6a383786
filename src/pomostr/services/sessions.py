"""Publishing completed Pomodoro sessions as Kind 8808 events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pomostr.core.logger import Logger
from pomostr.nips.event_builders import build_session_event

from .common.mixins import SignedPublisherMixin
from .common.types import PublishFailed, PublishOutcome, Published


if TYPE_CHECKING:
    from pomostr.core.client import NostrClient
    from pomostr.models.constants import PomodoroLevel
    from pomostr.models.event import Event
    from pomostr.utils.signing import Signer


class SessionPublisher(SignedPublisherMixin):
    """Signs session-completion events and sends them through the client pool."""

    def __init__(self, client: NostrClient, signer: Signer | None) -> None:
        self._client = client
        self._signer = signer
        self._logger = Logger("sessions")
        self._init_signing()

    async def publish_session(
        self, duration_minutes: int, level: PomodoroLevel
    ) -> PublishOutcome:
        """Publish one completed session of *duration_minutes* at *level*.

        Returns [PublishFailed][pomostr.services.common.types.PublishFailed]
        without signing when the duration is not positive or there is no
        identity.
        """
        identity = self._signer.public_key_hex() if self._signer is not None else None
        if identity is None:
            return PublishFailed("No identity available")
        try:
            template = build_session_event(identity, duration_minutes, level)
        except ValueError as e:
            return PublishFailed(str(e))
        return await self._sign_and_publish(template)

    async def _deliver(self, event: Event) -> Published:
        sent = await self._client.publish(event)
        self._logger.info("session_published", event_id=event.id, sent=sent)
        return Published(event, sent)
