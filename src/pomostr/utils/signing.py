"""Signing capability consumed by the publishing services.

A [Signer][pomostr.utils.signing.Signer] turns an
[UnsignedEvent][pomostr.models.event.UnsignedEvent] into a
[SignResult][pomostr.utils.signing.SignResult], a closed union of:

* [Signed][pomostr.utils.signing.Signed]: the event is ready to publish.
* [PendingSignature][pomostr.utils.signing.PendingSignature]: an external
  signer must round-trip the request; the signed JSON arrives later through
  [ExternalSigner.resolve()][pomostr.utils.signing.ExternalSigner.resolve].
* [SigningFailed][pomostr.utils.signing.SigningFailed]: refused, cancelled,
  or invalid. Nothing is retried.

Signers also act as the identity provider through
[public_key_hex()][pomostr.utils.signing.Signer.public_key_hex].

Examples:
    ```python
    match await signer.sign(template):
        case Signed(event=event):
            await client.publish(event)
        case PendingSignature(request_id=rid):
            remember(rid)
        case SigningFailed(reason=reason):
            show(reason)
    ```
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from nostr_sdk import Keys, NostrSdkError

from pomostr.models.event import Event, UnsignedEvent


logger = logging.getLogger("utils.signing")


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class Signed:
    event: Event


@dataclass(frozen=True, slots=True)
class PendingSignature:
    """The template was handed to an external signer under ``request_id``."""

    request_id: str
    template: UnsignedEvent


@dataclass(frozen=True, slots=True)
class SigningFailed:
    reason: str


SignResult = Signed | PendingSignature | SigningFailed


# =============================================================================
# Signers
# =============================================================================


class Signer(ABC):
    """Signing capability and identity provider."""

    @abstractmethod
    def public_key_hex(self) -> str | None:
        """Return the current identity's public key (hex), or None."""

    @abstractmethod
    async def sign(self, template: UnsignedEvent) -> SignResult:
        """Sign *template*; never raises for signer-side failures."""


class LocalKeySigner(Signer):
    """Signs immediately with a local ``nostr_sdk.Keys`` pair.

    The template is rebuilt as an ``nostr_sdk.UnsignedEvent`` and signed
    with ``sign_with_keys()``, so the id and Schnorr signature come from the
    SDK.
    """

    def __init__(self, keys: Keys) -> None:
        self._keys = keys
        self._pubkey = keys.public_key().to_hex()

    def public_key_hex(self) -> str:
        return self._pubkey

    async def sign(self, template: UnsignedEvent) -> SignResult:
        if template.pubkey != self._pubkey:
            return SigningFailed("Template author does not match the local key")
        try:
            signed = template.to_nostr_unsigned().sign_with_keys(self._keys)
            return Signed(Event.from_nostr_event(signed))
        except (NostrSdkError, ValueError, TypeError) as e:
            logger.warning("local_sign_failed kind=%s error=%s", template.kind, e)
            return SigningFailed(f"Local signing failed: {e}")


class ExternalSigner(Signer):
    """Defers signing to an out-of-band signer (for example a NIP-55 app).

    Each [sign()][pomostr.utils.signing.ExternalSigner.sign] records the
    template under a fresh request id and returns
    [PendingSignature][pomostr.utils.signing.PendingSignature]. The signed
    event JSON is later delivered to
    [resolve()][pomostr.utils.signing.ExternalSigner.resolve], which checks
    it against the recorded template.

    Args:
        pubkey: Public key (hex) of the external identity, if known.
        on_request: Called with every new pending request, typically to
            launch the external signer.
    """

    def __init__(
        self,
        pubkey: str | None = None,
        *,
        on_request: Callable[[PendingSignature], None] | None = None,
    ) -> None:
        self._pubkey = pubkey
        self._on_request = on_request
        self._pending: dict[str, UnsignedEvent] = {}

    def public_key_hex(self) -> str | None:
        return self._pubkey

    @property
    def pending_requests(self) -> dict[str, UnsignedEvent]:
        return dict(self._pending)

    async def sign(self, template: UnsignedEvent) -> SignResult:
        if self._pubkey is not None and template.pubkey != self._pubkey:
            return SigningFailed("Template author does not match the external identity")
        pending = PendingSignature(uuid.uuid4().hex, template)
        self._pending[pending.request_id] = template
        if self._on_request is not None:
            self._on_request(pending)
        return pending

    def resolve(self, request_id: str, signed_json: str) -> Signed | SigningFailed:
        """Accept the signed event for *request_id*.

        The event must parse, its id and Schnorr signature must verify under
        nostr-sdk, and it must match the recorded template's author, kind,
        tags, and content. The request is consumed whatever the outcome.
        """
        template = self._pending.pop(request_id, None)
        if template is None:
            return SigningFailed(f"Unknown signing request {request_id}")
        try:
            event = Event.from_json(signed_json)
        except (ValueError, TypeError) as e:
            return SigningFailed(f"Invalid signed event: {e}")
        if not event.matches_template(template):
            return SigningFailed("Signed event does not match the signing request")
        return Signed(event)

    def cancel(self, request_id: str) -> SigningFailed:
        """Drop a pending request, for example when the user dismissed the signer."""
        self._pending.pop(request_id, None)
        return SigningFailed("Signing cancelled")
