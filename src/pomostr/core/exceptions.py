"""pomostr exception hierarchy.

Typed exceptions for the failures that may cross a layer boundary. Relay
misbehaviour is mostly *not* an exception: transport failures become
``ERROR`` statuses or ``QueryOutcome.error`` values, malformed frames are
dropped and counted, and timeouts are ordinary outcomes. What remains is
raised as one of these classes so callers can catch
[PomostrError][pomostr.core.exceptions.PomostrError] without hiding
``CancelledError``.

Exception hierarchy:

```text
PomostrError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── ProtocolError            -- malformed relay frame or event
├── SigningError             -- no identity to sign with
└── ContactValidationError   -- rejected contact input
```

See Also:
    [pomostr.nips.nip01][]: Raises
        [ProtocolError][pomostr.core.exceptions.ProtocolError] for every
        frame that cannot be decoded.
    [pomostr.services.contacts][]: Raises
        [ContactValidationError][pomostr.core.exceptions.ContactValidationError]
        from the strict ``add`` path.
"""

from __future__ import annotations


class PomostrError(Exception):
    """Base exception for all pomostr errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(PomostrError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(PomostrError):
    """Malformed relay frame, unknown frame type, or invalid event.

    Carries the offending relay URL when known so the drop can be
    attributed in logs and metrics.
    """

    def __init__(self, message: str, *, relay: str | None = None) -> None:
        super().__init__(message)
        self.relay = relay


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


class SigningError(PomostrError):
    """No identity is available for an operation that must sign.

    Signers themselves report failures as
    [SigningFailed][pomostr.utils.signing.SigningFailed] results.
    """


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class ContactValidationError(PomostrError):
    """Contact input rejected; ``str(error)`` is the user-facing message."""
