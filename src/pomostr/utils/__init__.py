"""WebSocket transport, Nostr key handling, and the signing capability.

The utils layer sits in the middle of the diamond DAG, depending only on
[pomostr.models][pomostr.models]. It provides the low-level network and
cryptographic pieces used by [pomostr.core.client][] and
[pomostr.services][pomostr.services].

Attributes:
    transport: [RelayConnection][pomostr.utils.transport.RelayConnection], one
        aiohttp WebSocket per relay with callback-reported status, plus the
        [open_relay()][pomostr.utils.transport.open_relay] context manager for
        ephemeral queries.
    keys: Private key loading from environment variables (nsec1 bech32 or
        hex) and npub/hex public key parsing through nostr-sdk.
    signing: [Signer][pomostr.utils.signing.Signer] interface with a local
        Schnorr signer and an external round-trip signer.

Note:
    The utils layer has **zero** imports from ``pomostr.core`` or
    ``pomostr.services``.
"""
