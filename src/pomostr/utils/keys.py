"""Nostr key handling for pomostr.

Loads the optional local private key from an environment variable and
parses user-supplied public keys (``npub1...`` bech32 or 64-char hex) into
the lowercase hex form used everywhere else. Both go through nostr-sdk.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output. Always use environment variables or a secure
    secret management system.

Examples:
    ```python
    import os

    os.environ["PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("PRIVATE_KEY")
    print(keys.public_key().to_hex())

    parse_public_key("npub1...")  # '7e7e9c42...'
    parse_public_key("garbage")   # None
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys, NostrSdkError, PublicKey
from pydantic import BaseModel, Field, model_validator

from pomostr.models._validation import is_hex_key


ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable holding an ``nsec1`` or
            64-char hex private key.

    Raises:
        ValueError: If the environment variable is not set or is empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    return Keys.parse(value.strip())


def parse_public_key(value: str) -> str | None:
    """Return the lowercase hex form of an ``npub1`` or hex public key, or None."""
    candidate = value.strip()
    if not candidate:
        return None
    if is_hex_key(candidate):
        return candidate.lower()
    if not candidate.startswith("npub1"):
        return None
    try:
        return PublicKey.parse(candidate).to_hex()
    except NostrSdkError:
        return None


class KeysConfig(BaseModel):
    """Pydantic model that loads the optional local key from the environment.

    When the variable named by ``keys_env`` is unset, ``keys`` stays None and
    the application runs without a local identity (an external signer may
    provide one). Set ``required`` to make a missing key a validation error.

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs, JSON, or any persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    required: bool = Field(default=False, description="Fail when the key is missing")
    keys: Keys | None = Field(default=None, description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Populate ``keys`` from the environment variable when it is set."""
        if isinstance(data, dict) and data.get("keys") is None:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            if os.getenv(env_var) or data.get("required", False):
                data = {**data, "keys": load_keys_from_env(env_var)}
        return data

    @property
    def public_key_hex(self) -> str | None:
        return self.keys.public_key().to_hex() if self.keys is not None else None
