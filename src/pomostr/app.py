"""Composition root: configuration and explicitly wired instances.

[App][pomostr.app.App] builds one of each collaborator (signer, metadata
cache, client, contacts, services) from an
[AppConfig][pomostr.app.AppConfig] and injects them into each other.
Nothing is a global singleton; tests build their own ``App`` or wire the
services directly.

Examples:
    ```python
    app = App.from_yaml("config/pomostr.yaml")
    async with app:
        rankings = await app.rankings.fetch_rankings(app.contacts.contacts)
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from pomostr.core.client import ClientConfig, NostrClient
from pomostr.core.logger import Logger
from pomostr.core.metrics import MetricsConfig
from pomostr.core.yaml import load_yaml
from pomostr.services.common.configs import RelaySetsConfig
from pomostr.services.contacts import ContactsBook
from pomostr.services.friends import FriendSignalService
from pomostr.services.metadata import MetadataCache, ProfileService
from pomostr.services.rankings import RankingService
from pomostr.services.search import SearchService
from pomostr.services.sessions import SessionPublisher
from pomostr.utils.keys import KeysConfig
from pomostr.utils.signing import LocalKeySigner, Signer


class AppConfig(BaseModel):
    """Top-level configuration, usually loaded from ``config/pomostr.yaml``.

    See Also:
        [ClientConfig][pomostr.core.client.ClientConfig]: Persistent pool.
        [RelaySetsConfig][pomostr.services.common.configs.RelaySetsConfig]:
            Per-query relay lists.
        [KeysConfig][pomostr.utils.keys.KeysConfig]: Local private key.
        [MetricsConfig][pomostr.core.metrics.MetricsConfig]: Prometheus endpoint.
    """

    model_config = {"arbitrary_types_allowed": True}

    client: ClientConfig = Field(default_factory=ClientConfig)
    relays: RelaySetsConfig = Field(default_factory=RelaySetsConfig)
    keys: KeysConfig = Field(
        default_factory=lambda: KeysConfig.model_validate({}),
        description="Private key source (environment variable)",
    )
    contacts_path: Path | None = Field(
        default=None, description="JSON file persisting the contact list"
    )
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> AppConfig:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> AppConfig:
        return cls.model_validate(config_dict)


class App:
    """Wires the client, cache, signer, contacts, and services together.

    Args:
        config: Application configuration; defaults apply when omitted.
        signer: Overrides the signer derived from ``config.keys`` (for
            example an [ExternalSigner][pomostr.utils.signing.ExternalSigner]).
        client: Overrides the client built from ``config.client``.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        signer: Signer | None = None,
        client: NostrClient | None = None,
    ) -> None:
        self._config = config or AppConfig()
        keys = self._config.keys.keys
        self.signer: Signer | None = signer or (LocalKeySigner(keys) if keys is not None else None)
        self.cache = MetadataCache()
        self.client = client or NostrClient(self._config.client)
        self.contacts = ContactsBook(self.identity, self._config.contacts_path)

        relays = self._config.relays
        self.rankings = RankingService(relays.ranking)
        self.friends = FriendSignalService(relays.friends, self.signer)
        self.search = SearchService(relays.search, relays.metadata, self.cache)
        self.profiles = ProfileService(self.client, self.cache, self.signer)
        self.sessions = SessionPublisher(self.client, self.signer)
        self._logger = Logger("app")

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> App:
        return cls(AppConfig.from_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any], **kwargs: Any) -> App:
        return cls(AppConfig.from_dict(config_dict), **kwargs)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def identity(self) -> str | None:
        """Hex public key of the current identity, or None."""
        return self.signer.public_key_hex() if self.signer is not None else None

    async def __aenter__(self) -> App:
        """Load persisted contacts; the client pool is connected on demand."""
        self.contacts.load()
        self._logger.info(
            "app_started", identity=self.identity, contacts=len(self.contacts)
        )
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.client.close()
        self._logger.info("app_stopped")
