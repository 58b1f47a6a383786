r"""pomostr -- Pomodoro social layer over Nostr relays.

Publishes completed Pomodoro sessions, computes leaderboards among
contacts, discovers friends, and searches profiles, all through public
Nostr relays. There is no server of its own: every aggregation is done
client-side from the events relays return.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Rankings, friends, search, profiles, sessions
             /   |   \
          core  nips  utils    Client pool, logging, metrics | codec | transport, keys, signing
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure frozen dataclasses. Zero I/O, depends only on stdlib.
    core: Multi-relay client, broadcast channels, exceptions, logging,
        metrics, YAML loading.
    nips: NIP-01 wire codec and event templates. No I/O.
    utils: WebSocket transport, Nostr key parsing, signers.
    services: Domain aggregation and publishing.
    app: Composition root wiring all of the above.

Note:
    Top-level imports (``from pomostr import NostrClient``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("pomostr")

__all__ = [
    "App",
    "AppConfig",
    "ClientConfig",
    "ContactsBook",
    "Event",
    "ExternalSigner",
    "Filter",
    "FriendSignalService",
    "LocalKeySigner",
    "Logger",
    "MetadataCache",
    "NostrClient",
    "PomodoroLevel",
    "ProfileService",
    "RankingService",
    "Rankings",
    "RelayStatus",
    "SearchService",
    "SessionPublisher",
    "UnsignedEvent",
    "UserMetadata",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "App": ("pomostr.app", "App"),
    "AppConfig": ("pomostr.app", "AppConfig"),
    "ClientConfig": ("pomostr.core.client", "ClientConfig"),
    "NostrClient": ("pomostr.core.client", "NostrClient"),
    "Logger": ("pomostr.core", "Logger"),
    "Event": ("pomostr.models", "Event"),
    "Filter": ("pomostr.models", "Filter"),
    "PomodoroLevel": ("pomostr.models", "PomodoroLevel"),
    "Rankings": ("pomostr.models", "Rankings"),
    "RelayStatus": ("pomostr.models", "RelayStatus"),
    "UnsignedEvent": ("pomostr.models", "UnsignedEvent"),
    "UserMetadata": ("pomostr.models", "UserMetadata"),
    "ExternalSigner": ("pomostr.utils.signing", "ExternalSigner"),
    "LocalKeySigner": ("pomostr.utils.signing", "LocalKeySigner"),
    "ContactsBook": ("pomostr.services", "ContactsBook"),
    "FriendSignalService": ("pomostr.services", "FriendSignalService"),
    "MetadataCache": ("pomostr.services", "MetadataCache"),
    "ProfileService": ("pomostr.services", "ProfileService"),
    "RankingService": ("pomostr.services", "RankingService"),
    "SearchService": ("pomostr.services", "SearchService"),
    "SessionPublisher": ("pomostr.services", "SessionPublisher"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'pomostr' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
