"""Core layer: the multi-relay client and the ambient infrastructure.

Attributes:
    NostrClient: Pool of persistent relay connections with a central
        subscription registry, replay-on-connect, and fire-and-forget
        publication. Import it from [pomostr.core.client][]; it is not
        re-exported here because it builds on [pomostr.nips][] and
        [pomostr.utils][], which themselves import
        [pomostr.core.exceptions][].
    Broadcast: Bounded multi-consumer channel with drop-newest overflow.
        See [Broadcast][pomostr.core.broadcast.Broadcast].
    Observable: Current value plus a broadcast of changes.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][pomostr.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][pomostr.core.metrics.MetricsServer].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.

See Also:
    [pomostr.models][pomostr.models]: Pure dataclass models consumed by this layer.
    [pomostr.services][pomostr.services]: Domain services built on the client.
"""

from .broadcast import Broadcast, Listener, Observable
from .exceptions import (
    ConfigurationError,
    ContactValidationError,
    PomostrError,
    ProtocolError,
    SigningError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    BROADCAST_DROPPED,
    EVENTS_PUBLISHED,
    QUERY_DURATION_SECONDS,
    RELAY_ACKS,
    RELAY_FRAMES_MALFORMED,
    RELAY_STATUS_TRANSITIONS,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "BROADCAST_DROPPED",
    "EVENTS_PUBLISHED",
    "QUERY_DURATION_SECONDS",
    "RELAY_ACKS",
    "RELAY_FRAMES_MALFORMED",
    "RELAY_STATUS_TRANSITIONS",
    "Broadcast",
    "ConfigurationError",
    "ContactValidationError",
    "Listener",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "Observable",
    "PomostrError",
    "ProtocolError",
    "SigningError",
    "StructuredFormatter",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
