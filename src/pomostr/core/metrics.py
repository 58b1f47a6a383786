"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons shared by the
client, the ephemeral query aggregator, and the services. The
[MetricsServer][pomostr.core.metrics.MetricsServer] exposes them over an
aiohttp endpoint for scraping; the CLI ``watch`` command starts it when
``MetricsConfig.enabled`` is set.

Architecture:
    RELAY_FRAMES_MALFORMED:     Inbound frames dropped by the codec, per relay.
    RELAY_STATUS_TRANSITIONS:   Relay status changes, per target state.
    EVENTS_PUBLISHED:           Publication attempts, per outcome.
    RELAY_ACKS:                 OK frames received, per accepted flag.
    BROADCAST_DROPPED:          Items dropped by full listener queues, per channel.
    QUERY_DURATION_SECONDS:     Ephemeral query latency, per query prefix.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable the metrics endpoint")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Relay Metrics
# ---------------------------------------------------------------------------

RELAY_FRAMES_MALFORMED = Counter(
    "pomostr_relay_frames_malformed",
    "Inbound relay frames dropped because they could not be decoded",
    ["relay"],
)

RELAY_STATUS_TRANSITIONS = Counter(
    "pomostr_relay_status_transitions",
    "Relay connection status transitions",
    ["state"],
)

RELAY_ACKS = Counter(
    "pomostr_relay_acks",
    "OK frames received from relays",
    ["accepted"],
)


# ---------------------------------------------------------------------------
# Publication and Query Metrics
# ---------------------------------------------------------------------------

# outcome: sent | not_sent | awaiting_signature | failed
EVENTS_PUBLISHED = Counter(
    "pomostr_events_published",
    "Event publication attempts",
    ["outcome"],
)

QUERY_DURATION_SECONDS = Histogram(
    "pomostr_query_duration_seconds",
    "Duration of ephemeral per-relay queries in seconds",
    ["query"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 8, 10, 30),
)


# ---------------------------------------------------------------------------
# Broadcast Metrics
# ---------------------------------------------------------------------------

BROADCAST_DROPPED = Counter(
    "pomostr_broadcast_dropped",
    "Items dropped because a listener queue was full",
    ["channel"],
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible metrics endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start listening for scrape requests; a no-op when disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        await web.TCPSite(runner, self._config.host, self._config.port).start()
        self._runner = runner

    async def stop(self) -> None:
        """Stop the HTTP server. Idempotent."""
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server; the caller must ``stop()`` it."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
