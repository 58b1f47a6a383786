"""Shared infrastructure for all pomostr services.

Attributes:
    aggregator: The ephemeral per-relay query pattern
        ([query_relay()][pomostr.services.common.aggregator.query_relay],
        [fan_out()][pomostr.services.common.aggregator.fan_out],
        [first_non_empty()][pomostr.services.common.aggregator.first_non_empty],
        [publish_to_relays()][pomostr.services.common.aggregator.publish_to_relays]).
    configs: [RelaySetsConfig][pomostr.services.common.configs.RelaySetsConfig]
        with one relay list per query type.
    constants: Fixed per-query timeouts, limits, and subscription id prefixes.
    mixins: [SignedPublisherMixin][pomostr.services.common.mixins.SignedPublisherMixin]
        for sign-then-publish with external signer round trips.
    types: Query and publish results
        ([QueryOutcome][pomostr.services.common.types.QueryOutcome],
        [PublishReport][pomostr.services.common.types.PublishReport],
        [PublishOutcome][pomostr.services.common.types.PublishOutcome]).
"""

from .aggregator import fan_out, first_non_empty, publish_to_relays, query_relay
from .configs import RelaySetsConfig
from .constants import (
    FRIEND_SIGNAL_LIMIT,
    FRIEND_SIGNAL_TIMEOUT,
    METADATA_TIMEOUT,
    PROFILE_CONNECT_TIMEOUT,
    PROFILE_EVENT_TIMEOUT,
    PUBLISH_TIMEOUT,
    RANKING_LIMIT,
    RANKING_TIMEOUT,
    SEARCH_LIMIT,
    SEARCH_MIN_QUERY_LENGTH,
    SEARCH_TIMEOUT,
    QueryPrefix,
)
from .mixins import SignedPublisherMixin
from .types import (
    AwaitingSignature,
    PublishFailed,
    Published,
    PublishOutcome,
    PublishReport,
    QueryOutcome,
    RelayAck,
)


__all__ = [
    "FRIEND_SIGNAL_LIMIT",
    "FRIEND_SIGNAL_TIMEOUT",
    "METADATA_TIMEOUT",
    "PROFILE_CONNECT_TIMEOUT",
    "PROFILE_EVENT_TIMEOUT",
    "PUBLISH_TIMEOUT",
    "RANKING_LIMIT",
    "RANKING_TIMEOUT",
    "SEARCH_LIMIT",
    "SEARCH_MIN_QUERY_LENGTH",
    "SEARCH_TIMEOUT",
    "AwaitingSignature",
    "PublishFailed",
    "PublishOutcome",
    "PublishReport",
    "Published",
    "QueryOutcome",
    "QueryPrefix",
    "RelayAck",
    "RelaySetsConfig",
    "SignedPublisherMixin",
    "fan_out",
    "first_non_empty",
    "publish_to_relays",
    "query_relay",
]
