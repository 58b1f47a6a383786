"""Shared constants for pomostr services.

Timeouts are fixed per query type rather than per call; services accept an
override only at construction time.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final


# Seconds each per-relay worker may spend before its partial result is kept
PUBLISH_TIMEOUT: Final[float] = 5.0
SEARCH_TIMEOUT: Final[float] = 5.0
FRIEND_SIGNAL_TIMEOUT: Final[float] = 8.0
RANKING_TIMEOUT: Final[float] = 8.0
METADATA_TIMEOUT: Final[float] = 8.0

# Profile loading over the persistent client
PROFILE_CONNECT_TIMEOUT: Final[float] = 8.0
PROFILE_EVENT_TIMEOUT: Final[float] = 5.0

RANKING_LIMIT: Final[int] = 500
FRIEND_SIGNAL_LIMIT: Final[int] = 200
SEARCH_LIMIT: Final[int] = 30

SEARCH_MIN_QUERY_LENGTH: Final[int] = 2


class QueryPrefix(StrEnum):
    """Subscription id prefixes; the full id is ``<prefix>_<ms timestamp>``."""

    RANKING = "ranking"
    FRIEND = "friend"
    SEARCH = "search"
    METADATA_BATCH = "metadata_batch"
    PROFILE = "profile"
