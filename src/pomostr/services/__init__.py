"""Domain services for the Pomodoro social layer.

Services are the top layer of the diamond DAG, depending on
[pomostr.core][pomostr.core], [pomostr.nips][pomostr.nips],
[pomostr.utils][pomostr.utils], and [pomostr.models][pomostr.models].

Two network styles coexist:

* Fetch-style services (rankings, friend signals, search, batch metadata)
  open dedicated short-lived connections per relay through
  [common.aggregator][pomostr.services.common.aggregator].
* Profile loading and session publishing go through the long-lived
  [NostrClient][pomostr.core.client.NostrClient] pool.

Attributes:
    RankingService: Daily, weekly, and monthly leaderboards from Kind 8808.
    FriendSignalService: Inbound Kind 8809 discovery and friend announcements.
    SearchService: NIP-50 user search and batch Kind 0 lookups.
    MetadataCache: Shared last-write-wins profile cache.
    ProfileService: Single profile load and own-profile publishing.
    SessionPublisher: Kind 8808 session-completion publishing.
    ContactsBook: Persisted local contact list.

See Also:
    [common][pomostr.services.common]: Shared constants, configs, mixins,
        result types, and the query aggregator.
"""

from .contacts import ContactAddResult, ContactsBook
from .friends import FriendSignalService
from .metadata import MetadataCache, ProfileService
from .rankings import RankingService, compute_rankings
from .search import SearchService
from .sessions import SessionPublisher


__all__ = [
    "ContactAddResult",
    "ContactsBook",
    "FriendSignalService",
    "MetadataCache",
    "ProfileService",
    "RankingService",
    "SearchService",
    "SessionPublisher",
    "compute_rankings",
]
