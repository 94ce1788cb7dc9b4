"""People management for a single site.

Provides:
- Person/Role value types
- A SQLite cache of each site's team
- A REST client for the site users endpoints
- PeopleService: team refresh and optimistic role updates
"""

from .errors import (
    LocalQueryError,
    LocalStoreError,
    RemoteError,
    RemoteFetchError,
    RemoteUpdateError,
    TeamSyncError,
)
from .models import Person, Role
from .remote import PeopleRemote
from .service import MergeResult, PeopleService, PendingUpdate, UpdateState
from .store import PeopleStore

__all__ = [
    "LocalQueryError",
    "LocalStoreError",
    "MergeResult",
    "PendingUpdate",
    "PeopleRemote",
    "PeopleService",
    "PeopleStore",
    "Person",
    "RemoteError",
    "RemoteFetchError",
    "RemoteUpdateError",
    "Role",
    "TeamSyncError",
    "UpdateState",
]
