"""Exceptions raised at the remote and local store boundaries."""


class TeamSyncError(Exception):
    """Base class for teamsync errors."""


class RemoteError(TeamSyncError):
    """A call to the people REST backend failed."""


class RemoteFetchError(RemoteError):
    """Fetching the team of a site failed."""


class RemoteUpdateError(RemoteError):
    """Pushing a role change to the backend failed."""


class LocalStoreError(TeamSyncError):
    """A write or commit against the local people store failed."""


class LocalQueryError(LocalStoreError):
    """A read query against the local people store failed."""
