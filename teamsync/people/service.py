"""People service: team refresh and optimistic role updates.

Keeps the local people store of one site in step with the backend:

- refresh_team() replaces the stored team with a fresh remote snapshot,
  touching only rows that actually changed.
- update_person() writes a new role locally before the backend confirms
  it, and reverts the local write if the backend rejects it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from ..config import Config
from .errors import LocalQueryError, LocalStoreError, RemoteError, RemoteFetchError
from .models import Person, Role
from .remote import PeopleRemote
from .store import PeopleStore

logger = logging.getLogger(__name__)


class UpdateState(Enum):
    """Outcome of an optimistic role update."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    SUPERSEDED = "superseded"  # Failed, but a newer update owns the role


@dataclass
class MergeResult:
    """Changes applied to the store by one team merge."""

    inserted: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    unchanged: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.updated or self.removed)


@dataclass
class PendingUpdate:
    """A role update dispatched to the backend."""

    user_id: int
    role: Role
    previous_role: Role
    seq: int
    state: UpdateState = UpdateState.PENDING
    task: asyncio.Task | None = field(default=None, repr=False, compare=False)


class PeopleService:
    """Access to the people of a single site.

    The store and remote client are injected so that several services (or
    tests) never share hidden state.
    """

    def __init__(
        self,
        site_id: int,
        store: PeopleStore,
        remote: PeopleRemote,
        guard_superseded_rollbacks: bool = True,
    ):
        """Initialize the service.

        Args:
            site_id: Site whose team this service manages.
            store: Local people store.
            remote: REST client for the people endpoints.
            guard_superseded_rollbacks: When True, a failed update never
                overwrites the role written by a newer update of the same
                person. When False, every failure restores the role seen
                when that update was dispatched.
        """
        self.site_id = site_id
        self.store = store
        self.remote = remote
        self.guard_superseded_rollbacks = guard_superseded_rollbacks
        self.last_merge: MergeResult | None = None

        self._seq = 0
        self._inflight: dict[int, list[PendingUpdate]] = {}
        self._confirmed: dict[int, tuple[int, Role]] = {}
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: Config) -> "PeopleService":
        """Build a service with its own store and remote client."""
        store = PeopleStore(config.store.db_path)
        store.connect()
        return cls(
            site_id=config.site.id,
            store=store,
            remote=PeopleRemote(config.api),
            guard_superseded_rollbacks=config.sync.guard_superseded_rollbacks,
        )

    async def close(self) -> None:
        """Wait for in-flight updates, then release the store and client."""
        await self.wait_for_pending()
        await self.remote.close()
        self.store.close()

    # ==================== Reads ====================

    def team(self) -> list[Person]:
        """Get the stored team, ordered by display name."""
        try:
            return self.store.find_by_site(self.site_id)
        except LocalQueryError as e:
            logger.error(f"Error fetching all people: {e}")
            return []

    def get_person(self, user_id: int) -> Person | None:
        """Get a stored person of this site."""
        try:
            return self.store.find_one(self.site_id, user_id)
        except LocalQueryError as e:
            logger.error(f"Error fetching person {user_id}: {e}")
            return None

    # ==================== Team refresh ====================

    async def refresh_team(self) -> bool:
        """Refresh the team of the site from the backend.

        Returns:
            True if the team was fetched and merged into the store. On
            failure the store is left as it was.
        """
        try:
            people = await self.remote.get_team(self.site_id)
        except RemoteFetchError as e:
            logger.error(str(e))
            return False

        try:
            self.last_merge = self.merge_team(people)
        except LocalStoreError as e:
            self.store.rollback()
            logger.error(f"Error merging team of site {self.site_id}: {e}")
            return False

        return True

    def merge_team(self, people: list[Person]) -> MergeResult:
        """Apply a remote team snapshot to the store in a single commit.

        People missing from the snapshot are removed, new people are
        created, and stored people are only rewritten when some field
        differs from the remote copy.

        Raises:
            LocalStoreError: If a mutation or the final commit fails. The
                caller is expected to roll back.
        """
        # Later occurrences of a duplicated id win
        remote_people = list({p.user_id: p for p in people}.values())
        local_people = self.team()

        remote_ids = {p.user_id for p in remote_people}
        local_ids = {p.user_id for p in local_people}
        local_set = set(local_people)

        result = MergeResult()

        removed_ids = local_ids - remote_ids
        if removed_ids:
            self.store.delete_many(self.site_id, removed_ids)
            result.removed = sorted(removed_ids)

        for remote_person in remote_people:
            if remote_person in local_set:
                result.unchanged += 1
                continue

            if self.get_person(remote_person.user_id) is not None:
                self.store.update(remote_person)
                result.updated.append(remote_person.user_id)
                logger.debug(f"Updated person {remote_person}")
            else:
                self.store.insert(remote_person)
                result.inserted.append(remote_person.user_id)
                logger.debug(f"Created person {remote_person}")

        self.store.commit()

        logger.info(
            f"Merged team of site {self.site_id}: "
            f"inserted={len(result.inserted)}, updated={len(result.updated)}, "
            f"removed={len(result.removed)}, unchanged={result.unchanged}"
        )
        return result

    # ==================== Role updates ====================

    def update_person(self, person: Person, role: Role) -> Person:
        """Assign a new role to a person, optimistically.

        The new role is stored right away and the backend call runs as a
        background task. If the backend rejects the change the stored role
        is reverted; the caller is not notified.

        Must be called from a running event loop.

        Returns:
            The person with the new role, or `person` unchanged if it is not
            in the store (no remote call is made in that case).
        """
        stored = self.get_person(person.user_id)
        if stored is None:
            return person

        self._seq += 1
        update = PendingUpdate(
            user_id=person.user_id,
            role=role,
            previous_role=stored.role,
            seq=self._seq,
        )

        inflight = self._inflight.setdefault(person.user_id, [])
        if not inflight:
            self._confirmed[person.user_id] = (0, stored.role)
        inflight.append(update)

        # Hit the backend
        update.task = asyncio.create_task(self._push_role(update))
        self._tasks.add(update.task)
        update.task.add_done_callback(self._tasks.discard)

        # Pre-emptively update the role
        try:
            self.store.update_role(self.site_id, person.user_id, role)
            self.store.commit()
        except LocalStoreError as e:
            self.store.rollback()
            logger.error(f"Error storing role of person {person.user_id}: {e}")
            return stored

        return stored.with_role(role)

    def pending_update(self, user_id: int) -> PendingUpdate | None:
        """Get the newest in-flight update of a person, if any."""
        inflight = self._inflight.get(user_id)
        return inflight[-1] if inflight else None

    async def wait_for_pending(self) -> None:
        """Wait until every dispatched role update has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _push_role(self, update: PendingUpdate) -> None:
        try:
            await self.remote.update_person(self.site_id, update.user_id, update.role)
        except RemoteError as e:
            logger.error(
                f"Error while updating person {update.user_id} "
                f"in site {self.site_id}: {e}"
            )
            self._fail(update)
        else:
            self._confirm(update)

    def _confirm(self, update: PendingUpdate) -> None:
        update.state = UpdateState.CONFIRMED
        self._retire(update)

        seq, _ = self._confirmed.get(update.user_id, (0, update.previous_role))
        if update.seq > seq:
            self._confirmed[update.user_id] = (update.seq, update.role)

        if not self._inflight.get(update.user_id):
            self._forget(update.user_id)

    def _fail(self, update: PendingUpdate) -> None:
        self._retire(update)
        inflight = self._inflight.get(update.user_id, [])

        confirmed_seq, confirmed_role = self._confirmed.get(
            update.user_id, (0, update.previous_role)
        )

        if not self.guard_superseded_rollbacks:
            update.state = UpdateState.ROLLED_BACK
            self._revert(update.user_id, update.previous_role)
        elif (inflight and inflight[-1].seq > update.seq) or confirmed_seq > update.seq:
            # A newer update, in flight or confirmed, owns the stored role
            update.state = UpdateState.SUPERSEDED
            logger.info(
                f"Not reverting person {update.user_id}: "
                f"superseded by a newer role update"
            )
        else:
            update.state = UpdateState.ROLLED_BACK
            # Newest of: older updates still in flight, last confirmed role
            target = confirmed_role
            if inflight and inflight[-1].seq > confirmed_seq:
                target = inflight[-1].role
            self._revert(update.user_id, target)

        if not inflight:
            self._forget(update.user_id)

    def _retire(self, update: PendingUpdate) -> None:
        inflight = self._inflight.get(update.user_id, [])
        if update in inflight:
            inflight.remove(update)

    def _forget(self, user_id: int) -> None:
        self._inflight.pop(user_id, None)
        self._confirmed.pop(user_id, None)

    def _revert(self, user_id: int, role: Role) -> None:
        # The person may have been removed by a refresh in the meantime
        if self.get_person(user_id) is None:
            logger.debug(f"Person {user_id} is gone, nothing to revert")
            return

        try:
            self.store.update_role(self.site_id, user_id, role)
            self.store.commit()
        except LocalStoreError as e:
            self.store.rollback()
            logger.error(f"Error reverting role of person {user_id}: {e}")
            return

        logger.info(f"Reverted role of person {user_id} to {role}")
