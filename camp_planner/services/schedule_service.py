"""
Schedule Service - creation, structural edits and cell edits of schedules.

Every write here is a check-and-set against the version that was read, so
two editors changing different cells of the same grid can no longer silently
drop each other's change: the second writer gets a VersionConflictError and
must reload. Structural edits (camps/kids lists) always go through
RosterSyncEngine so positional cell keys follow their camps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..errors import (
    AccessDeniedError,
    DocumentExistsError,
    DuplicateScheduleError,
    IntegrityViolationError,
    InvalidCellError,
    KidNotInRosterError,
    PlannerError,
    ScheduleCreationError,
    ScheduleIdCollisionError,
    ScheduleNotFoundError,
    StoreError,
    UnknownKidError,
    VersionConflictError,
)
from ..identifiers import generate_schedule_id, is_schedule_id
from ..models import SCHEDULES_COLLECTION, ScheduleDocument, UserAccount
from ..roster import name_sort_key, unscheduled
from ..roster_sync import RosterSyncEngine, SyncResult
from ..store import DocumentStore, LiveStream, StoredDocument
from ..summary import GridView, SummaryProjector, WeekSummary, project_grid
from .account_service import AccountService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduleDefaults:
    """Values a new schedule starts with."""

    start_date: date | None = date(2025, 6, 23)
    week_count: int = 8


@dataclass(frozen=True)
class Dashboard:
    """What the signed-in user sees first: their schedules and kids still without one."""

    account: UserAccount
    schedules: list[ScheduleDocument] = field(default_factory=list)
    unscheduled_kids: list[str] = field(default_factory=list)


def _schedule_or_none(stored: StoredDocument | None) -> ScheduleDocument | None:
    return ScheduleDocument.from_stored(stored) if stored is not None else None


def _sorted_schedules(stored: Iterable[StoredDocument]) -> list[ScheduleDocument]:
    schedules = [ScheduleDocument.from_stored(doc) for doc in stored]
    return sorted(schedules, key=lambda doc: (name_sort_key(doc.kid_name), doc.id))


class ScheduleService:
    """Orchestrates schedule reads and writes against the document store."""

    def __init__(
        self,
        store: DocumentStore,
        accounts: AccountService,
        defaults: ScheduleDefaults | None = None,
        id_attempts: int = 5,
        id_factory: Callable[[], str] = generate_schedule_id,
    ):
        self.store = store
        self.accounts = accounts
        self.defaults = defaults or ScheduleDefaults()
        self.id_attempts = id_attempts
        self.id_factory = id_factory
        self.sync_engine = RosterSyncEngine()
        self.projector = SummaryProjector()

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_schedules(self, uid: str) -> list[ScheduleDocument]:
        """Schedules listed on the account, sorted by kid name.

        Ids whose document no longer exists are skipped.
        """
        account = await self.accounts.require_account(uid)
        return _sorted_schedules(await self.store.get_many(SCHEDULES_COLLECTION, account.schedules))

    async def dashboard(self, uid: str) -> Dashboard:
        account = await self.accounts.require_account(uid)
        schedules = _sorted_schedules(await self.store.get_many(SCHEDULES_COLLECTION, account.schedules))
        return Dashboard(
            account=account,
            schedules=schedules,
            unscheduled_kids=unscheduled(account.kids, (doc.kid_name for doc in schedules)),
        )

    async def watch_schedules(self, uid: str) -> LiveStream[list[ScheduleDocument]]:
        """Live dashboard list for the schedule ids on the account right now."""
        account = await self.accounts.require_account(uid)
        subscription = await self.store.query_by_ids(SCHEDULES_COLLECTION, account.schedules)
        return subscription.map(_sorted_schedules)

    async def get_schedule(self, uid: str, schedule_id: str) -> ScheduleDocument:
        """Load a schedule the user may see.

        Raises:
            ScheduleNotFoundError: If the document does not exist
            AccessDeniedError: If the user is not a member and does not list it
        """
        if not is_schedule_id(schedule_id):
            raise ScheduleNotFoundError(schedule_id)
        doc = _schedule_or_none(await self.store.get(SCHEDULES_COLLECTION, schedule_id))
        if doc is None:
            raise ScheduleNotFoundError(schedule_id)
        if doc.is_member(uid):
            return doc
        account = await self.accounts.get_account(uid)
        if account is None or schedule_id not in account.schedules:
            logger.warning(f"User {uid} denied access to schedule {schedule_id}")
            raise AccessDeniedError(f"No access to schedule {schedule_id}")
        return doc

    async def watch_schedule(self, uid: str, schedule_id: str) -> LiveStream[ScheduleDocument | None]:
        """Live schedule state.

        None is delivered once the schedule is deleted, or once a member watching
        it is dropped from its owner and collaborators.
        """
        doc = await self.get_schedule(uid, schedule_id)
        subscription = await self.store.subscribe(SCHEDULES_COLLECTION, schedule_id)
        if not doc.is_member(uid):
            # Listed on the account only; membership never applied
            return subscription.map(_schedule_or_none)

        def visible(stored: StoredDocument | None) -> ScheduleDocument | None:
            current = _schedule_or_none(stored)
            if current is not None and not current.is_member(uid):
                logger.info(f"User {uid} lost access to watched schedule {schedule_id}")
                return None
            return current

        return subscription.map(visible)

    async def summary(self, uid: str, schedule_id: str, kid: str) -> list[WeekSummary]:
        doc = await self.get_schedule(uid, schedule_id)
        if kid not in doc.all_kids:
            raise UnknownKidError(f"{kid!r} is not on schedule {schedule_id}")
        return self.projector.project(doc, kid)

    async def grid(self, uid: str, schedule_id: str) -> GridView:
        return project_grid(await self.get_schedule(uid, schedule_id))

    # =========================================================================
    # Creation and deletion
    # =========================================================================

    async def create_schedule(self, uid: str, kid_name: str) -> ScheduleDocument:
        """Create a schedule for one of the account's kids.

        The schedule document is written first, then its id is appended to the
        owner's account. If the second write fails the schedule is deleted
        again so it cannot be left unreachable.

        Raises:
            KidNotInRosterError: If the kid is not on the account
            DuplicateScheduleError: If the kid already has a visible schedule
            ScheduleIdCollisionError: If no free id was found
            ScheduleCreationError: If linking the schedule to the account failed
        """
        account = await self.accounts.require_account(uid)
        if kid_name not in account.kids:
            raise KidNotInRosterError(f"{kid_name!r} is not one of user {uid}'s kids")

        existing = await self.store.get_many(SCHEDULES_COLLECTION, account.schedules)
        if any(ScheduleDocument.from_stored(doc).kid_name == kid_name for doc in existing):
            raise DuplicateScheduleError(f"{kid_name!r} already has a schedule")

        data = {
            "kidName": kid_name,
            "ownerId": uid,
            "collaborators": [],
            "camps": [],
            "allKids": [kid_name],
            "schedule": {},
            "startDate": self.defaults.start_date.isoformat() if self.defaults.start_date else None,
            "weekCount": self.defaults.week_count,
        }
        stored = await self._create_with_fresh_id(data)

        try:
            await self.accounts.link_schedule(uid, stored.id)
        except PlannerError as e:
            logger.error(f"Linking schedule {stored.id} to user {uid} failed, rolling back: {e}")
            try:
                await self.store.delete(SCHEDULES_COLLECTION, stored.id)
            except StoreError as rollback_error:
                logger.error(f"Rollback of schedule {stored.id} failed: {rollback_error}")
            raise ScheduleCreationError(f"Could not create schedule for {kid_name!r}") from e

        logger.info(f"User {uid} created schedule {stored.id} for {kid_name}")
        return ScheduleDocument.from_stored(stored)

    async def _create_with_fresh_id(self, data: dict[str, Any]) -> StoredDocument:
        for attempt in range(1, self.id_attempts + 1):
            schedule_id = self.id_factory()
            try:
                return await self.store.create(SCHEDULES_COLLECTION, schedule_id, data)
            except DocumentExistsError:
                logger.warning(f"Schedule id {schedule_id} taken (attempt {attempt}/{self.id_attempts})")
        raise ScheduleIdCollisionError(f"No free schedule id after {self.id_attempts} attempts")

    async def delete_schedule(self, uid: str, schedule_id: str) -> None:
        """Delete a schedule (owner only) and unlink it from member accounts.

        Stale ids left on an account are skipped by every read, so unlink
        failures are logged rather than raised.
        """
        doc = await self._require_owner(uid, schedule_id)
        await self.store.delete(SCHEDULES_COLLECTION, schedule_id)
        for member in sorted(doc.members()):
            try:
                await self.accounts.unlink_schedule(member, schedule_id)
            except PlannerError as e:
                logger.warning(f"Could not unlink deleted schedule {schedule_id} from user {member}: {e}")
        logger.info(f"User {uid} deleted schedule {schedule_id}")

    # =========================================================================
    # Structural edits
    # =========================================================================

    async def update_camps(
        self, uid: str, schedule_id: str, camps: Iterable[str], expected_version: int | None = None
    ) -> ScheduleDocument:
        """Replace the camp list, re-keying the grid by camp name."""
        doc = await self.get_schedule(uid, schedule_id)
        result = self.sync_engine.sync_camps(doc, camps)
        return await self._apply_sync(doc, "camps", result, expected_version)

    async def update_kids(
        self, uid: str, schedule_id: str, kids: Iterable[str], expected_version: int | None = None
    ) -> ScheduleDocument:
        """Replace allKids, pruning removed kids from every cell."""
        doc = await self.get_schedule(uid, schedule_id)
        result = self.sync_engine.sync_kids(doc, kids)
        return await self._apply_sync(doc, "allKids", result, expected_version)

    async def add_camp(self, uid: str, schedule_id: str, name: str) -> ScheduleDocument:
        doc = await self.get_schedule(uid, schedule_id)
        return await self._apply_sync(doc, "camps", self.sync_engine.add_camp(doc, name), None)

    async def remove_camp(self, uid: str, schedule_id: str, name: str) -> ScheduleDocument:
        doc = await self.get_schedule(uid, schedule_id)
        return await self._apply_sync(doc, "camps", self.sync_engine.remove_camp(doc, name), None)

    async def add_kid(self, uid: str, schedule_id: str, name: str) -> ScheduleDocument:
        doc = await self.get_schedule(uid, schedule_id)
        return await self._apply_sync(doc, "allKids", self.sync_engine.add_kid(doc, name), None)

    async def remove_kid(self, uid: str, schedule_id: str, name: str) -> ScheduleDocument:
        doc = await self.get_schedule(uid, schedule_id)
        return await self._apply_sync(doc, "allKids", self.sync_engine.remove_kid(doc, name), None)

    async def _apply_sync(
        self, doc: ScheduleDocument, list_field: str, result: SyncResult, expected_version: int | None
    ) -> ScheduleDocument:
        current = doc.camps if list_field == "camps" else doc.all_kids
        if not result.changed and result.items == current:
            return doc
        return await self._write(
            doc,
            {list_field: result.items, "schedule": result.assignments.to_dict()},
            expected_version,
        )

    # =========================================================================
    # Cell edits
    # =========================================================================

    async def set_cell(
        self,
        uid: str,
        schedule_id: str,
        camp_index: int,
        week_index: int,
        kids: Sequence[str],
        expected_version: int | None = None,
    ) -> ScheduleDocument:
        """Replace the attendees of one (camp, week) cell.

        The full grid is read, one key changed and the whole ``schedule``
        field written back, conditional on the version that was read.

        Raises:
            InvalidCellError: If the coordinate is outside the grid
            UnknownKidError: If an attendee is not in allKids
            VersionConflictError: If the schedule changed since it was read
        """
        doc = await self.get_schedule(uid, schedule_id)
        if not (0 <= camp_index < len(doc.camps)) or not (0 <= week_index < doc.week_count):
            raise InvalidCellError(
                f"Cell ({camp_index}, {week_index}) is outside {len(doc.camps)} camps x {doc.week_count} weeks"
            )
        unknown = [kid for kid in kids if kid not in doc.all_kids]
        if unknown:
            raise UnknownKidError(f"Not on schedule {schedule_id}: {unknown}")

        assignments = doc.assignments
        assignments.set(camp_index, week_index, kids)
        logger.debug(f"Schedule {schedule_id}: cell ({camp_index}, {week_index}) -> {list(kids)}")
        return await self._write(doc, {"schedule": assignments.to_dict()}, expected_version)

    async def toggle_attendance(
        self, uid: str, schedule_id: str, camp_index: int, week_index: int, kid: str
    ) -> ScheduleDocument:
        """Add ``kid`` to a cell, or remove it if already there."""
        doc = await self.get_schedule(uid, schedule_id)
        current = doc.assignments.get(camp_index, week_index)
        kids = [name for name in current if name != kid] if kid in current else [*current, kid]
        return await self.set_cell(uid, schedule_id, camp_index, week_index, kids, expected_version=doc.version)

    # =========================================================================
    # Collaborators
    # =========================================================================

    async def add_collaborator(self, uid: str, schedule_id: str, collaborator_uid: str) -> ScheduleDocument:
        """Share a schedule (owner only). The collaborator's account, if any, lists it too."""
        doc = await self._require_owner(uid, schedule_id)
        if collaborator_uid == doc.owner_id or collaborator_uid in doc.collaborators:
            return doc
        updated = await self._write(doc, {"collaborators": sorted({*doc.collaborators, collaborator_uid})}, None)
        await self.accounts.link_schedule(collaborator_uid, schedule_id)
        logger.info(f"Schedule {schedule_id} shared with {collaborator_uid}")
        return updated

    async def remove_collaborator(self, uid: str, schedule_id: str, collaborator_uid: str) -> ScheduleDocument:
        doc = await self._require_owner(uid, schedule_id)
        if collaborator_uid not in doc.collaborators:
            return doc
        remaining = [member for member in doc.collaborators if member != collaborator_uid]
        updated = await self._write(doc, {"collaborators": remaining}, None)
        await self.accounts.unlink_schedule(collaborator_uid, schedule_id)
        logger.info(f"Schedule {schedule_id} no longer shared with {collaborator_uid}")
        return updated

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _require_owner(self, uid: str, schedule_id: str) -> ScheduleDocument:
        doc = await self.get_schedule(uid, schedule_id)
        if doc.owner_id != uid:
            raise AccessDeniedError(f"Only the owner can do this on schedule {schedule_id}")
        return doc

    async def _write(
        self, doc: ScheduleDocument, fields: dict[str, Any], expected_version: int | None
    ) -> ScheduleDocument:
        """Check-and-set ``fields`` (persisted names) onto ``doc``.

        Args:
            doc: The state the change was computed from
            fields: Top-level fields to overwrite
            expected_version: Version the client last saw; defaults to ``doc.version``

        Raises:
            VersionConflictError: If the client's version is stale or the document changed
            IntegrityViolationError: If the change adds a structural problem the
                document did not already have
        """
        if expected_version is not None and expected_version != doc.version:
            raise VersionConflictError(SCHEDULES_COLLECTION, doc.id, expected_version, doc.version)

        candidate = ScheduleDocument.model_validate({**doc.to_store(), **fields, "id": doc.id, "version": doc.version})
        existing = doc.integrity_problems()
        introduced = [problem for problem in candidate.integrity_problems() if problem not in existing]
        if introduced:
            logger.error(f"Refusing to write schedule {doc.id}: {introduced}")
            raise IntegrityViolationError(introduced)
        if existing:
            # Left by other tooling; the next camps or kids edit repairs them
            logger.warning(f"Schedule {doc.id} already has integrity problems: {existing}")

        try:
            stored = await self.store.patch(SCHEDULES_COLLECTION, doc.id, fields, expected_version=doc.version)
        except VersionConflictError:
            logger.info(f"Schedule {doc.id} changed concurrently (read v{doc.version})")
            raise
        except StoreError as e:
            logger.error(f"Failed to write schedule {doc.id}: {e}")
            raise
        return ScheduleDocument.from_stored(stored)
