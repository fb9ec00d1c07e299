"""
RosterSyncEngine - reconciles the assignment grid with camps/kids list edits.

AssignmentMap keys are positions in the sorted ``camps`` list, so any edit
that inserts, removes or re-sorts camps moves those positions. Every
structural edit goes through this engine, which:

- normalizes the new list (trim, drop blanks, dedupe, sort)
- computes the old -> new camp permutation by name and re-keys every cell
- drops cells of removed camps
- prunes removed kids from every attendee list, leaving emptied cells as
  explicit ``[]`` ("currently empty") rather than deleting them
- repairs what other tooling may have left behind: cells outside the
  camps x weeks grid are dropped and names missing from ``allKids`` pruned

There is no rename primitive. Renaming a camp or kid is remove + add, which
the engine cannot tell apart from deleting one entry and adding another: the
cells under the old name are dropped (camps) or pruned (kids).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .assignment_map import AssignmentMap
from .models import ScheduleDocument
from .roster import KidRoster, normalize_names

logger = logging.getLogger(__name__)


def _outside_grid(doc: ScheduleDocument, camp_index: int, week_index: int) -> bool:
    if camp_index < len(doc.camps) and week_index < doc.week_count:
        return False
    logger.warning(
        f"Schedule {doc.id}: dropping cell ({camp_index}, {week_index}) "
        f"outside {len(doc.camps)} camps x {doc.week_count} weeks"
    )
    return True


@dataclass(frozen=True)
class SyncResult:
    """Outcome of reconciling one list edit against the grid."""

    items: list[str]
    assignments: AssignmentMap
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    remapped_cells: int = 0
    dropped_cells: int = 0
    pruned_entries: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.remapped_cells or self.dropped_cells or self.pruned_entries)


class RosterSyncEngine:
    """Apply camps/kids list edits to a schedule without desyncing its keys."""

    # ------------------------------------------------------------------
    # Camps
    # ------------------------------------------------------------------

    def sync_camps(self, doc: ScheduleDocument, new_camps: Iterable[str]) -> SyncResult:
        """Replace the camp list, re-keying the grid to the new positions.

        Args:
            doc: Current schedule state
            new_camps: Desired camps in any order

        Returns:
            SyncResult with the sorted camp list and the re-keyed grid
        """
        old_camps = list(doc.camps)
        camps = normalize_names(new_camps)
        new_position = {name: index for index, name in enumerate(camps)}

        known_kids = set(doc.all_kids)

        remapped = 0
        dropped = 0
        pruned = 0
        result = AssignmentMap()
        for (camp_index, week_index), attendees in doc.assignments.cells():
            if _outside_grid(doc, camp_index, week_index):
                dropped += 1
                continue

            target = new_position.get(old_camps[camp_index])
            if target is None:
                dropped += 1
                continue

            if target != camp_index:
                remapped += 1
            kids = [kid for kid in attendees if kid in known_kids]
            pruned += len(attendees) - len(kids)
            result.set(target, week_index, kids)

        previous = set(old_camps)
        added = tuple(name for name in camps if name not in previous)
        removed = tuple(name for name in old_camps if name not in new_position)

        if added or removed or remapped or dropped:
            logger.debug(
                f"Schedule {doc.id}: camps +{list(added)} -{list(removed)}, "
                f"{remapped} cells re-keyed, {dropped} dropped"
            )

        return SyncResult(
            items=camps,
            assignments=result,
            added=added,
            removed=removed,
            remapped_cells=remapped,
            dropped_cells=dropped,
            pruned_entries=pruned,
        )

    def add_camp(self, doc: ScheduleDocument, name: str) -> SyncResult:
        roster = KidRoster(doc.camps)
        roster.add(name)
        return self.sync_camps(doc, roster.names)

    def remove_camp(self, doc: ScheduleDocument, name: str) -> SyncResult:
        roster = KidRoster(doc.camps)
        roster.remove(name)
        return self.sync_camps(doc, roster.names)

    # ------------------------------------------------------------------
    # Kids
    # ------------------------------------------------------------------

    def sync_kids(self, doc: ScheduleDocument, new_kids: Iterable[str]) -> SyncResult:
        """Replace ``allKids``, pruning removed kids from every cell.

        Attendee lists hold names, not positions, so re-sorting ``allKids``
        leaves the grid keys untouched.
        """
        old_kids = list(doc.all_kids)
        kids = normalize_names(new_kids)
        keep = set(kids)
        removed = tuple(name for name in old_kids if name not in keep)

        dropped = 0
        pruned = 0
        result = AssignmentMap()
        for (camp_index, week_index), attendees in doc.assignments.cells():
            if _outside_grid(doc, camp_index, week_index):
                dropped += 1
                continue
            survivors = [kid for kid in attendees if kid in keep]
            pruned += len(attendees) - len(survivors)
            result.set(camp_index, week_index, survivors)

        previous = set(old_kids)
        added = tuple(name for name in kids if name not in previous)

        if added or removed:
            logger.debug(
                f"Schedule {doc.id}: kids +{list(added)} -{list(removed)}, {pruned} attendee entries pruned"
            )

        return SyncResult(
            items=kids,
            assignments=result,
            added=added,
            removed=removed,
            dropped_cells=dropped,
            pruned_entries=pruned,
        )

    def add_kid(self, doc: ScheduleDocument, name: str) -> SyncResult:
        roster = KidRoster(doc.all_kids)
        roster.add(name)
        return self.sync_kids(doc, roster.names)

    def remove_kid(self, doc: ScheduleDocument, name: str) -> SyncResult:
        roster = KidRoster(doc.all_kids)
        roster.remove(name)
        return self.sync_kids(doc, roster.names)
