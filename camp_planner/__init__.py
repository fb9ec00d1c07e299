"""Camp planner: shared per-kid camp schedules."""

from .assignment_map import AssignmentMap, WeekAssignment, cell_key, parse_cell_key
from .colors import PALETTE, kid_color
from .models import ScheduleDocument, UserAccount
from .roster import KidRoster, name_sort_key, unscheduled
from .roster_sync import RosterSyncEngine, SyncResult
from .summary import SummaryProjector, WeekSummary, project_grid, week_label

__all__ = [
    "PALETTE",
    "AssignmentMap",
    "KidRoster",
    "RosterSyncEngine",
    "ScheduleDocument",
    "SummaryProjector",
    "SyncResult",
    "UserAccount",
    "WeekAssignment",
    "WeekSummary",
    "cell_key",
    "kid_color",
    "name_sort_key",
    "parse_cell_key",
    "project_grid",
    "unscheduled",
    "week_label",
]
