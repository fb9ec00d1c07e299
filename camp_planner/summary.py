"""
Read-side projections of a schedule: the per-kid summary and the grid.

Both are pure functions of a ScheduleDocument; calling them twice on the same
document yields equal results.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from .colors import color_map
from .models import ScheduleDocument

NO_CAMP_LABEL = "No camp this week!"

# Fixed English names; strftime would follow the process locale
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def week_start(start_date: date, week_index: int) -> date:
    """First day of week ``week_index`` (zero-based)."""
    return start_date + timedelta(days=7 * week_index)


def week_label(start_date: date | None, week_index: int, *, short: bool = False) -> str:
    """Calendar label for a week.

    Returns "Week of June 23" (or "Jun 23" when ``short``), and "Week 3" style
    when the schedule has no start date.
    """
    if start_date is None:
        return f"Week {week_index + 1}"
    day = week_start(start_date, week_index)
    month = MONTH_NAMES[day.month - 1]
    if short:
        return f"{month[:3]} {day.day}"
    return f"Week of {month} {day.day}"


@dataclass(frozen=True)
class WeekSummary:
    """Where one kid is during one week, and with whom."""

    week_index: int
    label: str
    camp: str | None
    co_attendees: tuple[str, ...] = ()

    @property
    def has_camp(self) -> bool:
        return self.camp is not None

    @property
    def display_camp(self) -> str:
        return self.camp if self.camp is not None else NO_CAMP_LABEL


class SummaryProjector:
    """Derives a kid's week-by-week itinerary from the grid."""

    def project(self, doc: ScheduleDocument, kid: str) -> list[WeekSummary]:
        """One entry per week in ``[0, weekCount)``.

        A kid listed in several camps in the same week resolves to the lowest
        camp index; that is not treated as an error.
        """
        assignments = doc.assignments
        weeks: list[WeekSummary] = []
        for week_index in range(doc.week_count):
            label = week_label(doc.start_date, week_index)
            entry = WeekSummary(week_index=week_index, label=label, camp=None)
            for cell in assignments.for_each_in_week(week_index):
                if kid in cell.kids and cell.camp_index < len(doc.camps):
                    entry = WeekSummary(
                        week_index=week_index,
                        label=label,
                        camp=doc.camps[cell.camp_index],
                        co_attendees=tuple(name for name in cell.kids if name != kid),
                    )
                    break
            weeks.append(entry)
        return weeks


# =============================================================================
# Grid view
# =============================================================================


@dataclass(frozen=True)
class GridAttendee:
    name: str
    color: str | None


@dataclass(frozen=True)
class GridCell:
    camp_index: int
    week_index: int
    attendees: tuple[GridAttendee, ...]


@dataclass(frozen=True)
class GridRow:
    camp: str
    cells: tuple[GridCell, ...]


@dataclass(frozen=True)
class GridView:
    week_headers: tuple[str, ...]
    kids: tuple[str, ...]
    rows: tuple[GridRow, ...]


def project_grid(doc: ScheduleDocument) -> GridView:
    """Camps x weeks grid with each attendee's display color."""
    assignments = doc.assignments
    colors = color_map(doc.all_kids)
    headers = tuple(week_label(doc.start_date, w, short=True) for w in range(doc.week_count))
    rows = []
    for camp_index, camp in enumerate(doc.camps):
        cells = tuple(
            GridCell(
                camp_index=camp_index,
                week_index=week_index,
                attendees=tuple(
                    GridAttendee(name=name, color=colors.get(name))
                    for name in assignments.get(camp_index, week_index)
                ),
            )
            for week_index in range(doc.week_count)
        )
        rows.append(GridRow(camp=camp, cells=cells))
    return GridView(week_headers=headers, kids=tuple(doc.all_kids), rows=tuple(rows))
