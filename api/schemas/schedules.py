"""
Pydantic schemas for schedule endpoints.

Response bodies use the persisted field names (``kidName``, ``allKids``...)
so the UI reads the same shape from the REST API and the event stream.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from camp_planner.models import ScheduleDocument
from camp_planner.services import Dashboard
from camp_planner.summary import GridView, WeekSummary


class CreateScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kid_name: str = Field(..., min_length=1, alias="kidName")


class ListUpdateRequest(BaseModel):
    """Full replacement of the camps or allKids list."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[str] = Field(default_factory=list)
    expected_version: int | None = Field(default=None, alias="expectedVersion")


class CellUpdateRequest(BaseModel):
    """New attendee list for one (camp, week) cell."""

    model_config = ConfigDict(populate_by_name=True)

    kids: list[str] = Field(default_factory=list)
    expected_version: int | None = Field(default=None, alias="expectedVersion")


class ToggleRequest(BaseModel):
    """Kid to add to, or remove from, one cell."""

    kid: str = Field(..., min_length=1)


class CollaboratorRequest(BaseModel):
    uid: str = Field(..., min_length=1)


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kid_name: str = Field(alias="kidName")
    owner_id: str = Field(alias="ownerId")
    collaborators: list[str]
    camps: list[str]
    all_kids: list[str] = Field(alias="allKids")
    schedule: dict[str, list[str]]
    start_date: date | None = Field(alias="startDate")
    week_count: int = Field(alias="weekCount")
    version: int

    @classmethod
    def from_document(cls, doc: ScheduleDocument) -> ScheduleResponse:
        return cls(
            id=doc.id,
            kid_name=doc.kid_name,
            owner_id=doc.owner_id,
            collaborators=doc.collaborators,
            camps=doc.camps,
            all_kids=doc.all_kids,
            schedule=doc.schedule,
            start_date=doc.start_date,
            week_count=doc.week_count,
            version=doc.version,
        )


class ScheduleListItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kid_name: str = Field(alias="kidName")
    owner_id: str = Field(alias="ownerId")


class DashboardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedules: list[ScheduleListItem]
    unscheduled_kids: list[str] = Field(alias="unscheduledKids")

    @classmethod
    def from_dashboard(cls, dashboard: Dashboard) -> DashboardResponse:
        return cls(
            schedules=[
                ScheduleListItem(id=doc.id, kid_name=doc.kid_name, owner_id=doc.owner_id)
                for doc in dashboard.schedules
            ],
            unscheduled_kids=dashboard.unscheduled_kids,
        )


class WeekSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week_index: int = Field(alias="weekIndex")
    label: str
    camp: str | None
    display_camp: str = Field(alias="displayCamp")
    co_attendees: list[str] = Field(alias="coAttendees")

    @classmethod
    def from_week(cls, week: WeekSummary) -> WeekSummaryResponse:
        return cls(
            week_index=week.week_index,
            label=week.label,
            camp=week.camp,
            display_camp=week.display_camp,
            co_attendees=list(week.co_attendees),
        )


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedule_id: str = Field(alias="scheduleId")
    kid: str
    weeks: list[WeekSummaryResponse]


class GridAttendeeResponse(BaseModel):
    name: str
    color: str | None


class GridRowResponse(BaseModel):
    camp: str
    cells: list[list[GridAttendeeResponse]]


class GridResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week_headers: list[str] = Field(alias="weekHeaders")
    kids: list[str]
    rows: list[GridRowResponse]

    @classmethod
    def from_grid(cls, grid: GridView) -> GridResponse:
        return cls(
            week_headers=list(grid.week_headers),
            kids=list(grid.kids),
            rows=[
                GridRowResponse(
                    camp=row.camp,
                    cells=[
                        [GridAttendeeResponse(name=a.name, color=a.color) for a in cell.attendees]
                        for cell in row.cells
                    ],
                )
                for row in grid.rows
            ],
        )
