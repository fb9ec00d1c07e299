"""
Schedules Router - Endpoints for shared per-kid camp schedules.

This router handles:
- The dashboard list and schedule creation/deletion
- Structural edits of the camps and kids lists
- Cell edits of the (camp, week) grid
- Sharing with collaborators
- Read-only projections (grid, per-kid summary)
- Live event streams for the dashboard and for one schedule
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, Path
from fastapi.responses import StreamingResponse

from camp_planner.models import ScheduleDocument
from camp_planner.services import ScheduleService
from camp_planner.store import LiveStream

from ..auth import CurrentIdentity
from ..dependencies import OpenStreams, get_open_streams, get_schedule_service
from ..schemas import (
    CellUpdateRequest,
    CollaboratorRequest,
    CreateScheduleRequest,
    DashboardResponse,
    GridResponse,
    ListUpdateRequest,
    ScheduleListItem,
    ScheduleResponse,
    SummaryResponse,
    ToggleRequest,
    WeekSummaryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/schedules", tags=["schedules"])

Schedules = Annotated[ScheduleService, Depends(get_schedule_service)]
Streams = Annotated[OpenStreams, Depends(get_open_streams)]
ScheduleId = Annotated[str, Path(min_length=1, max_length=64, description="Schedule identifier")]

KEEPALIVE_SECONDS = 15.0

T = TypeVar("T")


# ========================================
# Dashboard and lifecycle
# ========================================


@router.get("")
async def list_schedules(identity: CurrentIdentity, schedules: Schedules) -> DashboardResponse:
    """Schedules the user can see, sorted by kid, plus kids that still need one."""
    return DashboardResponse.from_dashboard(await schedules.dashboard(identity.uid))


@router.get("/events")
async def stream_dashboard(identity: CurrentIdentity, schedules: Schedules, streams: Streams) -> StreamingResponse:
    """Live dashboard list for the schedules on the account when the stream opens."""
    stream = streams.track(identity.uid, await schedules.watch_schedules(identity.uid))
    logger.debug(f"Opened dashboard event stream ({identity.uid})")
    return _event_response(dashboard_events(stream, on_close=lambda: streams.release(identity.uid, stream)))


@router.post("", status_code=201)
async def create_schedule(
    request: CreateScheduleRequest, identity: CurrentIdentity, schedules: Schedules
) -> ScheduleResponse:
    doc = await schedules.create_schedule(identity.uid, request.kid_name)
    return ScheduleResponse.from_document(doc)


@router.get("/{schedule_id}")
async def get_schedule(schedule_id: ScheduleId, identity: CurrentIdentity, schedules: Schedules) -> ScheduleResponse:
    return ScheduleResponse.from_document(await schedules.get_schedule(identity.uid, schedule_id))


@router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(schedule_id: ScheduleId, identity: CurrentIdentity, schedules: Schedules) -> None:
    await schedules.delete_schedule(identity.uid, schedule_id)


# ========================================
# Structural edits
# ========================================


@router.put("/{schedule_id}/camps")
async def update_camps(
    schedule_id: ScheduleId, request: ListUpdateRequest, identity: CurrentIdentity, schedules: Schedules
) -> ScheduleResponse:
    """Replace the camp list. Existing cells follow their camp to its new position."""
    doc = await schedules.update_camps(identity.uid, schedule_id, request.items, request.expected_version)
    return ScheduleResponse.from_document(doc)


@router.put("/{schedule_id}/kids")
async def update_kids(
    schedule_id: ScheduleId, request: ListUpdateRequest, identity: CurrentIdentity, schedules: Schedules
) -> ScheduleResponse:
    """Replace allKids. Removed kids disappear from every cell."""
    doc = await schedules.update_kids(identity.uid, schedule_id, request.items, request.expected_version)
    return ScheduleResponse.from_document(doc)


@router.put("/{schedule_id}/cells/{camp_index}/{week_index}")
async def update_cell(
    schedule_id: ScheduleId,
    camp_index: Annotated[int, Path(ge=0)],
    week_index: Annotated[int, Path(ge=0)],
    request: CellUpdateRequest,
    identity: CurrentIdentity,
    schedules: Schedules,
) -> ScheduleResponse:
    doc = await schedules.set_cell(
        identity.uid, schedule_id, camp_index, week_index, request.kids, request.expected_version
    )
    return ScheduleResponse.from_document(doc)


@router.post("/{schedule_id}/cells/{camp_index}/{week_index}/toggle")
async def toggle_attendance(
    schedule_id: ScheduleId,
    camp_index: Annotated[int, Path(ge=0)],
    week_index: Annotated[int, Path(ge=0)],
    request: ToggleRequest,
    identity: CurrentIdentity,
    schedules: Schedules,
) -> ScheduleResponse:
    """Check or uncheck one kid in a cell, as the grid's attendance checkbox does."""
    doc = await schedules.toggle_attendance(identity.uid, schedule_id, camp_index, week_index, request.kid)
    return ScheduleResponse.from_document(doc)


# ========================================
# Collaborators
# ========================================


@router.post("/{schedule_id}/collaborators")
async def add_collaborator(
    schedule_id: ScheduleId, request: CollaboratorRequest, identity: CurrentIdentity, schedules: Schedules
) -> ScheduleResponse:
    return ScheduleResponse.from_document(await schedules.add_collaborator(identity.uid, schedule_id, request.uid))


@router.delete("/{schedule_id}/collaborators/{collaborator_uid}")
async def remove_collaborator(
    schedule_id: ScheduleId,
    collaborator_uid: Annotated[str, Path(min_length=1)],
    identity: CurrentIdentity,
    schedules: Schedules,
) -> ScheduleResponse:
    doc = await schedules.remove_collaborator(identity.uid, schedule_id, collaborator_uid)
    return ScheduleResponse.from_document(doc)


# ========================================
# Projections
# ========================================


@router.get("/{schedule_id}/grid")
async def get_grid(schedule_id: ScheduleId, identity: CurrentIdentity, schedules: Schedules) -> GridResponse:
    return GridResponse.from_grid(await schedules.grid(identity.uid, schedule_id))


@router.get("/{schedule_id}/summary/{kid}")
async def get_summary(
    schedule_id: ScheduleId,
    kid: Annotated[str, Path(min_length=1)],
    identity: CurrentIdentity,
    schedules: Schedules,
) -> SummaryResponse:
    """Printable week-by-week itinerary for one kid."""
    weeks = await schedules.summary(identity.uid, schedule_id, kid)
    return SummaryResponse(
        schedule_id=schedule_id,
        kid=kid,
        weeks=[WeekSummaryResponse.from_week(week) for week in weeks],
    )


# ========================================
# Live updates
# ========================================


def format_sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def _relay(
    stream: LiveStream[T],
    render: Callable[[T], tuple[str, bool]],
    on_close: Callable[[], None] | None,
) -> AsyncIterator[str]:
    """Forward a live stream as SSE frames, with keep-alive comments while idle.

    ``render`` turns a value into a frame and says whether it is the last one.
    """
    try:
        while True:
            try:
                value = await asyncio.wait_for(stream.__anext__(), timeout=KEEPALIVE_SECONDS)
            except TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except StopAsyncIteration:
                return

            frame, last = render(value)
            yield frame
            if last:
                return
    finally:
        stream.close()
        if on_close is not None:
            on_close()


def _render_schedule(doc: ScheduleDocument | None) -> tuple[str, bool]:
    if doc is None:
        return format_sse("removed", json.dumps({})), True
    return format_sse("schedule", ScheduleResponse.from_document(doc).model_dump_json(by_alias=True)), False


def _render_dashboard(docs: list[ScheduleDocument]) -> tuple[str, bool]:
    items = [ScheduleListItem(id=doc.id, kid_name=doc.kid_name, owner_id=doc.owner_id) for doc in docs]
    return format_sse("schedules", json.dumps([item.model_dump(by_alias=True) for item in items])), False


def schedule_events(
    stream: LiveStream[ScheduleDocument | None], on_close: Callable[[], None] | None = None
) -> AsyncIterator[str]:
    """Server-Sent Events for one schedule.

    Each committed version is sent as a ``schedule`` event. When the schedule
    is deleted, or the viewer loses access, a single ``removed`` event is sent
    and the stream ends. A stream closed on sign-out just ends.
    """
    return _relay(stream, _render_schedule, on_close)


def dashboard_events(
    stream: LiveStream[list[ScheduleDocument]], on_close: Callable[[], None] | None = None
) -> AsyncIterator[str]:
    """Server-Sent Events for the dashboard: a ``schedules`` event per change."""
    return _relay(stream, _render_dashboard, on_close)


def _event_response(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{schedule_id}/events")
async def stream_schedule(
    schedule_id: ScheduleId, identity: CurrentIdentity, schedules: Schedules, streams: Streams
) -> StreamingResponse:
    stream = streams.track(identity.uid, await schedules.watch_schedule(identity.uid, schedule_id))
    logger.debug(f"Opened event stream for schedule {schedule_id} ({identity.uid})")
    return _event_response(schedule_events(stream, on_close=lambda: streams.release(identity.uid, stream)))
