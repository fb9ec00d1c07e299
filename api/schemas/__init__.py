"""
Pydantic schemas for the Camp Planner API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .accounts import AccountResponse, KidRequest, OnboardRequest
from .auth import CredentialsRequest, OAuth2Request, SessionResponse
from .schedules import (
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

__all__ = [
    "AccountResponse",
    "CellUpdateRequest",
    "CollaboratorRequest",
    "CreateScheduleRequest",
    "CredentialsRequest",
    "DashboardResponse",
    "GridResponse",
    "KidRequest",
    "ListUpdateRequest",
    "OAuth2Request",
    "OnboardRequest",
    "ScheduleListItem",
    "ScheduleResponse",
    "SessionResponse",
    "SummaryResponse",
    "ToggleRequest",
    "WeekSummaryResponse",
]
