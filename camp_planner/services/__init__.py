"""Async orchestration over the document store."""

from .account_service import AccountService
from .schedule_service import Dashboard, ScheduleDefaults, ScheduleService

__all__ = ["AccountService", "Dashboard", "ScheduleDefaults", "ScheduleService"]
