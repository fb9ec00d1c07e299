"""
Pydantic schemas for account endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from camp_planner.models import UserAccount


class OnboardRequest(BaseModel):
    """Initial kid roster entered during onboarding."""

    kids: list[str] = Field(default_factory=list)


class KidRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class AccountResponse(BaseModel):
    id: str
    email: str
    kids: list[str]
    schedules: list[str]
    version: int

    @classmethod
    def from_account(cls, account: UserAccount) -> AccountResponse:
        return cls(
            id=account.id,
            email=account.email,
            kids=account.kids,
            schedules=account.schedules,
            version=account.version,
        )
