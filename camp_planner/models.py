"""Persisted document models.

Field aliases are the persisted contract (``kidName``, ``ownerId``, ...); other
tooling reads these documents directly, so they must not be renamed.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .assignment_map import AssignmentMap, parse_cell_key
from .errors import InvalidCellError
from .roster import KidRoster, sort_names
from .store.interfaces import StoredDocument

USERS_COLLECTION = "users"
SCHEDULES_COLLECTION = "schedules"


class UserAccount(BaseModel):
    """A signed-in principal's kids and the schedules it can see."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str = ""
    kids: list[str] = Field(default_factory=list)
    schedules: list[str] = Field(default_factory=list)
    version: int = 0

    @field_validator("kids", "schedules", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @classmethod
    def from_stored(cls, stored: StoredDocument) -> UserAccount:
        return cls.model_validate({**stored.data, "id": stored.id, "version": stored.version})

    def roster(self) -> KidRoster:
        return KidRoster(self.kids)

    def to_store(self) -> dict[str, Any]:
        """Fields written to the ``users`` collection."""
        return self.model_dump(mode="json", exclude={"id", "version"})


class ScheduleDocument(BaseModel):
    """One kid's camp plan shared between an owner and collaborators."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    kid_name: str = Field(alias="kidName")
    owner_id: str = Field(alias="ownerId")
    collaborators: list[str] = Field(default_factory=list)
    camps: list[str] = Field(default_factory=list)
    all_kids: list[str] = Field(default_factory=list, alias="allKids")
    schedule: dict[str, list[str]] = Field(default_factory=dict)
    start_date: date | None = Field(default=None, alias="startDate")
    week_count: int = Field(default=8, ge=1, alias="weekCount")
    version: int = 0

    @field_validator("collaborators", "camps", "all_kids", mode="before")
    @classmethod
    def none_as_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("schedule", mode="before")
    @classmethod
    def none_as_empty_map(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {key: list(kids or []) for key, kids in v.items()}
        return v

    @classmethod
    def from_stored(cls, stored: StoredDocument) -> ScheduleDocument:
        return cls.model_validate({**stored.data, "id": stored.id, "version": stored.version})

    def to_store(self) -> dict[str, Any]:
        """Fields written to the ``schedules`` collection, by their persisted names."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id", "version"})

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def assignments(self) -> AssignmentMap:
        """Fresh AssignmentMap over the ``schedule`` field."""
        return AssignmentMap.from_mapping(self.schedule)

    def members(self) -> set[str]:
        return {self.owner_id, *self.collaborators}

    def is_member(self, uid: str) -> bool:
        return uid == self.owner_id or uid in self.collaborators

    def integrity_problems(self) -> list[str]:
        """Every structural invariant this document currently breaks."""
        problems: list[str] = []

        for field_name, values in (("camps", self.camps), ("allKids", self.all_kids)):
            duplicates = sorted(name for name, count in Counter(values).items() if count > 1)
            if duplicates:
                problems.append(f"{field_name} has duplicates: {duplicates}")
            if sort_names(values) != values:
                problems.append(f"{field_name} is not sorted")

        known_kids = set(self.all_kids)
        for key, kids in self.schedule.items():
            try:
                camp_index, week_index = parse_cell_key(key)
            except InvalidCellError:
                problems.append(f"malformed cell key {key!r}")
                continue
            if camp_index >= len(self.camps):
                problems.append(f"cell {key} references camp {camp_index} of {len(self.camps)}")
            if week_index >= self.week_count:
                problems.append(f"cell {key} references week {week_index} of {self.week_count}")
            dangling = sorted(set(kids) - known_kids)
            if dangling:
                problems.append(f"cell {key} lists unknown kids {dangling}")
            if len(set(kids)) != len(kids):
                problems.append(f"cell {key} lists a kid twice")

        return problems
