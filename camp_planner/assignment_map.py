"""AssignmentMap - the sparse (camp, week) -> attendees structure.

Keys are positional: ``campIndex`` points into the schedule's sorted ``camps``
list and ``weekIndex`` counts weeks from ``startDate``. On the wire a key is
the string ``"<campIndex>-<weekIndex>"``.

A missing key and an empty list both mean "nobody is attending"; readers never
distinguish the two. Structural edits that move camp positions must go
through :mod:`camp_planner.roster_sync`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

from .errors import InvalidCellError

CellKey = tuple[int, int]


def cell_key(camp_index: int, week_index: int) -> str:
    """Wire form of a cell coordinate."""
    return f"{camp_index}-{week_index}"


def parse_cell_key(key: str) -> CellKey:
    """Parse ``"<campIndex>-<weekIndex>"`` into a coordinate.

    Raises:
        InvalidCellError: If the key is malformed or negative
    """
    camp_part, sep, week_part = key.partition("-")
    if not sep or not camp_part.isdigit() or not week_part.isdigit():
        raise InvalidCellError(f"Malformed cell key: {key!r}")
    return int(camp_part), int(week_part)


def _unique(kids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for kid in kids:
        if kid not in seen:
            seen.add(kid)
            result.append(kid)
    return result


@dataclass(frozen=True)
class WeekAssignment:
    """One non-empty cell within a week."""

    camp_index: int
    kids: tuple[str, ...]


class AssignmentMap:
    """Mapping of cell coordinates to ordered attendee lists.

    ``set`` enforces set semantics: a name appears at most once per cell
    (first occurrence wins), otherwise the submitted order is kept.
    """

    __slots__ = ("_cells",)

    def __init__(self, cells: Mapping[CellKey, Sequence[str]] | None = None):
        self._cells: dict[CellKey, list[str]] = {}
        for (camp_index, week_index), kids in (cells or {}).items():
            self.set(camp_index, week_index, kids)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Sequence[str]] | None) -> AssignmentMap:
        """Build from the persisted ``schedule`` field."""
        amap = cls()
        for key, kids in (raw or {}).items():
            camp_index, week_index = parse_cell_key(key)
            amap.set(camp_index, week_index, list(kids or []))
        return amap

    def to_dict(self) -> dict[str, list[str]]:
        """Persisted form, keys ordered by (camp, week) for stable output."""
        return {cell_key(c, w): list(kids) for (c, w), kids in sorted(self._cells.items())}

    def copy(self) -> AssignmentMap:
        clone = AssignmentMap()
        clone._cells = {key: list(kids) for key, kids in self._cells.items()}
        return clone

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def get(self, camp_index: int, week_index: int) -> list[str]:
        """Attendees of one cell; empty when unset."""
        return list(self._cells.get((camp_index, week_index), ()))

    def set(self, camp_index: int, week_index: int, kids: Iterable[str]) -> None:
        """Replace the whole attendee list of one cell."""
        if camp_index < 0 or week_index < 0:
            raise InvalidCellError(f"Cell indices must be non-negative, got ({camp_index}, {week_index})")
        self._cells[(camp_index, week_index)] = _unique(kids)

    def for_each_in_week(self, week_index: int) -> Iterator[WeekAssignment]:
        """Non-empty cells of one week in ascending camp order."""
        for camp_index, week in sorted(self._cells):
            if week != week_index:
                continue
            kids = self._cells[(camp_index, week)]
            if kids:
                yield WeekAssignment(camp_index=camp_index, kids=tuple(kids))

    def cells(self) -> Iterator[tuple[CellKey, list[str]]]:
        """All stored cells (including explicit empties) in key order."""
        for key in sorted(self._cells):
            yield key, list(self._cells[key])

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssignmentMap):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"AssignmentMap({self.to_dict()!r})"
