"""Kid roster: an ordered, duplicate-free list of names.

The same add/remove rules back three lists in the planner: an account's own
kids, and a schedule's ``camps`` and ``allKids``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator


def name_sort_key(name: str) -> tuple[str, str]:
    """Sort key shared by every sorted name list.

    Case-insensitive first so "ann" sorts next to "Ann", then by the exact
    string so the order is total and stable.
    """
    return (name.casefold(), name)


def sort_names(names: Iterable[str]) -> list[str]:
    """Return names sorted with :func:`name_sort_key`."""
    return sorted(names, key=name_sort_key)


def normalize_names(names: Iterable[str]) -> list[str]:
    """Trim, drop blanks, drop exact duplicates and sort."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in names:
        name = raw.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        result.append(name)
    return sort_names(result)


class KidRoster:
    """Ordered set of names, re-sorted on every mutation."""

    def __init__(self, names: Iterable[str] = ()):
        self._names = normalize_names(names)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def add(self, name: str) -> bool:
        """Insert ``name`` unless it is blank or already present.

        Returns:
            True if the roster changed
        """
        candidate = name.strip()
        if not candidate or candidate in self._names:
            return False
        self._names = sort_names([*self._names, candidate])
        return True

    def remove(self, name: str) -> bool:
        """Remove an exact match; absent names are ignored.

        Returns:
            True if the roster changed
        """
        if name not in self._names:
            return False
        self._names = [existing for existing in self._names if existing != name]
        return True

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"KidRoster({self._names!r})"


def unscheduled(roster: Iterable[str], schedule_owning_kids: Iterable[str]) -> list[str]:
    """Roster names that have no schedule yet, matched by ``kidName``.

    Args:
        roster: The account's kids, in roster order
        schedule_owning_kids: ``kidName`` of every schedule the account sees

    Returns:
        Names from ``roster`` without a schedule, order preserved
    """
    scheduled = set(schedule_owning_kids)
    return [name for name in roster if name not in scheduled]
