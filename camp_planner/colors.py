"""Kid display colors.

A color is never stored: it is the kid's rank in the sorted ``allKids`` list
modulo the palette length. Adding a kid that sorts earlier shifts the color of
every kid after it.
"""

from __future__ import annotations

from collections.abc import Sequence

from .roster import sort_names

PALETTE: tuple[str, ...] = (
    "bg-blue-200 text-blue-800",
    "bg-green-200 text-green-800",
    "bg-yellow-200 text-yellow-800",
    "bg-purple-200 text-purple-800",
    "bg-pink-200 text-pink-800",
    "bg-indigo-200 text-indigo-800",
    "bg-red-200 text-red-800",
    "bg-teal-200 text-teal-800",
)


def color_map(all_kids: Sequence[str], palette: Sequence[str] = PALETTE) -> dict[str, str]:
    """Color for every kid in ``all_kids``."""
    return {kid: palette[rank % len(palette)] for rank, kid in enumerate(sort_names(all_kids))}


def kid_color(kid: str, all_kids: Sequence[str], palette: Sequence[str] = PALETTE) -> str | None:
    """Display color token for ``kid``, or None when the kid is not in the list."""
    return color_map(all_kids, palette).get(kid)
