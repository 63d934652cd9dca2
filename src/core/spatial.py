"""
Spatial indexing for level geometry.
Answers "which room (if any) contains this point" for visibility and rendering.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

Point = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class Rect:
    """An axis-aligned room rectangle with inclusive bounds."""

    x1: int
    y1: int
    x2: int
    y2: int

    def contains(self, point: Point, with_walls: bool = False) -> bool:
        """Check if a point lies inside the room, optionally counting its wall ring."""
        x, y = point
        pad = 1 if with_walls else 0
        return (
            self.x1 - pad <= x <= self.x2 + pad
            and self.y1 - pad <= y <= self.y2 + pad
        )


class SpatialIndex:
    """A linear-scan index over the rooms of the current level.

    Rooms are scanned in arrival order; the first match wins where they overlap.
    """

    __slots__ = ["rooms"]

    def __init__(self, rooms: Iterable[Rect] = ()):
        self.rooms: List[Rect] = list(rooms)

    def __len__(self) -> int:
        return len(self.rooms)

    def __iter__(self) -> Iterator[Rect]:
        return iter(self.rooms)

    def locate(self, point: Point, include_walls: bool = False) -> Optional[Rect]:
        """Return the first room containing the point, or None."""
        for rect in self.rooms:
            if rect.contains(point, include_walls):
                return rect
        return None

    def is_free(self, point: Point) -> bool:
        """Check if a point is on a room floor."""
        return self.locate(point) is not None

    def is_wall(self, point: Point) -> bool:
        """Check if a point is on the wall ring of some room but on no floor."""
        return self.locate(point) is None and self.locate(point, True) is not None
