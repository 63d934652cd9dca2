"""
Field of View (FOV) calculation module.
Implements room-aware ray casting and the explored-cell memory.
"""

import math
from typing import Set

import numpy as np

from core.spatial import Point, SpatialIndex

# Cross-axis offsets of the four sub-rays that approximate a 1-cell-wide beam.
RAY_OFFSETS = ((0.4, 0.4), (0.4, -0.4), (-0.4, 0.4), (-0.4, -0.4))


def _round(value: float) -> int:
    # Half-up rounding; Python's round() would send 0.5 to the even side.
    return math.floor(value + 0.5)


def _shares_room(index: SpatialIndex, a: Point, b: Point) -> bool:
    for rect in index:
        if (
            rect.contains(a, True)
            and rect.contains(b, True)
            and (rect.contains(a) or rect.contains(b))
        ):
            return True
    return False


def _cast(index: SpatialIndex, near: float, far: float, start: int, end: int, transpose: bool) -> bool:
    """Walk one sub-ray between two dominant coordinates, exclusive of both ends."""
    span = end - start
    if span == 0:
        return True

    slope = (far - near) / span
    for major in range(start + 1, end):
        minor = _round((major - start) * slope + near)
        point = (minor, major) if transpose else (major, minor)
        if index.locate(point, True) is None:
            return False
    return True


def is_visible(index: SpatialIndex, origin: Point, target: Point, radius: int) -> bool:
    """
    Check whether target can be seen from origin.

    Args:
        index: The rooms of the current level.
        origin: The observer position.
        target: The observed cell.
        radius: Sight radius; cells at distance >= radius are never visible.

    Returns:
        True if the target is within radius and at least one of the four
        sub-rays between the two points stays inside rooms or their walls.
    """
    dx = origin[0] - target[0]
    dy = origin[1] - target[1]
    if dx * dx + dy * dy >= radius * radius:
        return False

    # Without any level geometry there is nothing to block sight.
    if not len(index):
        return True

    if _shares_room(index, origin, target):
        return True

    if abs(dx) > abs(dy):
        c, d = (target, origin) if origin[0] > target[0] else (origin, target)
        return any(
            _cast(index, c[1] + o1, d[1] + o2, c[0], d[0], transpose=False)
            for o1, o2 in RAY_OFFSETS
        )

    c, d = (target, origin) if origin[1] > target[1] else (origin, target)
    return any(
        _cast(index, c[0] + o1, d[0] + o2, c[1], d[1], transpose=True)
        for o1, o2 in RAY_OFFSETS
    )


def reveal(index: SpatialIndex, seen: Set[Point], origin: Point, radius: int) -> int:
    """
    Add every cell visible from origin to the explored set.

    Only cells inside the sight circle are tested; cells already remembered
    are skipped, so repeated calls from the same spot are cheap and change
    nothing.

    Returns:
        The number of newly remembered cells.
    """
    span = np.arange(-radius, radius + 1)
    offset_x, offset_y = np.meshgrid(span, span)
    in_circle = offset_x * offset_x + offset_y * offset_y < radius * radius

    ox, oy = origin
    added = 0
    for dx, dy in zip(offset_x[in_circle].tolist(), offset_y[in_circle].tolist()):
        cell = (ox + dx, oy + dy)
        if cell not in seen and is_visible(index, origin, cell, radius):
            seen.add(cell)
            added += 1
    return added
