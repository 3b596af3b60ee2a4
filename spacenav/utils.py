"""Utility helpers shared across spacenav modules.

Purpose:
- Measure refined paths.
- Render paths as SVG polyline strings and evenly spaced arrow markers.
- Convert path points to JSON-safe payload types.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from spacenav.models import PathPoint

Point2D = tuple[float, float]


def _xy(point: PathPoint | Sequence[float]) -> Point2D:
    if isinstance(point, PathPoint):
        return point.x, point.y
    return float(point[0]), float(point[1])


def path_length(points: Sequence[PathPoint | Sequence[float]]) -> float:
    """Sum of segment lengths along a polyline."""
    total = 0.0
    for a, b in zip(points, points[1:]):
        ax, ay = _xy(a)
        bx, by = _xy(b)
        total += math.hypot(bx - ax, by - ay)
    return total


def svg_path(points: Sequence[PathPoint | Sequence[float]]) -> str:
    """Polyline string `"M x y L x y ..."` with one decimal per coordinate."""
    if not points:
        return ""
    coords = [_xy(p) for p in points]
    head = f"M {coords[0][0]:.1f} {coords[0][1]:.1f}"
    return " ".join([head] + [f"L {x:.1f} {y:.1f}" for x, y in coords[1:]])


def direction_arrows(points: Sequence[PathPoint | Sequence[float]], spacing: float = 60.0) -> list[dict[str, float]]:
    """Arrow markers every `spacing` world units along the path.

    The first arrow sits on the first vertex; leftover distance carries over
    from one segment to the next. `rotation` is the segment heading in
    degrees, `atan2(dy, dx)`.
    """
    if spacing <= 0:
        raise ValueError("spacing must be > 0")
    if len(points) < 2:
        return []

    arrows: list[dict[str, float]] = []
    carried = 0.0
    coords = [_xy(p) for p in points]
    for (ax, ay), (bx, by) in zip(coords, coords[1:]):
        dx, dy = bx - ax, by - ay
        length = math.hypot(dx, dy)
        if length == 0:
            continue
        rotation = math.degrees(math.atan2(dy, dx))
        while carried < length:
            t = carried / length
            arrows.append({"x": ax + dx * t, "y": ay + dy * t, "rotation": rotation})
            carried += spacing
        carried -= length
    return arrows


def to_serializable_path(path: Iterable[PathPoint]) -> list[dict[str, object]]:
    """Convert path points to JSON-friendly dictionary objects."""
    return [point.to_dict() for point in path]
