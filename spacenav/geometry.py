"""Planar geometry helpers for corridor polygons.

Containment uses the even-odd ray casting rule so that rasterization,
snapping and validation agree on which side of an edge a point falls.
Distances and line simplification go through shapely.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from shapely.geometry import LineString, Point, Polygon

Point2D = tuple[float, float]


def point_in_polygon(x: float, y: float, polygon: Sequence[Point2D]) -> bool:
    """Even-odd ray casting test. Polygons with < 3 points contain nothing."""
    n = len(polygon)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def points_in_polygon(xs: np.ndarray, ys: np.ndarray, polygon: Sequence[Point2D]) -> np.ndarray:
    """Vectorized even-odd test for arrays of sample points."""
    inside = np.zeros(np.shape(xs), dtype=bool)
    n = len(polygon)
    if n < 3:
        return inside

    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        j = i
        if yi == yj:
            # Horizontal edges never straddle a horizontal ray.
            continue
        straddles = (yi > ys) != (yj > ys)
        x_cross = (xj - xi) * (ys - yi) / (yj - yi) + xi
        inside ^= straddles & (xs < x_cross)
    return inside


def in_bounds(x: float, y: float, bounds: tuple[float, float, float, float], padding: float = 0.0) -> bool:
    min_x, min_y, max_x, max_y = bounds
    return min_x - padding <= x <= max_x + padding and min_y - padding <= y <= max_y + padding


def to_shapely(polygon: Sequence[Point2D]) -> Polygon | None:
    """Build a shapely polygon, or None for degenerate input."""
    if len(polygon) < 3:
        return None
    return Polygon([(float(x), float(y)) for x, y in polygon])


def distance_to_boundary(x: float, y: float, shape: Polygon) -> float:
    """Distance from a point to a polygon outline."""
    return float(shape.exterior.distance(Point(x, y)))


def distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def douglas_peucker(points: Sequence[Point2D], tolerance: float) -> list[Point2D]:
    """Simplify a polyline, always keeping both endpoints."""
    if len(points) <= 2:
        return [tuple(p) for p in points]

    if all(p == points[0] for p in points):
        return [tuple(points[0]), tuple(points[-1])]

    simplified = LineString(points).simplify(tolerance, preserve_topology=False)
    coords = [(float(x), float(y)) for x, y in simplified.coords]
    if not coords:
        return [tuple(points[0]), tuple(points[-1])]

    # Closed or self-overlapping runs can lose their endpoints; pin them.
    if coords[0] != tuple(points[0]):
        coords.insert(0, tuple(points[0]))
    if coords[-1] != tuple(points[-1]):
        coords.append(tuple(points[-1]))
    return coords


def span_midpoints(shape: Polygon, axis: str, value: float, margin: float = 1.0) -> list[float]:
    """Midpoints of the polygon spans cut by an axis-parallel line.

    axis="x" intersects with the vertical line `x = value` and returns Y
    midpoints; axis="y" intersects with `y = value` and returns X midpoints.
    """
    min_x, min_y, max_x, max_y = shape.bounds
    if axis == "x":
        probe = LineString([(value, min_y - margin), (value, max_y + margin)])
        coord_index = 1
    elif axis == "y":
        probe = LineString([(min_x - margin, value), (max_x + margin, value)])
        coord_index = 0
    else:
        raise ValueError("axis must be 'x' or 'y'")

    cut = shape.intersection(probe)
    if cut.is_empty:
        return []

    pieces = getattr(cut, "geoms", [cut])
    mids: list[float] = []
    for piece in pieces:
        if piece.geom_type != "LineString" or piece.length <= 0:
            continue
        coords = list(piece.coords)
        lo = min(c[coord_index] for c in coords)
        hi = max(c[coord_index] for c in coords)
        mids.append((lo + hi) / 2.0)
    return mids
