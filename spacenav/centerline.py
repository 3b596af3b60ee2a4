"""Per-corridor dominant axis and centerline estimation.

The refiner snaps path vertices onto these centerlines. For L-shaped or
irregular outlines the bounding-box centre is a poor guess, so the
centerline is the mean of the largest cluster of span midpoints sampled
along the corridor's long axis.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal

from spacenav.geometry import span_midpoints, to_shapely
from spacenav.models import Corridor

logger = logging.getLogger(__name__)

Orientation = Literal["horizontal", "vertical"]


@dataclass(slots=True)
class CorridorCenterline:
    """Dominant travel axis and the centerline coordinate across it."""

    orientation: Orientation
    center_value: float
    bounds: tuple[float, float, float, float]


def classify_orientation(bounds: tuple[float, float, float, float], ratio: float = 1.2) -> Orientation:
    """Horizontal iff the bounding box is more than `ratio` times wider than tall."""
    min_x, min_y, max_x, max_y = bounds
    return "horizontal" if (max_x - min_x) > ratio * (max_y - min_y) else "vertical"


def largest_cluster_mean(values: list[float], threshold: float) -> float | None:
    """Greedy 1D clustering; returns the mean of the most populated cluster."""
    if not values:
        return None

    clusters: list[list[float]] = []
    for value in sorted(values):
        for cluster in clusters:
            if abs(sum(cluster) / len(cluster) - value) <= threshold:
                cluster.append(value)
                break
        else:
            clusters.append([value])

    # Ties go to the earliest cluster (lowest coordinate) for determinism.
    best = max(clusters, key=len)
    return sum(best) / len(best)


def compute_centerline(
    corridor: Corridor,
    samples: int = 40,
    cluster_threshold: float = 40.0,
    ratio: float = 1.2,
) -> CorridorCenterline:
    """Estimate a corridor's centerline from its polygon.

    Horizontal corridors are probed with vertical lines at evenly spaced X
    positions; the midpoint of every Y-span cut by a probe is a sample.
    Vertical corridors use the symmetric procedure on Y.
    """
    bounds = corridor.bounds
    min_x, min_y, max_x, max_y = bounds
    orientation = classify_orientation(bounds, ratio)
    fallback = (min_y + max_y) / 2.0 if orientation == "horizontal" else (min_x + max_x) / 2.0

    shape = to_shapely(corridor.polygon)
    if shape is None or samples <= 0:
        return CorridorCenterline(orientation=orientation, center_value=fallback, bounds=bounds)
    if not shape.is_valid:
        logger.warning("Corridor %s polygon is not simple; using bbox centre", corridor.id)
        return CorridorCenterline(orientation=orientation, center_value=fallback, bounds=bounds)

    if orientation == "horizontal":
        lo, hi, axis = min_x, max_x, "x"
    else:
        lo, hi, axis = min_y, max_y, "y"

    step = (hi - lo) / samples
    midpoints: list[float] = []
    for i in range(samples):
        midpoints.extend(span_midpoints(shape, axis, lo + (i + 0.5) * step))

    center = largest_cluster_mean(midpoints, cluster_threshold)
    return CorridorCenterline(
        orientation=orientation,
        center_value=fallback if center is None else float(center),
        bounds=bounds,
    )


class CenterlineCache:
    """Centerlines keyed by corridor id, rebuilt together with the grid."""

    def __init__(self, samples: int = 40, cluster_threshold: float = 40.0, ratio: float = 1.2) -> None:
        self.samples = samples
        self.cluster_threshold = cluster_threshold
        self.ratio = ratio
        self._entries: dict[str, CorridorCenterline] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, corridor_id: object) -> bool:
        return corridor_id in self._entries

    def rebuild(self, corridors: Iterable[Corridor]) -> None:
        """Drop every cached entry, then recompute for the given corridors."""
        entries: dict[str, CorridorCenterline] = {}
        for corridor in corridors:
            if not corridor.is_polygon:
                continue
            entries[corridor.id] = compute_centerline(
                corridor,
                samples=self.samples,
                cluster_threshold=self.cluster_threshold,
                ratio=self.ratio,
            )
        self._entries = entries

    def get(self, corridor: Corridor) -> CorridorCenterline:
        """Cached centerline, or the bounding-box centre if not built yet."""
        cached = self._entries.get(corridor.id)
        if cached is not None:
            return cached
        bounds = corridor.bounds
        orientation = classify_orientation(bounds, self.ratio)
        min_x, min_y, max_x, max_y = bounds
        center = (min_y + max_y) / 2.0 if orientation == "horizontal" else (min_x + max_x) / 2.0
        return CorridorCenterline(orientation=orientation, center_value=center, bounds=bounds)
