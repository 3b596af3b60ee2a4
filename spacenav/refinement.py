"""Turn a raw grid-aligned path into a clean corridor-centred polyline.

Purpose:
- Simplify each corridor run of the raw path independently.
- Snap vertices onto cached corridor centerlines.
- Replace diagonal jogs with orthogonal corners where the corner is walkable.
- Terminate exactly on the requested destination coordinate.
- Drop interior vertices that no corridor claims.

Usage example:
    >>> refiner = PathRefiner(corridors, centerlines)
    >>> points = refiner.refine(raw_path, destination=(90.0, 10.0))
    >>> path = refiner.enrich_location_names(points, floor=1)
"""

from __future__ import annotations

import logging
from typing import Sequence

from shapely.geometry import Polygon

from spacenav.centerline import CenterlineCache, CorridorCenterline
from spacenav.config import EngineSettings
from spacenav.geometry import (
    distance,
    distance_to_boundary,
    douglas_peucker,
    in_bounds,
    point_in_polygon,
    to_shapely,
)
from spacenav.models import Corridor, PathPoint

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]


class PathRefiner:
    """Per-floor refinement pipeline bound to that floor's corridors."""

    def __init__(
        self,
        corridors: Sequence[Corridor],
        centerlines: CenterlineCache,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.corridors = [c for c in corridors if c.is_polygon]
        self.centerlines = centerlines
        self._shapes: dict[str, Polygon] = {}
        for corridor in self.corridors:
            shape = to_shapely(corridor.polygon)
            if shape is not None:
                self._shapes[corridor.id] = shape

    # ------------------------------------------------------------------
    # Corridor lookup
    # ------------------------------------------------------------------
    def corridor_for_point(self, x: float, y: float, tolerance: float | None = None) -> Corridor | None:
        """Corridor strictly containing the point, else the nearest one within tolerance."""
        for corridor in self.corridors:
            if point_in_polygon(x, y, corridor.polygon):
                return corridor

        tolerance = self.settings.corridor_tolerance if tolerance is None else tolerance
        best: Corridor | None = None
        best_distance = float("inf")
        for corridor in self.corridors:
            shape = self._shapes.get(corridor.id)
            if shape is None:
                continue
            d = distance_to_boundary(x, y, shape)
            if d < best_distance:
                best, best_distance = corridor, d

        return best if best_distance <= tolerance else None

    def snap_candidates(self, x: float, y: float) -> list[Corridor]:
        """Corridors strictly containing the point, else those whose padded bbox does."""
        strict = [c for c in self.corridors if point_in_polygon(x, y, c.polygon)]
        if strict:
            return strict
        padding = self.settings.bbox_padding
        return [c for c in self.corridors if in_bounds(x, y, c.bounds, padding)]

    def is_valid_point(self, point: Point2D) -> bool:
        return self.corridor_for_point(point[0], point[1]) is not None

    def is_walkable_corner(self, point: Point2D) -> bool:
        """Stricter test for synthetic corners: inside a corridor or on its padded edge."""
        x, y = point
        padding = self.settings.bbox_padding
        for corridor in self.corridors:
            if point_in_polygon(x, y, corridor.polygon):
                return True
            shape = self._shapes.get(corridor.id)
            if shape is not None and distance_to_boundary(x, y, shape) <= padding:
                return True
        return False

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------
    def simplify(self, points: Sequence[Point2D]) -> list[Point2D]:
        """Douglas-Peucker per run of points sharing an enclosing-corridor label.

        The first and last point of each run survive, so corridor transitions
        are never simplified away.
        """
        if len(points) <= 2:
            return [tuple(p) for p in points]

        runs: list[list[Point2D]] = []
        last_label: object = object()
        for point in points:
            corridor = self.corridor_for_point(point[0], point[1])
            label = corridor.id if corridor is not None else None
            if not runs or label != last_label:
                runs.append([])
                last_label = label
            runs[-1].append(tuple(point))

        simplified: list[Point2D] = []
        for run in runs:
            simplified.extend(douglas_peucker(run, self.settings.simplify_tolerance))
        return simplified

    def _centerline_values(self, candidates: Sequence[Corridor]) -> tuple[list[float], list[float]]:
        horizontal: list[float] = []
        vertical: list[float] = []
        for corridor in candidates:
            line: CorridorCenterline = self.centerlines.get(corridor)
            if line.orientation == "horizontal":
                horizontal.append(line.center_value)
            else:
                vertical.append(line.center_value)
        return horizontal, vertical

    def snap_point(self, point: Point2D) -> Point2D:
        """Snap one vertex onto the centerline(s) of the corridors holding it.

        Horizontal corridors fix Y, vertical corridors fix X; at an
        intersection both are fixed. A snap that leaves every corridor falls
        back to single-axis snaps, then to the original point.
        """
        x, y = point
        candidates = self.snap_candidates(x, y)
        if not candidates:
            return point

        horizontal, vertical = self._centerline_values(candidates)
        snap_y = min(horizontal, key=lambda v: abs(v - y)) if horizontal else None
        snap_x = min(vertical, key=lambda v: abs(v - x)) if vertical else None

        attempts: list[Point2D] = []
        if snap_x is not None and snap_y is not None:
            attempts.append((snap_x, snap_y))
        if snap_y is not None:
            attempts.append((x, snap_y))
        if snap_x is not None:
            attempts.append((snap_x, y))

        for candidate in attempts:
            if self.is_valid_point(candidate):
                return candidate
        return point

    def snap(self, points: Sequence[Point2D]) -> list[Point2D]:
        """Snap every vertex; the first one only moves up to `start_snap_distance`.

        In a wide room the centerline can lie far from where the walker
        stands, and the route must still begin at the walker.
        """
        snapped = [self.snap_point(tuple(p)) for p in points]
        if snapped and distance(snapped[0], points[0]) > self.settings.start_snap_distance:
            snapped[0] = tuple(points[0])
        return snapped

    def collapse(self, points: Sequence[Point2D]) -> list[Point2D]:
        """Drop duplicates and the middle vertices of straight axis-aligned runs."""
        tol = self.settings.axis_tolerance
        deduped: list[Point2D] = []
        for point in points:
            if deduped and abs(deduped[-1][0] - point[0]) <= tol and abs(deduped[-1][1] - point[1]) <= tol:
                continue
            deduped.append(tuple(point))

        # Duplicates of the last point collapse onto it, never away from it.
        if points and deduped and deduped[-1] != tuple(points[-1]):
            deduped[-1] = tuple(points[-1])

        if len(deduped) <= 2:
            return deduped

        result = [deduped[0]]
        for i in range(1, len(deduped) - 1):
            prev, cur, nxt = result[-1], deduped[i], deduped[i + 1]
            same_x = abs(prev[0] - cur[0]) <= tol and abs(cur[0] - nxt[0]) <= tol
            same_y = abs(prev[1] - cur[1]) <= tol and abs(cur[1] - nxt[1]) <= tol
            if same_x or same_y:
                continue
            result.append(cur)
        result.append(deduped[-1])
        return result

    def _corner_order(self, a: Point2D, b: Point2D) -> list[Point2D]:
        """Corner candidates in preference order for the segment `a -> b`."""
        horizontal_first = (b[0], a[1])
        vertical_first = (a[0], b[1])
        corridor = self.corridor_for_point(a[0], a[1])
        if corridor is not None and self.centerlines.get(corridor).orientation == "vertical":
            return [vertical_first, horizontal_first]
        return [horizontal_first, vertical_first]

    def insert_turns(self, points: Sequence[Point2D]) -> list[Point2D]:
        """Insert an orthogonal corner between vertices that differ on both axes."""
        if len(points) < 2:
            return [tuple(p) for p in points]

        tol = self.settings.axis_tolerance
        result: list[Point2D] = [tuple(points[0])]
        for b in points[1:]:
            a = result[-1]
            if abs(b[0] - a[0]) > tol and abs(b[1] - a[1]) > tol:
                for corner in self._corner_order(a, b):
                    if self.is_walkable_corner(corner):
                        result.append(corner)
                        break
                else:
                    logger.debug("No walkable corner between %s and %s; keeping diagonal", a, b)
            result.append(tuple(b))
        return result

    def connect_destination(self, points: Sequence[Point2D], destination: Point2D) -> list[Point2D]:
        """Make the path end exactly on `destination`."""
        destination = (float(destination[0]), float(destination[1]))
        if not points:
            return [destination]

        result = [tuple(p) for p in points]
        last = result[-1]
        if distance(last, destination) <= self.settings.destination_snap_distance:
            result[-1] = destination
            return result

        last_corridor = self.corridor_for_point(last[0], last[1])
        dest_corridor = self.corridor_for_point(destination[0], destination[1])
        tol = self.settings.axis_tolerance
        crosses = abs(destination[0] - last[0]) > tol and abs(destination[1] - last[1]) > tol
        if crosses and dest_corridor is not None and (last_corridor is None or last_corridor.id != dest_corridor.id):
            for corner in self._corner_order(last, destination):
                if self.is_walkable_corner(corner):
                    result.append(corner)
                    break

        result.append(destination)
        return result

    def validate(self, points: Sequence[Point2D]) -> list[Point2D]:
        """Drop interior vertices no corridor claims; endpoints always stay."""
        if len(points) <= 2:
            return [tuple(p) for p in points]

        kept = [tuple(points[0])]
        for point in points[1:-1]:
            if self.is_valid_point(point):
                kept.append(tuple(point))
            else:
                logger.debug("Dropping off-corridor vertex %s", point)
        kept.append(tuple(points[-1]))
        return kept

    def refine(
        self,
        raw: Sequence[Point2D],
        destination: Point2D | None = None,
    ) -> list[Point2D]:
        """Run the full pipeline on a raw path.

        Args:
            raw: Cell-centre path from the extractor.
            destination: Exact coordinate the path must end on. When None
                (partial paths), the path ends wherever the raw path stops.

        Returns:
            Refined world-space vertices.
        """
        if not raw:
            return [] if destination is None else [tuple(destination)]

        points = self.simplify(raw)
        points = self.snap(points)
        points = self.collapse(points)
        points = self.insert_turns(points)
        if destination is not None:
            points = self.connect_destination(points, destination)
        points = self.validate(points)
        points = self.collapse(points)

        if destination is not None and points[-1] != tuple(destination):
            points.append(tuple(destination))
        return points

    def enrich_location_names(self, points: Sequence[Point2D], floor: int) -> list[PathPoint]:
        """Attach the enclosing corridor's label to each vertex.

        Vertices in a seam between corridors inherit the last known label so
        names do not flicker between two adjacent halls.
        """
        last_known = "Start"
        enriched: list[PathPoint] = []
        for x, y in points:
            corridor = self.corridor_for_point(x, y)
            if corridor is not None:
                last_known = corridor.label
            enriched.append(PathPoint(x=float(x), y=float(y), floor=floor, location_name=last_known))
        return enriched
