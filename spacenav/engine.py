"""Navigation engine: owns per-floor models and runs route requests.

Purpose:
- Hold validated corridors and destinations for a building.
- Build per-floor grid, clearance, centerlines and value-field caches.
- Resolve queries, route single- and multi-floor requests, batch-train.

Rebuilds construct a complete new set of floor models and swap it in with a
single assignment, so no reader pairs a new grid with a stale value field.

Usage example:
    >>> engine = NavigationEngine()
    >>> engine.load(corridors, destinations)
    >>> engine.navigate(destination_query="Lift Lobby", start_x=10, start_y=10).to_payload()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping

import numpy as np

from spacenav.centerline import CenterlineCache
from spacenav.config import EngineSettings
from spacenav.errors import ConfigurationError, NavigationError, TrainingInProgressError, UnreachableError
from spacenav.geometry import point_in_polygon
from spacenav.grid import (
    NavGrid,
    check_connectivity,
    compute_clearance,
    find_nearest_navigable_cell,
    rasterize_corridors,
)
from spacenav.models import Corridor, Destination, PathPoint
from spacenav.multifloor import FloorLeg, MultiFloorRoute, route_multi_floor
from spacenav.pathfinding import extract_path
from spacenav.refinement import PathRefiner
from spacenav.resolver import EndpointResolver, RequestState, ResolvedStart, RouteRequest
from spacenav.utils import direction_arrows, path_length, svg_path, to_serializable_path
from spacenav.value_iteration import TrainingProgress, ValueField, solve_value_field

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]
ProgressCallback = Callable[[TrainingProgress], Any]


@dataclass(slots=True)
class FloorModel:
    """Everything derived from one floor's corridors."""

    floor: int
    grid: NavGrid
    clearance: np.ndarray
    corridors: list[Corridor]
    centerlines: CenterlineCache
    refiner: PathRefiner
    value_fields: dict[str, ValueField] = field(default_factory=dict)


@dataclass(slots=True)
class RouteResult:
    """Outcome of a route request, serializable for HTTP clients."""

    path: list[PathPoint]
    steps: int
    destination: Destination
    start: ResolvedStart
    raw_points: int = 0
    warning: str | None = None
    partial: bool = False
    multi_floor: MultiFloorRoute | None = None
    arrow_spacing: float = 60.0

    @property
    def total_distance(self) -> float:
        if self.multi_floor is not None:
            return self.multi_floor.total_distance
        return path_length(self.path)

    @property
    def is_multi_floor(self) -> bool:
        return self.multi_floor is not None

    def to_payload(self) -> dict[str, Any]:
        drawable = [p for p in self.path if not p.is_transfer]
        payload: dict[str, Any] = {
            "success": True,
            "path": to_serializable_path(self.path),
            "steps": self.steps,
            "totalDistance": self.total_distance,
            "svgPath": svg_path(drawable),
            "arrows": direction_arrows(drawable, self.arrow_spacing),
            "destination": {
                "id": self.destination.id,
                "name": self.destination.name,
                "zone": self.destination.zone,
                "x": self.destination.x,
                "y": self.destination.y,
                "floor": self.destination.floor,
            },
            "start": {"x": self.start.x, "y": self.start.y, "floor": self.start.floor, "name": self.start.name},
            "stats": {
                "totalDistance": self.total_distance,
                "steps": self.steps,
                "originalPoints": self.raw_points,
                "simplifiedPoints": len(self.path),
            },
            "algorithm": "Value Iteration" + (" (partial)" if self.partial else ""),
        }
        if self.warning:
            payload["warning"] = self.warning
        if self.multi_floor is not None:
            payload["svgPath"] = svg_path(self.multi_floor.legs[0].points)
            payload["arrows"] = direction_arrows(self.multi_floor.legs[0].points, self.arrow_spacing)
            payload["isMultiFloor"] = True
            payload["floorPaths"] = {str(k): v for k, v in self.multi_floor.floor_paths.items()}
            payload["floorArrows"] = {str(k): v for k, v in self.multi_floor.floor_arrows.items()}
            payload["liftLobbies"] = {
                "start": self.multi_floor.start_lobby.id,
                "destination": self.multi_floor.destination_lobby.id,
            }
        return payload


class NavigationEngine:
    """Value-iteration navigation over one building."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        corridors: Iterable[Corridor | Mapping[str, Any]] = (),
        destinations: Iterable[Destination | Mapping[str, Any]] = (),
    ) -> None:
        self.settings = settings or EngineSettings()
        self._lock = threading.Lock()
        self._corridors: list[Corridor] = []
        self._destinations: list[Destination] = []
        self._floors: dict[int, FloorModel] = {}
        self._resolver = EndpointResolver([], self.settings.default_floor)
        self.grid_size = 10

        self.is_training = False
        self._training_completed = 0
        self._training_total = 0
        self._training_finished = False

        corridors, destinations = list(corridors), list(destinations)
        if corridors or destinations:
            self.load(corridors, destinations)

    # ------------------------------------------------------------------
    # Definitions and rebuild
    # ------------------------------------------------------------------
    def load(
        self,
        corridors: Iterable[Corridor | Mapping[str, Any]],
        destinations: Iterable[Destination | Mapping[str, Any]],
        grid_size: int | None = None,
    ) -> None:
        """Replace the building definition and rebuild every floor model."""
        self._corridors = [c if isinstance(c, Corridor) else Corridor.model_validate(c) for c in corridors]
        self._destinations = [
            d if isinstance(d, Destination) else Destination.model_validate(d) for d in destinations
        ]
        if grid_size is not None:
            self.grid_size = int(grid_size)
        self.rebuild()

    def world_size(self, floor: int) -> tuple[float, float]:
        """Configured floor dimensions, else data extent plus padding (never below the default)."""
        explicit = self.settings.floor_dimensions.get(floor)
        if explicit is not None:
            return float(explicit[0]), float(explicit[1])

        max_x = max_y = 0.0
        for corridor in self._corridors:
            if corridor.floor == floor:
                for x, y in corridor.polygon:
                    max_x, max_y = max(max_x, x), max(max_y, y)
        for dest in self._destinations:
            if dest.floor == floor:
                max_x, max_y = max(max_x, dest.x), max(max_y, dest.y)

        default_w, default_h = self.settings.default_world_size
        padding = self.settings.world_padding
        return max(max_x + padding, default_w), max(max_y + padding, default_h)

    def _build_floor(self, floor: int) -> FloorModel:
        corridors = [c for c in self._corridors if c.floor == floor]
        grid = rasterize_corridors(
            [c.polygon for c in corridors if c.is_polygon], self.world_size(floor), self.settings.resolution
        )
        clearance = compute_clearance(grid)
        centerlines = CenterlineCache(
            samples=self.settings.centerline_samples,
            cluster_threshold=self.settings.centerline_cluster_threshold,
            ratio=self.settings.horizontal_ratio,
        )
        centerlines.rebuild(corridors)
        return FloorModel(
            floor=floor,
            grid=grid,
            clearance=clearance,
            corridors=corridors,
            centerlines=centerlines,
            refiner=PathRefiner(corridors, centerlines, self.settings),
        )

    def rebuild(self) -> None:
        """Recompute every floor model and drop all cached value fields."""
        floors = sorted({c.floor for c in self._corridors if c.is_polygon})
        models = {floor: self._build_floor(floor) for floor in floors}
        with self._lock:
            self._floors = models
            self._resolver = EndpointResolver(self._destinations, self.settings.default_floor)
            self._training_finished = False
        logger.info(
            "Rebuilt navigation models: %d floors, %d corridors, %d destinations",
            len(models),
            len(self._corridors),
            len(self._destinations),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def corridors(self, floor: int | None = None) -> list[Corridor]:
        return [c for c in self._corridors if floor is None or c.floor == floor]

    def destinations(self, floor: int | None = None) -> list[Destination]:
        return [d for d in self._destinations if floor is None or d.floor == floor]

    def destination_by_id(self, destination_id: str) -> Destination | None:
        return next((d for d in self._destinations if d.id == destination_id), None)

    def floor_model(self, floor: int) -> FloorModel:
        """Model of `floor`.

        Raises:
            ConfigurationError: If the floor has no corridors.
        """
        model = self._floors.get(floor)
        if model is None:
            raise ConfigurationError(
                f"No corridors defined for floor {floor}. Define navigable areas first.", floor=floor
            )
        return model

    def find_destination(self, query: str, floor: int | None = None) -> Destination | None:
        return self._resolver.find_destination(query, self.settings.default_floor if floor is None else floor)

    def zone_exits(self, zone_id: str, floor: int | None = None) -> list[Destination]:
        return self._resolver.zone_exits(zone_id, self.settings.default_floor if floor is None else floor)

    def corridor_for_point(self, x: float, y: float, floor: int, tolerance: float | None = None) -> Corridor | None:
        model = self._floors.get(floor)
        if model is None:
            return None
        return model.refiner.corridor_for_point(x, y, tolerance)

    def is_point_navigable(self, x: float, y: float, floor: int) -> bool:
        model = self._floors.get(floor)
        if model is None:
            return False
        return model.grid.is_navigable(*model.grid.world_to_cell(x, y))

    def find_nearest_navigable_point(self, x: float, y: float, floor: int) -> Point2D | None:
        """Centre of the nearest navigable cell, or None within the spiral radius."""
        model = self._floors.get(floor)
        if model is None:
            return None
        row, col = model.grid.world_to_cell(x, y)
        cell = find_nearest_navigable_cell(model.grid, row, col, max_radius=self.settings.spiral_radius)
        return None if cell is None else model.grid.cell_center(*cell)

    # ------------------------------------------------------------------
    # Value fields
    # ------------------------------------------------------------------
    def value_field(self, destination: Destination, model: FloorModel | None = None) -> ValueField:
        """Cached value field for `destination`, solved on demand.

        Args:
            destination: Destination whose field is wanted.
            model: Floor model snapshot to solve on and cache into. Callers
                that also read the model's grid pass the same snapshot, so a
                concurrent rebuild cannot pair that grid with another field.
        """
        if model is None:
            model = self.floor_model(destination.floor)
        elif model.floor != destination.floor:
            raise ValueError(f"floor model {model.floor} does not hold destination floor {destination.floor}")
        cached = model.value_fields.get(destination.id)
        if cached is not None:
            return cached

        logger.info("Solving value field for %s on floor %d", destination.id, destination.floor)
        solved = solve_value_field(
            model.grid, model.clearance, destination.position, self.settings, destination_id=destination.id
        )
        model.value_fields[destination.id] = solved
        return solved

    def ensure_trainable(self) -> None:
        if self.is_training:
            raise TrainingInProgressError()
        if not self._corridors:
            raise ConfigurationError("No corridors defined. Define navigable areas first.")
        if not self._destinations:
            raise ConfigurationError("No destinations defined. Place destination points first.")

    def reserve_training(self) -> None:
        """Claim the training flag now, for a batch run that starts later.

        The HTTP layer reserves before scheduling its background task, so two
        requests cannot both be told that training started.

        Raises:
            TrainingInProgressError: If another batch run holds the flag.
            ConfigurationError: If corridors or destinations are missing.
        """
        with self._lock:
            self.ensure_trainable()
            self.is_training = True

    def iter_train(self, floor: int | None = None, reserved: bool = False) -> Iterator[TrainingProgress]:
        """Solve every destination, yielding progress after each one.

        Args:
            floor: Only train destinations on this floor.
            reserved: The caller already holds the flag via `reserve_training`.

        Raises:
            TrainingInProgressError: If another batch run is active.
            ConfigurationError: If corridors or destinations are missing.
        """
        if not reserved:
            self.reserve_training()
        try:
            targets = self.destinations(floor)
            self._training_completed = 0
            self._training_total = len(targets)
            self._training_finished = False
            for index, dest in enumerate(targets, start=1):
                try:
                    self.value_field(dest)
                except NavigationError as exc:
                    logger.warning("Skipping %s during training: %s", dest.id, exc.message)
                self._training_completed = index
                yield TrainingProgress(completed=index, total=len(targets), destination_id=dest.id)
            self._training_finished = True
            logger.info("Value iteration finished for %d destinations", len(targets))
        finally:
            self.is_training = False

    def train(self, floor: int | None = None, reserved: bool = False) -> dict[str, Any]:
        """Run a batch solve to completion."""
        last: TrainingProgress | None = None
        for last in self.iter_train(floor, reserved=reserved):
            pass
        return {"success": True, "trained": 0 if last is None else last.completed}

    async def train_async(
        self,
        progress_callback: ProgressCallback | None = None,
        floor: int | None = None,
        reserved: bool = False,
    ) -> dict[str, Any]:
        """Batch solve that hands control back to the event loop periodically."""
        trained = 0
        for progress in self.iter_train(floor, reserved=reserved):
            trained = progress.completed
            if progress_callback is not None:
                outcome = progress_callback(progress)
                if inspect.isawaitable(outcome):
                    await outcome
            if progress.completed % self.settings.train_yield_every == 0:
                await asyncio.sleep(0)
        return {"success": True, "trained": trained}

    def training_progress(self) -> dict[str, Any]:
        total = self._training_total
        progress = 100.0 if total == 0 and self._training_finished else 0.0
        if total:
            progress = 100.0 * self._training_completed / total
        return {
            "progress": progress,
            "complete": not self.is_training and self._training_finished,
            "isTraining": self.is_training,
        }

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    def _check_configured(self, floor: int) -> None:
        if not self._corridors:
            raise ConfigurationError("No corridors defined. Define navigable areas first.")
        if not self._destinations:
            raise ConfigurationError("No destinations defined. Place destination points first.")
        self.floor_model(floor)

    def solve_leg(self, start_xy: Point2D, floor: int, destination: Destination) -> FloorLeg:
        """Solve, extract and refine one single-floor route."""
        if destination.floor != floor:
            raise ValueError(f"destination {destination.id} is on floor {destination.floor}, not {floor}")
        model = self.floor_model(floor)
        solved = self.value_field(destination, model)
        extraction = extract_path(model.grid, solved, start_xy, self.settings)

        if not extraction.success and len(extraction.path) < 2:
            raise UnreachableError(
                f"Could not find a navigable path to {destination.name}",
                partialPath=[{"x": x, "y": y, "floor": floor} for x, y in extraction.path],
            )

        target = destination.position if extraction.success else None
        points = model.refiner.refine(extraction.path, target)
        return FloorLeg(
            floor=floor,
            points=model.refiner.enrich_location_names(points, floor),
            steps=extraction.steps,
            raw_points=len(extraction.path),
            warning=extraction.warning,
            partial=not extraction.success,
        )

    def find_path_to_destination(
        self,
        start: ResolvedStart,
        destination: Destination,
        request: RouteRequest | None = None,
    ) -> RouteResult:
        """Route from a resolved start to a destination record."""
        request = request or RouteRequest(state=RequestState.RESOLVING_ENDPOINTS)
        start_xy = (start.x, start.y)
        try:
            if destination.floor != start.floor:
                route = route_multi_floor(
                    self.solve_leg,
                    self._destinations,
                    start_xy,
                    start.floor,
                    destination,
                    request=request,
                    arrow_spacing=self.settings.arrow_spacing,
                )
                request.advance(RequestState.DONE)
                return RouteResult(
                    path=route.path,
                    steps=route.steps,
                    destination=destination,
                    start=start,
                    raw_points=sum(leg.raw_points for leg in route.legs),
                    multi_floor=route,
                    arrow_spacing=self.settings.arrow_spacing,
                )

            request.advance(RequestState.SOLVING)
            request.advance(RequestState.EXTRACTING)
            leg = self.solve_leg(start_xy, start.floor, destination)
            request.advance(RequestState.REFINING)
            request.advance(RequestState.DONE)
        except NavigationError as exc:
            request.fail(exc.message)
            raise

        if leg.partial:
            logger.warning("Returning partial path to %s: %s", destination.name, leg.warning)
        return RouteResult(
            path=leg.points,
            steps=leg.steps,
            destination=destination,
            start=start,
            raw_points=leg.raw_points,
            warning="Path may not reach exact destination" if leg.partial else None,
            partial=leg.partial,
            arrow_spacing=self.settings.arrow_spacing,
        )

    def detect_floor(self, x: float, y: float) -> int:
        """Floor of the first corridor containing the point, else the default floor."""
        for corridor in self._corridors:
            if point_in_polygon(x, y, corridor.polygon):
                return corridor.floor
        return self.settings.default_floor

    def navigate(
        self,
        start_query: str | None = None,
        destination_query: str = "",
        *,
        start_x: float | None = None,
        start_y: float | None = None,
        start_floor: int | None = None,
        floor: int | None = None,
    ) -> RouteResult:
        """Resolve both endpoints from free text or coordinates, then route.

        Args:
            start_query: Free-text start; ignored when coordinates are given.
            destination_query: Free-text destination, may carry a floor hint.
            start_x: Start X in world units.
            start_y: Start Y in world units.
            start_floor: Floor of the coordinate start; detected when omitted.
            floor: Floor for text starts (defaults to the configured floor).

        Raises:
            ConfigurationError: If corridors or destinations are missing.
            ResolutionError: If a query matches nothing.
            UnreachableError: If start or goal cannot be placed on the grid.
            MultiFloorRoutingError: If a cross-floor route cannot be joined.
        """
        request = RouteRequest()
        request.advance(RequestState.RESOLVING_ENDPOINTS)
        try:
            if start_x is not None and start_y is not None:
                resolved_floor = start_floor if start_floor is not None else self.detect_floor(start_x, start_y)
                self._check_configured(resolved_floor)
                start = ResolvedStart(float(start_x), float(start_y), resolved_floor, start_query or "Start")
                destination = self._resolver.resolve_destination(destination_query, (start.x, start.y), start.floor)
            else:
                resolved_floor = self.settings.default_floor if floor is None else floor
                self._check_configured(resolved_floor)
                start, destination = self._resolve_text_endpoints(start_query, destination_query, resolved_floor)
        except NavigationError as exc:
            request.fail(exc.message)
            raise

        logger.info(
            "Route (%.0f, %.0f) floor %d -> %s floor %d",
            start.x,
            start.y,
            start.floor,
            destination.name,
            destination.floor,
        )
        return self.find_path_to_destination(start, destination, request=request)

    def _resolve_text_endpoints(
        self, start_query: str | None, destination_query: str, floor: int
    ) -> tuple[ResolvedStart, Destination]:
        if start_query and self._resolver.candidates(start_query, floor):
            start_dest, destination = self._resolver.resolve_pair(start_query, destination_query, floor)
            start = ResolvedStart(start_dest.x, start_dest.y, start_dest.floor, start_dest.name)
            return start, destination

        start = self._resolver.default_start(
            start_query or "entrance", floor, self._corridors, self.is_point_navigable
        )
        if start is None:
            raise ConfigurationError("Could not find a valid start position. Make sure corridors are defined.")
        destination = self._resolver.resolve_destination(destination_query, (start.x, start.y), start.floor)
        return start, destination

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def stats(self) -> dict[str, Any]:
        floors: dict[str, Any] = {}
        for floor, model in self._floors.items():
            cells = {
                d.id: model.grid.world_to_cell(d.x, d.y) for d in self._destinations if d.floor == floor
            }
            floors[str(floor)] = {
                "rows": model.grid.height,
                "cols": model.grid.width,
                "resolution": model.grid.resolution,
                "navigableCells": model.grid.navigable_count,
                "valueFields": len(model.value_fields),
                "connectivity": check_connectivity(model.grid, cells),
            }
        return {
            "corridors": len(self._corridors),
            "destinations": len(self._destinations),
            "floors": floors,
            "isTraining": self.is_training,
            "trainingProgress": self.training_progress()["progress"],
        }
