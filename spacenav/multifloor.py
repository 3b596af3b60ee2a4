"""Cross-floor routing through lift lobbies.

A cross-floor request becomes two single-floor requests joined at lift
lobbies: start -> nearest lobby on the start floor, then the lobby nearest
to the destination on the destination floor -> destination. The two refined
legs are spliced with one synthetic transfer node. A failing leg fails the
whole request; partial multi-floor routes are never returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from spacenav.errors import MultiFloorRoutingError, NavigationError
from spacenav.models import Destination, PathPoint
from spacenav.resolver import RequestState, RouteRequest, is_lift_lobby, planar_distance
from spacenav.utils import direction_arrows, path_length, svg_path

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]


@dataclass(slots=True)
class FloorLeg:
    """Refined single-floor route produced by the engine pipeline."""

    floor: int
    points: list[PathPoint]
    steps: int
    raw_points: int = 0
    warning: str | None = None
    partial: bool = False

    @property
    def distance(self) -> float:
        return path_length(self.points)


# Solves one floor: (start_xy, floor, target) -> FloorLeg
LegSolver = Callable[[Point2D, int, Destination], FloorLeg]


@dataclass(slots=True)
class MultiFloorRoute:
    path: list[PathPoint]
    legs: list[FloorLeg]
    start_lobby: Destination
    destination_lobby: Destination
    floor_paths: dict[int, str] = field(default_factory=dict)
    floor_arrows: dict[int, list[dict[str, float]]] = field(default_factory=dict)

    @property
    def steps(self) -> int:
        return sum(leg.steps for leg in self.legs)

    @property
    def total_distance(self) -> float:
        return sum(leg.distance for leg in self.legs)


def lift_lobbies(destinations: Sequence[Destination], floor: int) -> list[Destination]:
    return [d for d in destinations if d.floor == floor and is_lift_lobby(d)]


def nearest_lobby(destinations: Sequence[Destination], floor: int, point: Point2D) -> Destination:
    """Lift lobby on `floor` nearest to `point`.

    Raises:
        MultiFloorRoutingError: If the floor has no lift lobby.
    """
    lobbies = lift_lobbies(destinations, floor)
    if not lobbies:
        raise MultiFloorRoutingError(f"No lift lobby found on floor {floor}", floor=floor)
    return min(lobbies, key=lambda d: planar_distance(d.position, point))


def transfer_node(lobby: Destination, from_floor: int, to_floor: int) -> PathPoint:
    return PathPoint(
        x=lobby.x,
        y=lobby.y,
        floor=to_floor,
        location_name=f"Floor change: {from_floor} → {to_floor}",
        is_transfer=True,
    )


def route_multi_floor(
    solve_leg: LegSolver,
    destinations: Sequence[Destination],
    start_xy: Point2D,
    start_floor: int,
    destination: Destination,
    request: RouteRequest | None = None,
    arrow_spacing: float = 60.0,
) -> MultiFloorRoute:
    """Route from `start_xy` on `start_floor` to a destination on another floor.

    Args:
        solve_leg: Single-floor pipeline (solve, extract, refine).
        destinations: All known destinations, used to locate lift lobbies.
        start_xy: Start world coordinate.
        start_floor: Floor of the start.
        destination: Target record; its floor differs from `start_floor`.
        request: Lifecycle tracker advanced through the leg states.
        arrow_spacing: Arrow marker interval per floor.

    Raises:
        MultiFloorRoutingError: If a lobby is missing or either leg fails.
    """
    dest_floor = destination.floor
    if dest_floor == start_floor:
        raise ValueError("route_multi_floor requires different start and destination floors")

    start_lobby = nearest_lobby(destinations, start_floor, start_xy)
    dest_lobby = nearest_lobby(destinations, dest_floor, destination.position)
    logger.info(
        "Cross-floor route %d -> %d via %s / %s", start_floor, dest_floor, start_lobby.id, dest_lobby.id
    )

    legs: list[FloorLeg] = []
    plan = (
        (RequestState.SOLVING_LEG1, start_xy, start_floor, start_lobby),
        (RequestState.SOLVING_LEG2, dest_lobby.position, dest_floor, destination),
    )
    for state, origin, floor, target in plan:
        if request is not None:
            request.advance(state)
        try:
            leg = solve_leg(origin, floor, target)
        except MultiFloorRoutingError:
            raise
        except NavigationError as exc:
            raise MultiFloorRoutingError(
                f"No path on floor {floor} to {target.name}: {exc.message}", floor=floor
            ) from exc
        if leg.partial or not leg.points:
            raise MultiFloorRoutingError(f"No complete path on floor {floor} to {target.name}", floor=floor)
        legs.append(leg)

    if request is not None:
        request.advance(RequestState.SPLICING)

    first, second = legs
    path = [*first.points, transfer_node(dest_lobby, start_floor, dest_floor), *second.points]
    return MultiFloorRoute(
        path=path,
        legs=legs,
        start_lobby=start_lobby,
        destination_lobby=dest_lobby,
        floor_paths={start_floor: svg_path(first.points), dest_floor: svg_path(second.points)},
        floor_arrows={
            start_floor: direction_arrows(first.points, arrow_spacing),
            dest_floor: direction_arrows(second.points, arrow_spacing),
        },
    )
