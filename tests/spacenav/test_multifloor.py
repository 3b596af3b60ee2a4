"""Unit tests for spacenav.multifloor using a scripted leg solver."""

from __future__ import annotations

import pytest

from spacenav.errors import MultiFloorRoutingError, UnreachableError
from spacenav.models import Destination, PathPoint
from spacenav.multifloor import FloorLeg, nearest_lobby, route_multi_floor
from spacenav.resolver import RequestState, RouteRequest

DESTINATIONS = [
    Destination(id="lift-1a", name="Lift Lobby A", floor=1, x=90, y=10),
    Destination(id="lift-1b", name="Lift Lobby B", floor=1, x=500, y=10),
    Destination(id="lift-2", name="Service Core", zone="ELEVATOR", floor=2, x=90, y=10),
    Destination(id="office", name="Office", floor=2, x=10, y=10),
]
OFFICE = DESTINATIONS[-1]


def _straight_leg(origin, floor, target) -> FloorLeg:
    points = [
        PathPoint(x=origin[0], y=origin[1], floor=floor, location_name="Corridor"),
        PathPoint(x=target.x, y=target.y, floor=floor, location_name="Corridor"),
    ]
    return FloorLeg(floor=floor, points=points, steps=4, raw_points=5)


def test_nearest_lobby_picks_closest() -> None:
    assert nearest_lobby(DESTINATIONS, 1, (450, 10)).id == "lift-1b"
    assert nearest_lobby(DESTINATIONS, 2, (0, 0)).id == "lift-2"


def test_nearest_lobby_missing_raises() -> None:
    with pytest.raises(MultiFloorRoutingError, match="floor 3"):
        nearest_lobby(DESTINATIONS, 3, (0, 0))


def test_route_splices_legs_with_one_transfer_node() -> None:
    request = RouteRequest()
    request.advance(RequestState.RESOLVING_ENDPOINTS)

    route = route_multi_floor(_straight_leg, DESTINATIONS, (10, 10), 1, OFFICE, request=request)

    transfers = [p for p in route.path if p.is_transfer]
    assert len(transfers) == 1
    assert transfers[0].floor == 2
    assert transfers[0].location_name == "Floor change: 1 → 2"
    assert (transfers[0].x, transfers[0].y) == (90, 10)

    assert [p.floor for p in route.path] == [1, 1, 2, 2, 2]
    assert route.start_lobby.id == "lift-1a"
    assert route.destination_lobby.id == "lift-2"
    assert route.steps == 8
    assert route.total_distance == pytest.approx(160.0)
    assert set(route.floor_paths) == {1, 2}
    assert route.floor_paths[1] == "M 10.0 10.0 L 90.0 10.0"
    assert request.state == RequestState.SPLICING


def test_route_same_floor_is_rejected() -> None:
    with pytest.raises(ValueError):
        route_multi_floor(_straight_leg, DESTINATIONS, (10, 10), 2, OFFICE)


def test_failing_leg_is_wrapped() -> None:
    def solve(origin, floor, target):
        if floor == 2:
            raise UnreachableError("blocked")
        return _straight_leg(origin, floor, target)

    with pytest.raises(MultiFloorRoutingError, match="floor 2") as excinfo:
        route_multi_floor(solve, DESTINATIONS, (10, 10), 1, OFFICE)

    assert isinstance(excinfo.value.__cause__, UnreachableError)
    assert excinfo.value.payload()["floor"] == 2


def test_partial_leg_fails_whole_route() -> None:
    def solve(origin, floor, target):
        leg = _straight_leg(origin, floor, target)
        leg.partial = floor == 1
        return leg

    with pytest.raises(MultiFloorRoutingError, match="No complete path on floor 1"):
        route_multi_floor(solve, DESTINATIONS, (10, 10), 1, OFFICE)


def test_missing_destination_lobby_fails_before_solving() -> None:
    calls: list[int] = []

    def solve(origin, floor, target):
        calls.append(floor)
        return _straight_leg(origin, floor, target)

    lobbyless = [d for d in DESTINATIONS if d.id != "lift-2"]
    with pytest.raises(MultiFloorRoutingError):
        route_multi_floor(solve, lobbyless, (10, 10), 1, OFFICE)
    assert calls == []
