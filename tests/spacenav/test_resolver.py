"""Unit tests for spacenav.resolver."""

from __future__ import annotations

import pytest

from spacenav.errors import ResolutionError
from spacenav.models import Corridor, Destination
from spacenav.resolver import (
    EndpointResolver,
    RequestState,
    RouteRequest,
    is_lift_lobby,
    parse_floor_from_query,
)

RECORDS = [
    {"id": "mr1", "name": "Meeting Room", "zone": "ZONE_01", "floor": 1, "x": 10, "y": 10},
    {"id": "mr1-door", "name": "Meeting Room Side Door", "zone": "ZONE_01", "floor": 1, "x": 40, "y": 10},
    {"id": "mr1b", "name": "Meeting Room", "zone": "ZONE_02", "floor": 1, "x": 200, "y": 10},
    {"id": "lav", "name": "Restroom A", "floor": 1, "x": 300, "y": 10},
    {"id": "exit3", "name": "Exit 3", "floor": 1, "x": 400, "y": 10},
    {"id": "lift1", "name": "Lift Lobby", "floor": 1, "x": 90, "y": 10},
    {"id": "lift2", "name": "Lift Lobby", "floor": 2, "x": 90, "y": 10},
    {"id": "mr2", "name": "Meeting Room", "floor": 2, "x": 50, "y": 50},
    {"id": "pantry2", "name": "Pantry", "zone": "PANTRY", "floor": 2, "x": 120, "y": 10},
]


@pytest.fixture()
def resolver() -> EndpointResolver:
    return EndpointResolver([Destination.model_validate(r) for r in RECORDS])


def _ids(destinations) -> set[str]:
    return {d.id for d in destinations}


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("Meeting Room floor 1", (1, "Meeting Room")),
        ("Meeting Room 0 floor", (0, "Meeting Room")),
        ("Level 2 Meeting Room", (2, "Meeting Room")),
        ("2nd floor pantry", (2, "pantry")),
        ("3/F pantry", (3, "pantry")),
        ("  Meeting Room ", (None, "Meeting Room")),
    ],
)
def test_parse_floor_from_query(query: str, expected: tuple) -> None:
    assert parse_floor_from_query(query) == expected


def test_matcher_chain_order(resolver: EndpointResolver) -> None:
    """The first matcher that hits wins; later matchers are not consulted."""
    assert _ids(resolver.match("ZONE_01", 1)) == {"mr1", "mr1-door"}
    assert _ids(resolver.match("meeting room", 1)) == {"mr1", "mr1b"}
    assert _ids(resolver.match("meeting", 1)) == {"mr1", "mr1-door", "mr1b"}
    assert _ids(resolver.match("zone 2", 1)) == {"mr1b"}


def test_category_and_exit_number_matchers(resolver: EndpointResolver) -> None:
    assert _ids(resolver.match("toilet", 1)) == {"lav"}
    assert _ids(resolver.match("emergency exit 3", 1)) == {"exit3"}
    assert resolver.match("observatory", 1) == []
    assert resolver.match("", 1) == []


def test_zone_number_falls_back_to_x_order_without_zone_metadata() -> None:
    resolver = EndpointResolver(
        [
            Destination(id="a", name="Room A", floor=1, x=300, y=0),
            Destination(id="b", name="Room B", floor=1, x=100, y=0),
            Destination(id="c", name="Room C", floor=1, x=200, y=0),
        ]
    )
    assert _ids(resolver.match("zone 2", 1)) == {"c"}
    assert _ids(resolver.match("zone 9", 1)) == {"a"}


def test_candidates_expand_to_zone_siblings(resolver: EndpointResolver) -> None:
    assert _ids(resolver.candidates("Meeting Room", 1)) == {"mr1", "mr1b", "mr1-door"}


def test_resolve_destination_prefers_nearest(resolver: EndpointResolver) -> None:
    assert resolver.resolve_destination("Meeting Room", (0, 10), 1).id == "mr1"
    assert resolver.resolve_destination("Meeting Room", (190, 10), 1).id == "mr1b"


def test_resolve_destination_honours_floor_hint(resolver: EndpointResolver) -> None:
    assert resolver.resolve_destination("Meeting Room floor 2", (0, 0), 1).id == "mr2"


def test_resolve_destination_falls_back_to_other_floors(resolver: EndpointResolver) -> None:
    assert resolver.resolve_destination("Pantry", (0, 0), 1).id == "pantry2"


def test_resolve_destination_failure_lists_names(resolver: EndpointResolver) -> None:
    with pytest.raises(ResolutionError) as excinfo:
        resolver.resolve_destination("Observatory", (0, 0), 1)

    err = excinfo.value
    assert err.query == "Observatory"
    assert "Restroom A" in err.available
    assert "Pantry" not in err.available
    payload = err.payload()
    assert payload["success"] is False
    assert payload["available"] == err.available
    assert err.status_code == 404


def test_resolve_pair_minimises_distance(resolver: EndpointResolver) -> None:
    start, dest = resolver.resolve_pair("Meeting Room", "Restroom", 1)
    assert (start.id, dest.id) == ("mr1b", "lav")


def test_resolve_pair_unknown_start_raises(resolver: EndpointResolver) -> None:
    with pytest.raises(ResolutionError):
        resolver.resolve_pair("Observatory", "Restroom", 1)


def test_zone_exits(resolver: EndpointResolver) -> None:
    assert _ids(resolver.zone_exits("ZONE_01", 1)) == {"mr1", "mr1-door"}
    assert resolver.zone_exits("", 1) == []


def test_is_lift_lobby() -> None:
    assert is_lift_lobby(Destination(id="l", name="Lift Lobby", floor=1, x=0, y=0))
    assert is_lift_lobby(Destination(id="e", name="Core", zone="ELEVATOR_A", floor=1, x=0, y=0))
    assert not is_lift_lobby(Destination(id="p", name="Pantry", floor=1, x=0, y=0))


def test_default_start_order(resolver: EndpointResolver) -> None:
    corridor = Corridor(id="c", name="Main Corridor", floor=1, polygon=[(0, 0), (100, 0), (100, 20), (0, 20)])

    found = resolver.default_start("lift lobby", 1, [corridor], lambda x, y, f: True)
    assert (found.x, found.y, found.name) == (90, 10, "Lift Lobby")

    centroid = resolver.default_start(None, 1, [corridor], lambda x, y, f: True)
    assert (centroid.x, centroid.y, centroid.name) == (50, 10, "Main Corridor")

    assert resolver.default_start(None, 1, [corridor], lambda x, y, f: False) is None


def test_request_lifecycle_single_floor() -> None:
    request = RouteRequest()
    for state in (
        RequestState.RESOLVING_ENDPOINTS,
        RequestState.SOLVING,
        RequestState.EXTRACTING,
        RequestState.REFINING,
        RequestState.DONE,
    ):
        request.advance(state)

    assert request.is_terminal
    assert request.history[0] == RequestState.IDLE
    assert request.history[-1] == RequestState.DONE


def test_request_rejects_illegal_transitions() -> None:
    request = RouteRequest()
    with pytest.raises(ValueError, match="Illegal"):
        request.advance(RequestState.SOLVING)

    request.advance(RequestState.RESOLVING_ENDPOINTS)
    request.fail("no match")
    assert request.state == RequestState.FAILED
    assert request.failure == "no match"

    with pytest.raises(ValueError):
        request.fail("again")
