"""Unit tests for spacenav.refinement.

The fixture is an L: a horizontal east wing along y=10 and a vertical north
wing along x=90 that overlap in the corner square.
"""

from __future__ import annotations

import pytest

from spacenav.centerline import CenterlineCache
from spacenav.config import EngineSettings
from spacenav.models import Corridor
from spacenav.refinement import PathRefiner


@pytest.fixture()
def refiner(l_corridors: list[dict]) -> PathRefiner:
    corridors = [Corridor.model_validate(c) for c in l_corridors]
    cache = CenterlineCache()
    cache.rebuild(corridors)
    return PathRefiner(corridors, cache, EngineSettings())


def test_corridor_for_point_strict_then_tolerance(refiner: PathRefiner) -> None:
    assert refiner.corridor_for_point(50, 10).id == "h"
    assert refiner.corridor_for_point(90, 50).id == "v"
    # Just outside the east wing, within the default 20-unit tolerance.
    assert refiner.corridor_for_point(50, 30).id == "h"
    assert refiner.corridor_for_point(50, 60) is None
    assert refiner.corridor_for_point(50, 60, tolerance=50).id == "v"


def test_snap_point_onto_single_centerline(refiner: PathRefiner) -> None:
    assert refiner.snap_point((50, 13)) == (50, 10)
    assert refiner.snap_point((86, 60)) == (90, 60)


def test_snap_point_at_intersection_fixes_both_axes(refiner: PathRefiner) -> None:
    assert refiner.snap_point((87.5, 12.5)) == (90, 10)


def test_snap_point_outside_corridors_is_unchanged(refiner: PathRefiner) -> None:
    assert refiner.snap_point((300, 300)) == (300, 300)


def test_collapse_drops_duplicates_and_straight_runs(refiner: PathRefiner) -> None:
    points = [(0, 10), (0.5, 10), (50, 10), (90, 10), (90, 50), (90, 90)]
    assert refiner.collapse(points) == [(0, 10), (90, 10), (90, 90)]


def test_collapse_keeps_exact_last_point(refiner: PathRefiner) -> None:
    assert refiner.collapse([(0, 10), (50, 10), (50.5, 10.2)]) == [(0, 10), (50.5, 10.2)]


def test_insert_turns_prefers_horizontal_first_from_horizontal_corridor(refiner: PathRefiner) -> None:
    assert refiner.insert_turns([(12.5, 10), (90, 90)]) == [(12.5, 10), (90, 10), (90, 90)]


def test_insert_turns_prefers_vertical_first_from_vertical_corridor(refiner: PathRefiner) -> None:
    assert refiner.insert_turns([(90, 90), (12.5, 10)]) == [(90, 90), (90, 10), (12.5, 10)]


def test_insert_turns_keeps_diagonal_without_walkable_corner(refiner: PathRefiner) -> None:
    assert refiner.insert_turns([(12.5, 10), (300, 300)]) == [(12.5, 10), (300, 300)]


def test_connect_destination_replaces_nearby_endpoint(refiner: PathRefiner) -> None:
    assert refiner.connect_destination([(12.5, 10), (85, 10)], (90, 10)) == [(12.5, 10), (90, 10)]


def test_connect_destination_adds_corner_into_other_corridor(refiner: PathRefiner) -> None:
    """Destination in a different corridor across both axes gets a corner first."""
    result = refiner.connect_destination([(12.5, 10), (50, 10)], (90, 90))
    assert result == [(12.5, 10), (50, 10), (90, 10), (90, 90)]


def test_connect_destination_on_empty_path(refiner: PathRefiner) -> None:
    assert refiner.connect_destination([], (90, 90)) == [(90.0, 90.0)]


def test_validate_drops_interior_off_corridor_points(refiner: PathRefiner) -> None:
    points = [(0, 10), (300, 300), (50, 10), (400, 400)]
    assert refiner.validate(points) == [(0, 10), (50, 10), (400, 400)]


def test_refine_turns_staircase_into_single_corner(refiner: PathRefiner) -> None:
    """A raw L-walk becomes start, one corner and the exact destination."""
    raw = [(12.5 + 5 * i, 7.5) for i in range(16)]
    raw += [(87.5, 7.5 + 5 * j) for j in range(1, 17)]

    points = refiner.refine(raw, destination=(90, 90))

    assert points == [(12.5, 10), (90, 10), (90, 90)]


def test_refine_without_destination_ends_on_raw_path(refiner: PathRefiner) -> None:
    raw = [(12.5 + 5 * i, 7.5) for i in range(10)]
    points = refiner.refine(raw)

    assert points[0] == (12.5, 10)
    assert points[-1] == (57.5, 10)


def test_refine_empty_raw_path(refiner: PathRefiner) -> None:
    assert refiner.refine([]) == []
    assert refiner.refine([], destination=(5, 5)) == [(5, 5)]


def test_enrich_location_names_carries_last_label(refiner: PathRefiner) -> None:
    named = refiner.enrich_location_names([(300, 300), (12.5, 10), (50, 60), (90, 90)], floor=1)

    assert [p.location_name for p in named] == ["Start", "East Wing", "East Wing", "North Wing"]
    assert all(p.floor == 1 for p in named)


def test_snap_keeps_start_when_centerline_is_far() -> None:
    """In a square room only later vertices move onto the room's centerline."""
    room = Corridor.model_validate(
        {"id": "room", "name": "Hall", "floor": 1, "polygon": [[0, 0], [400, 0], [400, 400], [0, 400]]}
    )
    cache = CenterlineCache()
    cache.rebuild([room])
    refiner = PathRefiner([room], cache, EngineSettings())

    assert refiner.snap_point((70, 70)) == (200, 70)
    assert refiner.snap([(70, 70), (70, 300)]) == [(70, 70), (200, 300)]


def test_snap_moves_start_within_start_snap_distance(refiner: PathRefiner) -> None:
    assert refiner.snap([(12.5, 7.5), (50, 12.5)]) == [(12.5, 10), (50, 10)]
