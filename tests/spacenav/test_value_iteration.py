"""Unit tests for spacenav.value_iteration."""

from __future__ import annotations

import numpy as np
import pytest

from spacenav.config import EngineSettings
from spacenav.errors import UnreachableError
from spacenav.grid import compute_clearance, rasterize_corridors
from spacenav.pathfinding import extract_path
from spacenav.value_iteration import MOVES, UNREACHED, solve_value_field, wall_penalty

RECT = [(0, 0), (100, 0), (100, 20), (0, 20)]
ISLAND = [(150, 0), (190, 0), (190, 20), (150, 20)]


@pytest.fixture()
def floor():
    grid = rasterize_corridors([RECT, ISLAND], (200, 40), 5)
    return grid, compute_clearance(grid)


def test_wall_penalty_profile() -> None:
    clearance = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
    assert wall_penalty(clearance).tolist() == [45.0, 20.0, 5.0, 0.0, 0.0]


def test_goal_is_zero_and_reached_cells_negative(floor) -> None:
    grid, clearance = floor
    field = solve_value_field(grid, clearance, (90, 10), destination_id="d")

    assert field.goal == (2, 18)
    assert field.values[field.goal] == 0.0
    assert field.converged
    assert field.iterations < EngineSettings().max_iterations

    main = np.zeros_like(grid.mask, dtype=bool)
    main[0:4, 0:20] = True
    reached = main & (grid.mask > 0)
    reached[field.goal] = False
    assert np.all(field.values[reached] < 0)


def test_disconnected_and_wall_cells_keep_sentinel(floor) -> None:
    grid, clearance = floor
    field = solve_value_field(grid, clearance, (90, 10))

    assert field.values[1, 32] == UNREACHED
    assert not field.is_reached(1, 32)
    assert field.values[6, 5] == UNREACHED


def test_values_increase_along_extracted_path(floor) -> None:
    grid, clearance = floor
    field = solve_value_field(grid, clearance, (90, 10))
    result = extract_path(grid, field, (10, 10))

    assert result.success
    values = [field.values[cell] for cell in result.cells]
    assert all(b > a for a, b in zip(values, values[1:]))


def test_open_hall_feeding_narrow_corridor_has_no_local_maxima() -> None:
    """Every reached cell of a wide hall has an uphill neighbour at default settings."""
    hall = [(0, 0), (400, 0), (400, 400), (0, 400)]
    corridor = [(400, 180), (1000, 180), (1000, 220), (400, 220)]
    grid = rasterize_corridors([hall, corridor], (1100, 500), 20)
    field = solve_value_field(grid, compute_clearance(grid), (980, 200))

    assert field.converged
    for row, col in zip(*np.nonzero(grid.mask)):
        if (row, col) == field.goal:
            continue
        neighbours = [
            field.values[row + dr, col + dc]
            for dr, dc, _ in MOVES
            if grid.is_navigable(row + dr, col + dc)
        ]
        assert max(neighbours) > field.values[row, col], (row, col)


def test_recomputation_is_idempotent(floor) -> None:
    grid, clearance = floor
    first = solve_value_field(grid, clearance, (90, 10))
    second = solve_value_field(grid, clearance, (90, 10))

    np.testing.assert_array_equal(first.values, second.values)
    assert first.iterations == second.iterations


def test_goal_outside_grid_is_unreachable(floor) -> None:
    grid, clearance = floor
    with pytest.raises(UnreachableError, match="outside"):
        solve_value_field(grid, clearance, (500, 10))


def test_blocked_goal_snaps_to_nearest_navigable_cell(floor) -> None:
    grid, clearance = floor
    field = solve_value_field(grid, clearance, (90, 25))

    assert grid.is_navigable(*field.goal)
    assert field.goal == (3, 18)


def test_blocked_goal_without_nearby_cell_raises(floor) -> None:
    grid, clearance = floor
    settings = EngineSettings(spiral_radius=1)
    with pytest.raises(UnreachableError, match="not navigable"):
        solve_value_field(grid, clearance, (120, 35), settings)


def test_clearance_shape_mismatch_raises(floor) -> None:
    grid, _ = floor
    with pytest.raises(ValueError, match="shape"):
        solve_value_field(grid, np.zeros((2, 2)), (90, 10))
