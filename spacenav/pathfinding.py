"""Greedy ascent on a converged value field.

Purpose:
- Map a world start point to a navigable cell (spiral relocation if blocked).
- Climb the destination's value field to its goal cell.
- Report partial paths instead of failing when the climb stalls.

Usage example:
    >>> field = solve_value_field(grid, clearance, (90, 10))
    >>> result = extract_path(grid, field, (10, 10))
    >>> result.path[-1]
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np

from spacenav.config import EngineSettings
from spacenav.errors import ConvergenceWarning, UnreachableError
from spacenav.grid import GridPoint, NavGrid, Point2D, find_nearest_navigable_cell
from spacenav.value_iteration import MOVES, ValueField

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractionResult:
    """Raw grid-aligned path in world coordinates (cell centres)."""

    success: bool
    path: list[Point2D]
    steps: int
    start_cell: GridPoint
    cells: list[GridPoint] = field(default_factory=list)
    warning: str | None = None

    @property
    def reached_goal(self) -> bool:
        return self.success


def _validate_field(grid: NavGrid, value_field: ValueField) -> None:
    if grid.mask.ndim != 2 or grid.mask.size == 0:
        raise ValueError("Grid must be a non-empty 2D array")
    if value_field.values.shape != grid.mask.shape:
        raise ValueError("Value field shape must match the grid")


def resolve_start_cell(grid: NavGrid, x: float, y: float, max_radius: int = 24) -> GridPoint:
    """Cell containing `(x, y)`, or the nearest navigable cell to it.

    Raises:
        UnreachableError: If no navigable cell lies within `max_radius` rings.
    """
    row, col = grid.world_to_cell(x, y)
    if grid.is_navigable(row, col):
        return row, col

    nearest = find_nearest_navigable_cell(grid, row, col, max_radius=max_radius)
    if nearest is None:
        raise UnreachableError(f"Start position ({x:.0f}, {y:.0f}) is not navigable")
    logger.info("Adjusted start cell (%d, %d) to (%d, %d)", row, col, *nearest)
    return nearest


def _best_neighbor(grid: NavGrid, values: np.ndarray, cell: GridPoint) -> tuple[GridPoint | None, float]:
    """Highest-valued navigable 8-neighbour; ties keep the first in move order."""
    r, c = cell
    best: GridPoint | None = None
    best_value = -np.inf
    for dr, dc, _ in MOVES:
        nr, nc = r + dr, c + dc
        if not grid.is_navigable(nr, nc):
            continue
        value = float(values[nr, nc])
        if value > best_value:
            best_value = value
            best = (nr, nc)
    return best, best_value


def extract_path(
    grid: NavGrid,
    value_field: ValueField,
    start_xy: Point2D,
    settings: EngineSettings | None = None,
) -> ExtractionResult:
    """Follow the value field uphill from `start_xy` to the field's goal cell.

    Args:
        grid: Navigable grid the field was solved on.
        value_field: Converged field for the destination.
        start_xy: World start coordinate.
        settings: Step cap and spiral radius.

    Returns:
        ExtractionResult whose `path` begins at the start cell centre. When the
        goal is not reached, `success` is False and `warning` explains why.

    Raises:
        UnreachableError: If the start has no navigable cell nearby or is not
            connected to the goal.
        ValueError: If the grid and field do not match.
    """
    settings = settings or EngineSettings()
    _validate_field(grid, value_field)

    start = resolve_start_cell(grid, start_xy[0], start_xy[1], settings.spiral_radius)
    if not value_field.is_reached(*start):
        raise UnreachableError(
            f"Start position ({start_xy[0]:.0f}, {start_xy[1]:.0f}) is not connected to the destination"
        )

    values = value_field.values
    goal = value_field.goal
    current = start
    current_value = float(values[current])
    cells = [current]
    steps = 0

    while current != goal and steps < settings.max_steps:
        nxt, nxt_value = _best_neighbor(grid, values, current)
        if nxt is None or nxt_value <= current_value:
            message = f"Path extraction stalled at cell {current} after {steps} steps"
            logger.warning(message)
            return ExtractionResult(
                success=False,
                path=[grid.cell_center(*cell) for cell in cells],
                steps=steps,
                start_cell=start,
                cells=cells,
                warning=message,
            )

        steps += 1
        current, current_value = nxt, nxt_value
        cells.append(current)

    path = [grid.cell_center(*cell) for cell in cells]
    if current != goal:
        message = f"Path extraction hit the {settings.max_steps}-step cap before reaching the goal"
        warnings.warn(message, ConvergenceWarning, stacklevel=2)
        return ExtractionResult(
            success=False, path=path, steps=steps, start_cell=start, cells=cells, warning=message
        )

    return ExtractionResult(success=True, path=path, steps=steps, start_cell=start, cells=cells)
