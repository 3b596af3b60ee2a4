"""Per-destination value iteration over a navigable grid.

The value of a cell is the negated, discounted cost of the cheapest walk to
the goal. Moves are 8-way; every move out of a cell near a wall is scaled by
a wall penalty so that optimal routes keep to corridor centres.

    wallPenalty(s) = 0                                  if clearance(s) >= SAFE
                   = (SAFE - clearance(s))^EXP * K      otherwise
    V(s) = max_n [ -move(s, n) * step * (1 + wallPenalty(s)) + gamma * V(n) ]

Sweeps are Gauss-Seidel in place over a four-colour (row parity, column
parity) ordering: every colour class sees the freshest values of the
others, and one class can be updated as a single numpy operation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from spacenav.config import EngineSettings
from spacenav.errors import UnreachableError
from spacenav.grid import GridPoint, NavGrid, find_nearest_navigable_cell

logger = logging.getLogger(__name__)

UNREACHED = -100000.0
_REACHED_FLOOR = UNREACHED / 2.0

# (d_row, d_col, move cost)
MOVES: tuple[tuple[int, int, float], ...] = (
    (-1, 0, 1.0),
    (1, 0, 1.0),
    (0, -1, 1.0),
    (0, 1, 1.0),
    (-1, -1, math.sqrt(2)),
    (-1, 1, math.sqrt(2)),
    (1, -1, math.sqrt(2)),
    (1, 1, math.sqrt(2)),
)


@dataclass(slots=True)
class ValueField:
    """Converged value array for one destination."""

    destination_id: str
    goal: GridPoint
    values: np.ndarray
    iterations: int
    converged: bool

    def value_at(self, row: int, col: int) -> float:
        return float(self.values[row, col])

    def is_reached(self, row: int, col: int) -> bool:
        return float(self.values[row, col]) > _REACHED_FLOOR


@dataclass(slots=True)
class TrainingProgress:
    """Progress report emitted after each destination of a batch run."""

    completed: int
    total: int
    destination_id: str

    @property
    def fraction(self) -> float:
        return 1.0 if self.total == 0 else self.completed / self.total


def wall_penalty(
    clearance: np.ndarray,
    safe_distance: float = 3.0,
    exponent: float = 2.0,
    multiplier: float = 5.0,
) -> np.ndarray:
    """Per-cell penalty for standing closer than `safe_distance` to a wall."""
    deficit = np.clip(safe_distance - clearance, 0.0, None)
    return np.where(clearance >= safe_distance, 0.0, deficit**exponent * multiplier)


def resolve_goal_cell(grid: NavGrid, x: float, y: float, max_radius: int) -> GridPoint:
    """Map a world goal to a navigable cell, relocating it when blocked."""
    row, col = grid.world_to_cell(x, y)
    if not grid.in_bounds(row, col):
        raise UnreachableError(f"Destination ({x:.0f}, {y:.0f}) lies outside the floor grid")

    if grid.is_navigable(row, col):
        return row, col

    snapped = find_nearest_navigable_cell(grid, row, col, max_radius=max_radius)
    if snapped is None:
        raise UnreachableError(
            f"Destination ({x:.0f}, {y:.0f}) is not navigable and no navigable cell is nearby"
        )
    logger.info("Goal cell (%d, %d) not navigable, snapped to (%d, %d)", row, col, *snapped)
    return snapped


def solve_value_field(
    grid: NavGrid,
    clearance: np.ndarray,
    goal_xy: tuple[float, float],
    settings: EngineSettings | None = None,
    destination_id: str = "",
) -> ValueField:
    """Run value iteration towards one world-space goal.

    Args:
        grid: Navigable grid of the goal's floor.
        clearance: Clearance field matching `grid`.
        goal_xy: Goal world coordinate.
        settings: Discount, costs, wall penalty and convergence constants.
        destination_id: Cache key recorded on the result.

    Returns:
        ValueField with the goal at 0, reached cells negative and
        unreachable cells left at `UNREACHED`.

    Raises:
        UnreachableError: If the goal is off-grid or has no navigable cell nearby.
        ValueError: If the clearance field does not match the grid.
    """
    settings = settings or EngineSettings()
    if clearance.shape != grid.mask.shape:
        raise ValueError("clearance field shape must match the grid")

    goal = resolve_goal_cell(grid, goal_xy[0], goal_xy[1], settings.spiral_radius)

    # Sweep only the bounding box of navigable cells; the rest stays UNREACHED.
    nav_rows, nav_cols = np.nonzero(grid.mask)
    r0, r1 = int(nav_rows.min()), int(nav_rows.max()) + 1
    c0, c1 = int(nav_cols.min()), int(nav_cols.max()) + 1
    mask = grid.mask[r0:r1, c0:c1] > 0
    local_goal = (goal[0] - r0, goal[1] - c0)
    rows, cols = mask.shape

    factor = settings.step_cost * (
        1.0
        + wall_penalty(
            clearance[r0:r1, c0:c1],
            safe_distance=settings.safe_distance,
            exponent=settings.penalty_exponent,
            multiplier=settings.penalty_multiplier,
        )
    )

    # Padded buffers make neighbour lookups plain slices.
    padded = np.full((rows + 2, cols + 2), UNREACHED, dtype=np.float64)
    nav_padded = np.zeros((rows + 2, cols + 2), dtype=bool)
    nav_padded[1:-1, 1:-1] = mask
    values = padded[1:-1, 1:-1]
    values[local_goal] = 0.0

    updatable = mask.copy()
    updatable[local_goal] = False
    rr, cc = np.indices((rows, cols))
    colours = [updatable & (rr % 2 == pr) & (cc % 2 == pc) for pr in (0, 1) for pc in (0, 1)]
    colours = [mask for mask in colours if mask.any()]

    gamma = settings.discount
    best = np.empty((rows, cols), dtype=np.float64)
    converged = False
    iteration = 0

    for iteration in range(1, settings.max_iterations + 1):
        max_delta = 0.0
        for colour in colours:
            best.fill(UNREACHED)
            for dr, dc, move in MOVES:
                nb = padded[1 + dr : 1 + dr + rows, 1 + dc : 1 + dc + cols]
                nb_ok = nav_padded[1 + dr : 1 + dr + rows, 1 + dc : 1 + dc + cols] & (nb > _REACHED_FLOOR)
                candidate = np.where(nb_ok, -move * factor + gamma * nb, UNREACHED)
                np.maximum(best, candidate, out=best)

            update = colour & (best > _REACHED_FLOOR)
            if not update.any():
                continue
            delta = np.abs(best[update] - values[update])
            max_delta = max(max_delta, float(delta.max()))
            values[update] = best[update]

        if max_delta < settings.convergence_epsilon:
            converged = True
            break

    if not converged:
        logger.warning(
            "Value iteration for %s hit the %d-sweep cap", destination_id or goal, settings.max_iterations
        )
    else:
        logger.debug("Value iteration for %s converged in %d sweeps", destination_id or goal, iteration)

    full = np.full(grid.mask.shape, UNREACHED, dtype=np.float64)
    full[r0:r1, c0:c1] = values
    return ValueField(
        destination_id=destination_id,
        goal=goal,
        values=full,
        iterations=iteration,
        converged=converged,
    )
