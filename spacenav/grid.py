"""Navigable grid generation from corridor polygons.

Purpose:
- Rasterize per-floor corridor polygons into a binary navigable mask.
- Compute the clearance (distance-to-wall) field used for cost shaping.
- Export grid and metadata as JSON for clients.

Grid convention: `mask[row, col] == 1` means navigable; rows follow world Y
and columns follow world X, one cell per `resolution` world units.

Usage example:
    >>> grid = rasterize_corridors([[(0, 0), (100, 0), (100, 20), (0, 20)]], (200, 100), 5)
    >>> clearance = compute_clearance(grid)
"""

from __future__ import annotations

import json
import math
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np

from spacenav.geometry import points_in_polygon

Point2D = tuple[float, float]
GridPoint = tuple[int, int]


@dataclass(slots=True)
class NavGrid:
    """Binary navigable mask plus its world-space scale."""

    mask: np.ndarray
    resolution: float

    @property
    def height(self) -> int:
        return int(self.mask.shape[0])

    @property
    def width(self) -> int:
        return int(self.mask.shape[1])

    @property
    def navigable_count(self) -> int:
        return int(np.count_nonzero(self.mask))

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def is_navigable(self, row: int, col: int) -> bool:
        return self.in_bounds(row, col) and int(self.mask[row, col]) == 1

    def world_to_cell(self, x: float, y: float) -> GridPoint:
        """Map world `(x, y)` to the unclamped cell `(row, col)` containing it."""
        return int(math.floor(y / self.resolution)), int(math.floor(x / self.resolution))

    def cell_center(self, row: int, col: int) -> Point2D:
        """World coordinate of a cell centre."""
        return (col + 0.5) * self.resolution, (row + 0.5) * self.resolution


def _validate_world_size(world_size: tuple[float, float]) -> tuple[float, float]:
    """Validate and normalize world dimensions."""
    if len(world_size) != 2:
        raise ValueError("world_size must be a tuple of (width, height)")
    width, height = float(world_size[0]), float(world_size[1])
    if width < 0 or height < 0:
        raise ValueError("world_size dimensions must be >= 0")
    return width, height


def rasterize_corridors(
    polygons: Iterable[Sequence[Point2D]],
    world_size: tuple[float, float],
    resolution: float,
) -> NavGrid:
    """Rasterize corridor polygons into a navigable grid.

    A cell is navigable iff its centre or any of its four corners lies inside
    any polygon. Sampling corners closes the seams between polygons that only
    share an edge or a corner.

    Args:
        polygons: Corridor outlines as lists of `(x, y)` world points.
        world_size: Floor extent as `(width, height)` in world units.
        resolution: World units per cell.

    Returns:
        NavGrid of shape `(ceil(height / resolution), ceil(width / resolution))`.

    Raises:
        ValueError: If resolution or world size are invalid.
    """
    if resolution <= 0:
        raise ValueError("resolution must be > 0")
    width, height = _validate_world_size(world_size)

    cols = int(math.ceil(width / resolution))
    rows = int(math.ceil(height / resolution))
    mask = np.zeros((rows, cols), dtype=np.uint8)
    if rows == 0 or cols == 0:
        return NavGrid(mask=mask, resolution=float(resolution))

    # Corner lattice is shared by neighbouring cells: (rows + 1, cols + 1).
    lattice_x, lattice_y = np.meshgrid(
        np.arange(cols + 1, dtype=float) * resolution,
        np.arange(rows + 1, dtype=float) * resolution,
    )
    center_x, center_y = np.meshgrid(
        (np.arange(cols, dtype=float) + 0.5) * resolution,
        (np.arange(rows, dtype=float) + 0.5) * resolution,
    )

    corner_hits = np.zeros((rows + 1, cols + 1), dtype=bool)
    center_hits = np.zeros((rows, cols), dtype=bool)
    for polygon in polygons:
        if len(polygon) < 3:
            continue
        corner_hits |= points_in_polygon(lattice_x, lattice_y, polygon)
        center_hits |= points_in_polygon(center_x, center_y, polygon)

    navigable = (
        center_hits
        | corner_hits[:-1, :-1]
        | corner_hits[:-1, 1:]
        | corner_hits[1:, :-1]
        | corner_hits[1:, 1:]
    )
    mask[navigable] = 1
    return NavGrid(mask=mask, resolution=float(resolution))


def compute_clearance(grid: NavGrid) -> np.ndarray:
    """Manhattan distance (in cells) from each cell to the nearest wall.

    Two raster passes propagate `min(neighbour + 1)`: forward from top-left
    and backward from bottom-right. Non-navigable cells hold 0 and the area
    outside the grid counts as wall. Values are bounded by `width + height`.
    """
    rows, cols = grid.height, grid.width
    bound = float(rows + cols)
    field = np.where(grid.mask > 0, bound, 0.0)
    if field.size == 0:
        return field

    # Along a row, d[x] = min(d[x], d[x-1] + 1) unrolls into a running
    # minimum of (d - x) shifted back by x. The frame sits at x = -1.
    idx = np.arange(cols, dtype=float)

    def sweep_row(row: np.ndarray, above: np.ndarray) -> np.ndarray:
        row = np.minimum(row, above + 1.0)
        row = np.minimum(row, idx + 1.0)
        return np.minimum.accumulate(row - idx) + idx

    # Forward pass: top-left to bottom-right.
    above = np.zeros(cols)
    for r in range(rows):
        field[r] = sweep_row(field[r], above)
        above = field[r]

    # Backward pass: bottom-right to top-left, on mirrored rows.
    below = np.zeros(cols)
    for r in range(rows - 1, -1, -1):
        field[r] = sweep_row(field[r][::-1], below[::-1])[::-1]
        below = field[r]

    return np.minimum(field, bound)


def find_nearest_navigable_cell(grid: NavGrid, row: int, col: int, max_radius: int = 24) -> GridPoint | None:
    """Find the nearest navigable cell to `(row, col)`.

    Search expands in square rings around the requested cell and returns the
    navigable cell with minimum Euclidean distance in the first ring that
    contains any candidates. The requested cell may lie outside the grid.
    """
    if grid.is_navigable(row, col):
        return row, col

    for radius in range(1, max_radius + 1):
        candidates: list[tuple[float, int, int]] = []
        r0, r1 = row - radius, row + radius
        c0, c1 = col - radius, col + radius

        # Top and bottom rows.
        for c in range(c0, c1 + 1):
            if grid.is_navigable(r0, c):
                candidates.append(((r0 - row) ** 2 + (c - col) ** 2, r0, c))
            if grid.is_navigable(r1, c):
                candidates.append(((r1 - row) ** 2 + (c - col) ** 2, r1, c))

        # Left and right columns excluding corners already checked.
        for r in range(r0 + 1, r1):
            if grid.is_navigable(r, c0):
                candidates.append(((r - row) ** 2 + (c0 - col) ** 2, r, c0))
            if grid.is_navigable(r, c1):
                candidates.append(((r - row) ** 2 + (c1 - col) ** 2, r, c1))

        if candidates:
            candidates.sort(key=lambda item: item[0])
            _, best_r, best_c = candidates[0]
            return best_r, best_c

    return None


def check_connectivity(grid: NavGrid, cells: dict[str, GridPoint]) -> dict[str, object]:
    """Check that every named cell is reachable from the first one (8-way BFS)."""
    named = {key: cell for key, cell in cells.items() if grid.is_navigable(*cell)}
    blocked = sorted(set(cells) - set(named))
    if len(named) < 2:
        return {"valid": not blocked, "unreachable": blocked}

    start = next(iter(named.values()))
    seen: set[GridPoint] = {start}
    queue: deque[GridPoint] = deque([start])
    while queue:
        r, c = queue.popleft()
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                nxt = (r + dr, c + dc)
                if nxt in seen or not grid.is_navigable(*nxt):
                    continue
                seen.add(nxt)
                queue.append(nxt)

    unreachable = blocked + sorted(key for key, cell in named.items() if cell not in seen)
    return {"valid": not unreachable, "unreachable": unreachable}


def export_grid_json(output_path: str | Path, grid: NavGrid, floor: int) -> str:
    """Export a navigable grid and metadata to a JSON file.

    Returns:
        String path to exported JSON file.

    Raises:
        ValueError: If the grid is empty.
    """
    if grid.mask.size == 0:
        raise ValueError("grid must be a non-empty 2D array")

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "floor": int(floor),
        "grid": grid.mask.astype(int).tolist(),
        "rows": grid.height,
        "cols": grid.width,
        "resolution": float(grid.resolution),
        "navigable_cells": grid.navigable_count,
    }

    with output.open("w", encoding="utf-8") as f:
        json.dump(payload, f)

    return str(output)
