"""Debug rendering of a floor grid, a value field and a route.

Walls are black, navigable cells grey, reached cells of a value field are
colour-mapped from far (blue) to near (red), and the route is drawn as a
white polyline with the goal cell marked.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import cv2
import numpy as np

from spacenav.grid import NavGrid
from spacenav.value_iteration import UNREACHED, ValueField

Point2D = tuple[float, float]


def render_navigation_image(
    grid: NavGrid,
    value_field: ValueField | None = None,
    path: Sequence[Point2D] | None = None,
    scale: int = 4,
) -> np.ndarray:
    """Render a BGR image with `scale` pixels per grid cell."""
    if scale <= 0:
        raise ValueError("scale must be > 0")
    if grid.mask.size == 0:
        raise ValueError("grid must be a non-empty 2D array")

    navigable = grid.mask > 0
    image = np.zeros((grid.height, grid.width, 3), dtype=np.uint8)
    image[navigable] = (90, 90, 90)

    if value_field is not None:
        values = value_field.values
        reached = navigable & (values > UNREACHED / 2.0)
        if reached.any():
            lo, hi = float(values[reached].min()), float(values[reached].max())
            span = hi - lo if hi > lo else 1.0
            scaled = np.zeros(values.shape, dtype=np.uint8)
            scaled[reached] = np.clip((values[reached] - lo) / span * 255.0, 0, 255).astype(np.uint8)
            heat = cv2.applyColorMap(scaled, cv2.COLORMAP_JET)
            image[reached] = heat[reached]

    image = cv2.resize(image, (grid.width * scale, grid.height * scale), interpolation=cv2.INTER_NEAREST)

    if path:
        pixels = np.array(
            [[int(x / grid.resolution * scale), int(y / grid.resolution * scale)] for x, y in path],
            dtype=np.int32,
        )
        cv2.polylines(image, [pixels.reshape(-1, 1, 2)], isClosed=False, color=(255, 255, 255), thickness=2)
        cv2.circle(image, tuple(int(v) for v in pixels[0]), max(2, scale), (0, 255, 0), -1)

    if value_field is not None:
        gr, gc = value_field.goal
        center = (int((gc + 0.5) * scale), int((gr + 0.5) * scale))
        cv2.circle(image, center, max(3, scale), (0, 0, 255), -1)

    return image


def encode_png(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", image)
    if not ok:
        raise ValueError("Failed to encode image as PNG")
    return buffer.tobytes()


def render_navigation_png(
    grid: NavGrid,
    output_path: str | Path,
    value_field: ValueField | None = None,
    path: Sequence[Point2D] | None = None,
    scale: int = 4,
) -> str:
    """Write the debug rendering to `output_path` and return the path."""
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    image = render_navigation_image(grid, value_field, path, scale)
    if not cv2.imwrite(str(output), image):
        raise ValueError(f"Failed to write image to {output}")
    return str(output)
