"""Engine tuning constants and environment-driven configuration.

Every magic number of the solver and refiner lives here so it can be tuned
per building. Values are read once from `SPACENAV_*` environment variables.

Env vars:
  SPACENAV_GRID_RESOLUTION=20          world units per grid cell
  SPACENAV_DISCOUNT=0.9999             value-iteration discount factor
  SPACENAV_STEP_COST=1.0               base cost of an orthogonal move
  SPACENAV_SAFE_DISTANCE=3             wall penalty threshold in cells
  SPACENAV_PENALTY_EXPONENT=2          wall penalty exponent
  SPACENAV_PENALTY_MULTIPLIER=5        wall penalty multiplier
  SPACENAV_MAX_ITERATIONS=1000         solver sweep cap
  SPACENAV_MAX_STEPS=1000              extractor step cap
  SPACENAV_DEFINITIONS=data/space_definitions.json
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields


@dataclass(slots=True)
class EngineSettings:
    """Tuning constants shared by the solver, extractor and refiner."""

    resolution: float = 20.0
    discount: float = 0.9999
    step_cost: float = 1.0
    safe_distance: float = 3.0
    penalty_exponent: float = 2.0
    penalty_multiplier: float = 5.0
    convergence_epsilon: float = 0.01
    max_iterations: int = 1000
    max_steps: int = 1000
    spiral_radius: int = 24

    # Refinement tolerances in world units.
    simplify_tolerance: float = 15.0
    corridor_tolerance: float = 20.0
    bbox_padding: float = 5.0
    axis_tolerance: float = 1.0
    destination_snap_distance: float = 10.0
    start_snap_distance: float = 10.0
    arrow_spacing: float = 60.0

    # Centerline estimation.
    centerline_samples: int = 40
    centerline_cluster_threshold: float = 40.0
    horizontal_ratio: float = 1.2

    # World extent used when a floor has no explicit dimensions.
    default_world_size: tuple[float, float] = (2400.0, 1800.0)
    world_padding: float = 100.0
    floor_dimensions: dict[int, tuple[float, float]] = field(default_factory=dict)

    default_floor: int = 1
    train_yield_every: int = 5

    def __post_init__(self) -> None:
        if self.resolution <= 0:
            raise ValueError("resolution must be > 0")
        if not 0 < self.discount < 1:
            raise ValueError("discount must be in (0, 1)")
        if self.step_cost <= 0:
            raise ValueError("step_cost must be > 0")
        if self.max_iterations <= 0 or self.max_steps <= 0:
            raise ValueError("max_iterations and max_steps must be > 0")
        if self.spiral_radius < 0:
            raise ValueError("spiral_radius must be >= 0")

    @classmethod
    def from_env(cls, **overrides: object) -> "EngineSettings":
        """Build settings from `SPACENAV_*` env vars, then apply overrides."""
        env_map = {
            "resolution": "SPACENAV_GRID_RESOLUTION",
            "discount": "SPACENAV_DISCOUNT",
            "step_cost": "SPACENAV_STEP_COST",
            "safe_distance": "SPACENAV_SAFE_DISTANCE",
            "penalty_exponent": "SPACENAV_PENALTY_EXPONENT",
            "penalty_multiplier": "SPACENAV_PENALTY_MULTIPLIER",
            "convergence_epsilon": "SPACENAV_EPSILON",
            "max_iterations": "SPACENAV_MAX_ITERATIONS",
            "max_steps": "SPACENAV_MAX_STEPS",
            "spiral_radius": "SPACENAV_SPIRAL_RADIUS",
            "simplify_tolerance": "SPACENAV_SIMPLIFY_TOLERANCE",
            "corridor_tolerance": "SPACENAV_CORRIDOR_TOLERANCE",
            "arrow_spacing": "SPACENAV_ARROW_SPACING",
            "default_floor": "SPACENAV_DEFAULT_FLOOR",
        }
        types = {f.name: f.type for f in fields(cls)}

        values: dict[str, object] = {}
        for name, env_key in env_map.items():
            raw = os.getenv(env_key, "").strip()
            if not raw:
                continue
            try:
                values[name] = int(raw) if types[name] in ("int", int) else float(raw)
            except ValueError as exc:
                raise ValueError(f"{env_key} must be numeric, got {raw!r}") from exc

        values.update(overrides)
        return cls(**values)


def definitions_path_from_env() -> str:
    """Return the configured definitions JSON path."""
    return os.getenv("SPACENAV_DEFINITIONS", "data/space_definitions.json").strip()
