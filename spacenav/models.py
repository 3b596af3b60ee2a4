"""Record types for corridors, destinations and route points.

Corridors and destinations are validated once when definitions are loaded;
the engine trusts them afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Point2D = tuple[float, float]


class Corridor(BaseModel):
    """Simple polygon describing a walkable area on one floor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    floor: int
    polygon: list[Point2D] = Field(default_factory=list)
    display_name: str | None = Field(default=None, alias="displayName")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("corridor id is required")
        return str(value)

    @field_validator("polygon", mode="before")
    @classmethod
    def _coerce_polygon(cls, value: Any) -> list[Point2D]:
        if value is None:
            return []
        points: list[Point2D] = []
        for point in value:
            if isinstance(point, dict):
                points.append((float(point["x"]), float(point["y"])))
            else:
                if len(point) < 2:
                    raise ValueError("polygon points must be [x, y] pairs")
                points.append((float(point[0]), float(point[1])))
        return points

    @property
    def label(self) -> str:
        return self.display_name or self.name or self.id

    @property
    def is_polygon(self) -> bool:
        return len(self.polygon) >= 3

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Axis-aligned bounds `(min_x, min_y, max_x, max_y)`."""
        if not self.polygon:
            return 0.0, 0.0, 0.0, 0.0
        xs = [p[0] for p in self.polygon]
        ys = [p[1] for p in self.polygon]
        return min(xs), min(ys), max(xs), max(ys)


class Destination(BaseModel):
    """Named, floor-scoped point of interest (exit, lift lobby, room)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    zone: str | None = None
    floor: int
    x: float
    y: float
    facing: Literal["N", "S", "E", "W"] = "N"

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or str(value).strip() == "":
            raise ValueError("destination id is required")
        return str(value)

    @field_validator("zone", mode="before")
    @classmethod
    def _blank_zone(cls, value: Any) -> str | None:
        if value is None or str(value).strip() == "":
            return None
        return str(value)

    @field_validator("facing", mode="before")
    @classmethod
    def _upper_facing(cls, value: Any) -> str:
        if value is None or value == "":
            return "N"
        return str(value).strip().upper()[:1]

    @property
    def position(self) -> Point2D:
        return self.x, self.y


@dataclass(slots=True)
class PathPoint:
    """One vertex of a refined route in world coordinates."""

    x: float
    y: float
    floor: int
    location_name: str = ""
    is_transfer: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "x": float(self.x),
            "y": float(self.y),
            "floor": int(self.floor),
            "locationName": self.location_name,
        }
        if self.is_transfer:
            payload["isFloorChange"] = True
        return payload
