"""Pytest global fixtures shared by unit and integration tests."""

from __future__ import annotations

import pytest

from spacenav.config import EngineSettings
from spacenav.engine import NavigationEngine

STRAIGHT = [[0, 0], [100, 0], [100, 20], [0, 20]]
VERTICAL_ARM = [[80, 0], [100, 0], [100, 100], [80, 100]]


@pytest.fixture()
def settings() -> EngineSettings:
    """Fine grid whose world size follows the data extent."""
    return EngineSettings(resolution=5.0, default_world_size=(0.0, 0.0))


@pytest.fixture()
def straight_corridors() -> list[dict]:
    return [{"id": "c1", "name": "Main Corridor", "floor": 1, "polygon": STRAIGHT}]


@pytest.fixture()
def l_corridors() -> list[dict]:
    return [
        {"id": "h", "name": "East Wing", "floor": 1, "polygon": STRAIGHT},
        {"id": "v", "name": "North Wing", "floor": 1, "polygon": VERTICAL_ARM},
    ]


@pytest.fixture()
def straight_engine(settings: EngineSettings, straight_corridors: list[dict]) -> NavigationEngine:
    destinations = [
        {"id": "entrance", "name": "Main Entrance", "floor": 1, "x": 10, "y": 10},
        {"id": "pantry", "name": "Common Pantry", "zone": "PANTRY", "floor": 1, "x": 90, "y": 10},
    ]
    return NavigationEngine(settings, straight_corridors, destinations)


@pytest.fixture()
def l_engine(settings: EngineSettings, l_corridors: list[dict]) -> NavigationEngine:
    destinations = [{"id": "north", "name": "North Exit", "floor": 1, "x": 90, "y": 90}]
    return NavigationEngine(settings, l_corridors, destinations)


@pytest.fixture()
def two_floor_engine(settings: EngineSettings) -> NavigationEngine:
    corridors = [
        {"id": "f1", "name": "Ground Corridor", "floor": 1, "polygon": STRAIGHT},
        {"id": "f2", "name": "Upper Corridor", "floor": 2, "polygon": STRAIGHT},
    ]
    destinations = [
        {"id": "lift-1", "name": "Lift Lobby", "floor": 1, "x": 90, "y": 10},
        {"id": "lift-2", "name": "Lift Lobby", "floor": 2, "x": 90, "y": 10},
        {"id": "office", "name": "Office", "floor": 2, "x": 10, "y": 10},
    ]
    return NavigationEngine(settings, corridors, destinations)
