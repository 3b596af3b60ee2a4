"""Unit tests for spacenav.definitions."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from spacenav.definitions import load_definitions, parse_definitions, save_definitions
from spacenav.errors import ConfigurationError


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    data = parse_definitions(
        {
            "corridors": [
                {"id": "c1", "name": "Main", "floor": 1, "polygon": [{"x": 0, "y": 0}, [10, 0], [10, 5]]}
            ],
            "destinations": [{"id": 7, "name": "Lift Lobby", "floor": 1, "x": 5, "y": 2, "facing": "east"}],
            "gridSize": 20,
        }
    )

    out = save_definitions(tmp_path / "data" / "defs.json", data.corridors, data.destinations, data.grid_size)
    raw = json.loads(Path(out).read_text(encoding="utf-8"))
    assert "savedAt" in raw
    assert raw["gridSize"] == 20

    loaded = load_definitions(out)
    assert loaded.corridors[0].polygon == [(0.0, 0.0), (10.0, 0.0), (10.0, 5.0)]
    assert loaded.destinations[0].id == "7"
    assert loaded.destinations[0].facing == "E"
    assert loaded.grid_size == 20
    assert loaded.saved_at == raw["savedAt"]


def test_missing_file_yields_empty_definitions(tmp_path: Path) -> None:
    loaded = load_definitions(tmp_path / "absent.json")
    assert loaded.corridors == []
    assert loaded.destinations == []


def test_invalid_record_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        parse_definitions({"destinations": [{"id": "d", "name": "No coords", "floor": 1}]})

    assert "details" in excinfo.value.payload()
