"""Unit tests for spacenav.config."""

from __future__ import annotations

import pytest

from spacenav.config import EngineSettings, definitions_path_from_env


def test_defaults() -> None:
    settings = EngineSettings()
    assert settings.resolution == 20.0
    assert settings.discount == 0.9999
    assert settings.max_iterations == 1000


@pytest.mark.parametrize(
    "kwargs",
    [
        {"resolution": 0},
        {"discount": 1.0},
        {"discount": 0.0},
        {"step_cost": -1},
        {"max_steps": 0},
        {"spiral_radius": -1},
    ],
)
def test_invalid_settings_raise(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        EngineSettings(**kwargs)


def test_from_env_reads_typed_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPACENAV_GRID_RESOLUTION", "10")
    monkeypatch.setenv("SPACENAV_MAX_ITERATIONS", "250")
    monkeypatch.setenv("SPACENAV_DISCOUNT", " ")

    settings = EngineSettings.from_env(max_steps=7)

    assert settings.resolution == 10.0
    assert settings.max_iterations == 250
    assert isinstance(settings.max_iterations, int)
    assert settings.discount == 0.9999
    assert settings.max_steps == 7


def test_from_env_rejects_non_numeric(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPACENAV_DISCOUNT", "high")
    with pytest.raises(ValueError, match="SPACENAV_DISCOUNT"):
        EngineSettings.from_env()


def test_definitions_path_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPACENAV_DEFINITIONS", raising=False)
    assert definitions_path_from_env() == "data/space_definitions.json"

    monkeypatch.setenv("SPACENAV_DEFINITIONS", "/tmp/defs.json ")
    assert definitions_path_from_env() == "/tmp/defs.json"
