"""JSON persistence for corridor and destination definitions.

File layout:
    {
      "corridors": [{"id", "name", "floor", "polygon": [[x, y], ...]}],
      "destinations": [{"id", "name", "zone", "floor", "x", "y", "facing"}],
      "gridSize": 10,
      "savedAt": "2024-01-01T00:00:00+00:00"
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from spacenav.errors import ConfigurationError
from spacenav.models import Corridor, Destination

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 10


@dataclass(slots=True)
class SpaceDefinitions:
    corridors: list[Corridor] = field(default_factory=list)
    destinations: list[Destination] = field(default_factory=list)
    grid_size: int = DEFAULT_GRID_SIZE
    saved_at: str | None = None


def parse_definitions(data: dict[str, Any]) -> SpaceDefinitions:
    """Validate raw definition records.

    Raises:
        ConfigurationError: If any record fails validation.
    """
    try:
        corridors = [Corridor.model_validate(item) for item in data.get("corridors") or []]
        destinations = [Destination.model_validate(item) for item in data.get("destinations") or []]
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid space definitions: {exc.error_count()} validation error(s)", details=str(exc)
        ) from exc

    return SpaceDefinitions(
        corridors=corridors,
        destinations=destinations,
        grid_size=int(data.get("gridSize") or DEFAULT_GRID_SIZE),
        saved_at=data.get("savedAt"),
    )


def load_definitions(path: str | Path) -> SpaceDefinitions:
    """Load definitions from disk; a missing file yields empty definitions."""
    source = Path(path)
    if not source.exists():
        logger.info("No space definitions at %s", source)
        return SpaceDefinitions()

    with source.open("r", encoding="utf-8") as f:
        data = json.load(f)

    definitions = parse_definitions(data)
    logger.info(
        "Space definitions loaded: %d corridors, %d destinations",
        len(definitions.corridors),
        len(definitions.destinations),
    )
    return definitions


def dump_definitions(
    corridors: Iterable[Corridor],
    destinations: Iterable[Destination],
    grid_size: int = DEFAULT_GRID_SIZE,
) -> dict[str, Any]:
    return {
        "corridors": [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in corridors],
        "destinations": [d.model_dump(mode="json") for d in destinations],
        "gridSize": int(grid_size),
    }


def save_definitions(
    path: str | Path,
    corridors: Iterable[Corridor],
    destinations: Iterable[Destination],
    grid_size: int = DEFAULT_GRID_SIZE,
) -> str:
    """Write definitions with a `savedAt` timestamp.

    Returns:
        String path to the written JSON file.
    """
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)

    payload = dump_definitions(corridors, destinations, grid_size)
    payload["savedAt"] = datetime.now(timezone.utc).isoformat()

    with output.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info("Space definitions saved to %s", output)
    return str(output)
