"""Error taxonomy for the navigation engine.

Engine operations raise subclasses of `NavigationError`; the HTTP layer turns
them into `{success: false, error, ...}` payloads via `payload()`.
Low-level helpers (grid, pathfinding) keep raising `ValueError` for malformed
arguments.
"""

from __future__ import annotations

from typing import Any


class NavigationError(Exception):
    """Base class for failures surfaced to route requesters."""

    status_code = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "error": self.message}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class ConfigurationError(NavigationError):
    """No corridors or no destinations are defined for the floor."""


class ResolutionError(NavigationError):
    """A free-text query matched no destination."""

    status_code = 404

    def __init__(self, query: str, available: list[str]) -> None:
        names = ", ".join(available) if available else "none"
        super().__init__(
            f'Destination "{query}" not found. Available destinations: {names}',
            available=available,
        )
        self.query = query
        self.available = available


class UnreachableError(NavigationError):
    """Start or goal cell has no navigable cell within the spiral search."""

    status_code = 422


class MultiFloorRoutingError(NavigationError):
    """A cross-floor request could not be joined through lift lobbies."""

    status_code = 422


class TrainingInProgressError(NavigationError):
    """A batch training run is already active."""

    status_code = 409

    def __init__(self) -> None:
        super().__init__("Training already in progress")


class ConvergenceWarning(UserWarning):
    """Path extraction stopped before reaching the goal cell."""
