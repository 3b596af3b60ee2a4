"""Free-text endpoint resolution and the route request lifecycle.

Purpose:
- Match start/destination queries to destination records through an ordered
  matcher chain (zone, name, numbered zones, facility keywords, exit numbers).
- Parse floor hints out of queries ("Meeting Room floor 1", "Level 2 Pantry").
- Pick among same-named candidates by proximity to the other trip endpoint.
- Track each request through its states, rejecting illegal transitions.

Usage example:
    >>> resolver = EndpointResolver(destinations)
    >>> resolver.resolve_destination("Lift Lobby", start_xy=(10, 10), start_floor=1)
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Sequence

from spacenav.errors import ResolutionError
from spacenav.models import Corridor, Destination

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]
Matcher = Callable[[str, Sequence[Destination]], list[Destination]]

_FLOOR_PREFIX = re.compile(r"\b(?:floor|level|lvl|fl)\s*(\d+)\b", re.IGNORECASE)
_FLOOR_SUFFIX = re.compile(r"\b(\d+)\s*(?:st|nd|rd|th)?\s*floor\b", re.IGNORECASE)
_FLOOR_SLASH = re.compile(r"\b(\d+)\s*/\s*f\b", re.IGNORECASE)
_ZONE_NUMBER = re.compile(r"zone\s*(\d+)", re.IGNORECASE)
_EXIT_NUMBER = re.compile(r"(?:exit\s*)?(\d+)", re.IGNORECASE)

_CATEGORIES: tuple[tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]], ...] = (
    # (query keywords, name keywords, zone keywords)
    (
        ("lavatory", "restroom", "toilet", "bathroom", "lav"),
        ("restroom", "lavatory", "lav", "toilet"),
        ("restroom", "lav", "toilet"),
    ),
    (
        ("lift", "elevator", "lobby"),
        ("lift", "elevator", "lobby"),
        ("lift", "elevator", "lobby"),
    ),
    (
        ("pantry", "kitchen", "break room"),
        ("pantry", "kitchen"),
        ("pantry",),
    ),
)

LIFT_KEYWORDS = ("lift", "elevator")
ENTRANCE_KEYWORDS = ("entrance", "main", "lobby", "lift")


def _lower(value: str | None) -> str:
    return (value or "").lower()


def parse_floor_from_query(query: str) -> tuple[int | None, str]:
    """Split a floor hint off a query.

    Returns:
        `(floor, clean_query)`; floor is None when the query carries no hint.
    """
    for pattern in (_FLOOR_PREFIX, _FLOOR_SUFFIX, _FLOOR_SLASH):
        match = pattern.search(query)
        if match:
            cleaned = (query[: match.start()] + " " + query[match.end() :]).strip()
            return int(match.group(1)), re.sub(r"\s+", " ", cleaned)
    return None, query.strip()


def is_lift_lobby(destination: Destination) -> bool:
    text = f"{_lower(destination.name)} {_lower(destination.zone)}"
    return any(keyword in text for keyword in LIFT_KEYWORDS)


def planar_distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


# ----------------------------------------------------------------------
# Matcher chain
# ----------------------------------------------------------------------
def _match_zone_exact(q: str, dests: Sequence[Destination]) -> list[Destination]:
    return [d for d in dests if d.zone is not None and _lower(d.zone) == q]


def _match_name_exact(q: str, dests: Sequence[Destination]) -> list[Destination]:
    return [d for d in dests if _lower(d.name) == q]


def _match_name_contains(q: str, dests: Sequence[Destination]) -> list[Destination]:
    return [d for d in dests if q in _lower(d.name)]


def _match_zone_contains(q: str, dests: Sequence[Destination]) -> list[Destination]:
    return [d for d in dests if d.zone is not None and q in _lower(d.zone)]


def _match_zone_number(q: str, dests: Sequence[Destination]) -> list[Destination]:
    match = _ZONE_NUMBER.search(q)
    if not match or not dests:
        return []

    number = int(match.group(1))
    padded = match.group(1).zfill(2)
    variants_zone = (f"zone_{padded}", f"zone{padded}", f"zone {number}")
    variants_name = (f"zone_{padded}", f"zone {number}", f"zone{number}")
    found = [
        d
        for d in dests
        if any(v in _lower(d.zone) for v in variants_zone) or any(v in _lower(d.name) for v in variants_name)
    ]
    if found:
        return found

    # Zones are numbered left to right when destinations carry no zone metadata.
    if any(d.zone for d in dests):
        return []
    ordered = sorted(dests, key=lambda d: d.x)
    index = max(0, min(number - 1, len(ordered) - 1))
    logger.info("Using position heuristic for zone %d: %s", number, ordered[index].name)
    return [ordered[index]]


def _match_category(q: str, dests: Sequence[Destination]) -> list[Destination]:
    for query_words, name_words, zone_words in _CATEGORIES:
        if not any(word in q for word in query_words):
            continue
        found = [
            d
            for d in dests
            if any(w in _lower(d.name) for w in name_words) or any(w in _lower(d.zone) for w in zone_words)
        ]
        if found:
            return found
    return []


def _match_exit_number(q: str, dests: Sequence[Destination]) -> list[Destination]:
    match = _EXIT_NUMBER.search(q)
    if not match:
        return []
    number = match.group(1)
    return [d for d in dests if f"exit {number}" in _lower(d.name) or _lower(d.name) == f"exit{number}"]


MATCHERS: tuple[Matcher, ...] = (
    _match_zone_exact,
    _match_name_exact,
    _match_name_contains,
    _match_zone_contains,
    _match_zone_number,
    _match_category,
    _match_exit_number,
)


# ----------------------------------------------------------------------
# Request lifecycle
# ----------------------------------------------------------------------
class RequestState(str, Enum):
    IDLE = "idle"
    RESOLVING_ENDPOINTS = "resolving_endpoints"
    SOLVING = "solving"
    EXTRACTING = "extracting"
    REFINING = "refining"
    SOLVING_LEG1 = "solving_leg1"
    SOLVING_LEG2 = "solving_leg2"
    SPLICING = "splicing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.RESOLVING_ENDPOINTS}),
    RequestState.RESOLVING_ENDPOINTS: frozenset({RequestState.SOLVING, RequestState.SOLVING_LEG1}),
    RequestState.SOLVING: frozenset({RequestState.EXTRACTING}),
    RequestState.EXTRACTING: frozenset({RequestState.REFINING}),
    RequestState.REFINING: frozenset({RequestState.DONE}),
    RequestState.SOLVING_LEG1: frozenset({RequestState.SOLVING_LEG2}),
    RequestState.SOLVING_LEG2: frozenset({RequestState.SPLICING}),
    RequestState.SPLICING: frozenset({RequestState.DONE}),
    RequestState.DONE: frozenset(),
    RequestState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({RequestState.DONE, RequestState.FAILED})


@dataclass(slots=True)
class RouteRequest:
    """Lifecycle of one route request."""

    state: RequestState = RequestState.IDLE
    history: list[RequestState] = field(default_factory=lambda: [RequestState.IDLE])
    failure: str | None = None

    def advance(self, target: RequestState) -> None:
        """Move to `target`.

        Raises:
            ValueError: If the transition is not allowed from the current state.
        """
        allowed = _TRANSITIONS[self.state]
        if target == RequestState.FAILED and self.state not in TERMINAL_STATES:
            allowed = allowed | {RequestState.FAILED}
        if target not in allowed:
            raise ValueError(f"Illegal request transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def fail(self, reason: str) -> None:
        self.advance(RequestState.FAILED)
        self.failure = reason

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


# ----------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------
@dataclass(slots=True)
class ResolvedStart:
    x: float
    y: float
    floor: int
    name: str


class EndpointResolver:
    """Resolve queries against one building's destinations."""

    def __init__(self, destinations: Iterable[Destination], default_floor: int = 1) -> None:
        self.destinations = list(destinations)
        self.default_floor = default_floor

    def on_floor(self, floor: int) -> list[Destination]:
        return [d for d in self.destinations if d.floor == floor]

    def floors(self) -> list[int]:
        return sorted({d.floor for d in self.destinations})

    def available_names(self, floor: int | None = None) -> list[str]:
        pool = self.destinations if floor is None else self.on_floor(floor)
        return [d.name for d in pool]

    def match(self, query: str, floor: int) -> list[Destination]:
        """Every match of the first matcher in the chain that hits on `floor`."""
        q = query.lower().strip()
        dests = self.on_floor(floor)
        if not q or not dests:
            return []
        for matcher in MATCHERS:
            found = matcher(q, dests)
            if found:
                return found
        return []

    def find_destination(self, query: str, floor: int) -> Destination | None:
        """First match on `floor`, without disambiguation."""
        found = self.match(query, floor)
        return found[0] if found else None

    def zone_exits(self, zone_id: str, floor: int) -> list[Destination]:
        """All destinations on `floor` belonging to the zone (by zone or name)."""
        key = zone_id.lower().strip()
        if not key:
            return []
        return [
            d
            for d in self.on_floor(floor)
            if (d.zone is not None and (d.zone == zone_id or key in d.zone.lower())) or key in _lower(d.name)
        ]

    def _expand_zones(self, candidates: list[Destination]) -> list[Destination]:
        expanded = list(candidates)
        seen = {d.id for d in expanded}
        for candidate in candidates:
            if candidate.zone is None:
                continue
            for other in self.on_floor(candidate.floor):
                if other.id not in seen and _lower(other.zone) == candidate.zone.lower():
                    expanded.append(other)
                    seen.add(other.id)
        return expanded

    @staticmethod
    def nearest(candidates: Sequence[Destination], point: Point2D) -> Destination | None:
        """Candidate nearest to `point`; ties keep input order."""
        if not candidates:
            return None
        return min(candidates, key=lambda d: planar_distance(d.position, point))

    def candidates(self, query: str, preferred_floor: int) -> list[Destination]:
        """Matches honouring a floor hint, else the preferred floor, else any floor."""
        hinted_floor, clean = parse_floor_from_query(query)
        if hinted_floor is not None:
            return self._expand_zones(self.match(clean, hinted_floor))

        same_floor = self.match(clean, preferred_floor)
        if same_floor:
            return self._expand_zones(same_floor)

        others: list[Destination] = []
        for floor in self.floors():
            if floor != preferred_floor:
                others.extend(self.match(clean, floor))
        return self._expand_zones(others)

    def resolve_destination(self, query: str, start_xy: Point2D, start_floor: int) -> Destination:
        """Destination for `query` nearest to the start, same floor first.

        Raises:
            ResolutionError: If nothing matches.
        """
        found = self.candidates(query, start_floor)
        if not found:
            raise ResolutionError(query, self.available_names(start_floor))

        same_floor = [d for d in found if d.floor == start_floor]
        chosen = self.nearest(same_floor or found, start_xy)
        logger.debug("Resolved destination %r to %s (%s)", query, chosen.id, chosen.name)
        return chosen

    def resolve_pair(self, start_query: str, dest_query: str, floor: int) -> tuple[Destination, Destination]:
        """Resolve two ambiguous endpoints together.

        The pair with the smallest planar distance wins; same-floor pairs
        beat cross-floor pairs.

        Raises:
            ResolutionError: If either side matches nothing.
        """
        starts = self.candidates(start_query, floor)
        if not starts:
            raise ResolutionError(start_query, self.available_names(floor))
        start_floors = {d.floor for d in starts}
        dests = self.candidates(dest_query, floor if floor in start_floors else starts[0].floor)
        if not dests:
            raise ResolutionError(dest_query, self.available_names(floor))

        best: tuple[bool, float] | None = None
        best_pair: tuple[Destination, Destination] | None = None
        for s in starts:
            for d in dests:
                if s.id == d.id:
                    continue
                key = (s.floor != d.floor, planar_distance(s.position, d.position))
                if best is None or key < best:
                    best, best_pair = key, (s, d)

        if best_pair is None:
            # Only identical records matched; start and destination coincide.
            best_pair = (starts[0], dests[0])
        return best_pair

    def default_start(
        self,
        query: str | None,
        floor: int,
        corridors: Sequence[Corridor],
        is_navigable: Callable[[float, float, int], bool],
    ) -> ResolvedStart | None:
        """Start position when no coordinate is given.

        Order: a navigable destination matching `query`, an entrance-like
        destination, the first corridor whose vertex centroid is navigable,
        then the first navigable destination on the floor.
        """
        q = (query or "").lower().strip()
        if q:
            hinted_floor, clean = parse_floor_from_query(q)
            floor = hinted_floor if hinted_floor is not None else floor
            found = self.find_destination(clean, floor)
            if found is not None and is_navigable(found.x, found.y, floor):
                return ResolvedStart(found.x, found.y, floor, found.name)

            if any(word in clean for word in ENTRANCE_KEYWORDS):
                pool = self.on_floor(floor)
                exact = [
                    d
                    for d in pool
                    if _lower(d.name) in ("main entrance", "entrance")
                    or ("main" in clean and "entrance" in _lower(d.name))
                ]
                partial = [d for d in pool if any(w in _lower(d.name) for w in ("entrance", "lobby", "lift"))]
                entrance = (exact or partial or [None])[0]
                if entrance is not None:
                    return ResolvedStart(entrance.x, entrance.y, floor, entrance.name)

        for corridor in corridors:
            if corridor.floor != floor or not corridor.polygon:
                continue
            cx = sum(p[0] for p in corridor.polygon) / len(corridor.polygon)
            cy = sum(p[1] for p in corridor.polygon) / len(corridor.polygon)
            if is_navigable(cx, cy, floor):
                return ResolvedStart(cx, cy, floor, corridor.name or "Corridor")

        for dest in self.on_floor(floor):
            if is_navigable(dest.x, dest.y, floor):
                return ResolvedStart(dest.x, dest.y, floor, dest.name)
        return None
