"""FastAPI routes exposing the navigation engine.

Endpoints:
- Definitions (`/definitions`) load and persist corridors/destinations.
- Training (`/train`, `/training-progress`) batch-solves value fields.
- Routing (`/navigate`, `/find-destination`, `/zone-exits/{zone_id}`).
- Introspection (`/destinations`, `/corridors`, `/stats`, debug PNGs).
"""

from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from spacenav.config import EngineSettings, definitions_path_from_env
from spacenav.definitions import dump_definitions, load_definitions, parse_definitions, save_definitions
from spacenav.engine import NavigationEngine
from spacenav.errors import NavigationError, ResolutionError
from spacenav.visualize import encode_png, render_navigation_image

logger = logging.getLogger(__name__)


class DefinitionsPayload(BaseModel):
    """Corridor and destination records as produced by the editor."""

    model_config = ConfigDict(populate_by_name=True)

    corridors: list[dict[str, Any]] = Field(default_factory=list)
    destinations: list[dict[str, Any]] = Field(default_factory=list)
    grid_size: int | None = Field(default=None, alias="gridSize", gt=0)


class NavigateRequest(BaseModel):
    """Route request; coordinates take precedence over a start query."""

    model_config = ConfigDict(populate_by_name=True)

    start_query: str | None = Field(default=None, alias="from")
    to: str = Field(..., min_length=1)
    floor: int | None = None
    start_x: float | None = Field(default=None, alias="startX")
    start_y: float | None = Field(default=None, alias="startY")
    start_floor: int | None = Field(default=None, alias="startFloor")


class FindDestinationRequest(BaseModel):
    query: str = Field(..., min_length=1)
    floor: int = 1


def _build_default_engine(definitions_path: str) -> NavigationEngine:
    engine = NavigationEngine(EngineSettings.from_env())
    definitions = load_definitions(definitions_path)
    if definitions.corridors or definitions.destinations:
        engine.load(definitions.corridors, definitions.destinations, grid_size=definitions.grid_size)
    return engine


def create_app(engine: NavigationEngine | None = None, definitions_path: str | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    definitions_path = definitions_path or definitions_path_from_env()
    engine = engine if engine is not None else _build_default_engine(definitions_path)

    app = FastAPI(title="spacenav API", version="1.0.0")
    app.state.engine = engine
    app.state.definitions_path = definitions_path

    raw_origins = os.getenv("SPACENAV_CORS_ORIGINS", "*").strip()
    if raw_origins == "*":
        cors_origins = ["*"]
        allow_credentials = False
    else:
        cors_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        allow_credentials = True

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NavigationError)
    async def navigation_error_handler(request: Request, exc: NavigationError) -> JSONResponse:
        logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.payload())

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health endpoint with loaded definition counts."""
        return {
            "status": "ok",
            "version": app.version,
            "corridors": len(engine.corridors()),
            "destinations": len(engine.destinations()),
            "isTraining": engine.is_training,
        }

    @app.get("/definitions")
    def get_definitions() -> dict[str, Any]:
        return dump_definitions(engine.corridors(), engine.destinations(), engine.grid_size)

    @app.post("/definitions")
    def post_definitions(payload: DefinitionsPayload) -> dict[str, Any]:
        """Validate, apply and persist new definitions."""
        definitions = parse_definitions(payload.model_dump(by_alias=True, exclude_none=True))
        grid_size = payload.grid_size or engine.grid_size
        engine.load(definitions.corridors, definitions.destinations, grid_size=grid_size)
        try:
            save_definitions(app.state.definitions_path, definitions.corridors, definitions.destinations, grid_size)
        except OSError as exc:
            raise HTTPException(status_code=500, detail=f"Failed to save definitions: {exc}") from exc

        return {
            "success": True,
            "message": "Space definitions saved",
            "stats": {"corridors": len(definitions.corridors), "destinations": len(definitions.destinations)},
        }

    @app.post("/train")
    async def train(background_tasks: BackgroundTasks) -> dict[str, Any]:
        """Start a batch value-iteration run without blocking the response."""
        engine.reserve_training()
        background_tasks.add_task(engine.train_async, reserved=True)
        return {
            "success": True,
            "message": "Value iteration started",
            "destinations": len(engine.destinations()),
        }

    @app.get("/training-progress")
    def training_progress() -> dict[str, Any]:
        return engine.training_progress()

    @app.post("/navigate")
    def navigate(payload: NavigateRequest) -> dict[str, Any]:
        """Route from a query or coordinate to a destination query."""
        try:
            result = engine.navigate(
                payload.start_query,
                payload.to,
                start_x=payload.start_x,
                start_y=payload.start_y,
                start_floor=payload.start_floor,
                floor=payload.floor,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid navigation query: {exc}") from exc
        return result.to_payload()

    @app.get("/destinations")
    def destinations(floor: int | None = Query(default=None)) -> dict[str, Any]:
        items = [d.model_dump(mode="json") for d in engine.destinations(floor)]
        return {"destinations": items, "count": len(items)}

    @app.get("/corridors")
    def corridors(floor: int | None = Query(default=None)) -> dict[str, Any]:
        items = [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in engine.corridors(floor)]
        return {"corridors": items, "count": len(items)}

    @app.get("/stats")
    def stats() -> dict[str, Any]:
        return engine.stats()

    @app.post("/find-destination")
    def find_destination(payload: FindDestinationRequest) -> dict[str, Any]:
        found = engine.find_destination(payload.query, payload.floor)
        if found is None:
            raise ResolutionError(payload.query, [d.name for d in engine.destinations(payload.floor)])
        return {"success": True, "destination": found.model_dump(mode="json")}

    @app.get("/zone-exits/{zone_id}")
    def zone_exits(zone_id: str, floor: int = Query(default=1)) -> dict[str, Any]:
        exits = engine.zone_exits(zone_id, floor)
        return {
            "zone": zone_id,
            "floor": floor,
            "exits": [d.model_dump(mode="json") for d in exits],
            "count": len(exits),
        }

    @app.get("/debug/value-field/{destination_id}.png")
    def value_field_png(destination_id: str, scale: int = Query(default=4, ge=1, le=16)) -> Response:
        """Render a destination's value field over its floor grid."""
        destination = engine.destination_by_id(destination_id)
        if destination is None:
            raise HTTPException(status_code=404, detail=f"Destination '{destination_id}' was not found")

        model = engine.floor_model(destination.floor)
        field = engine.value_field(destination, model)
        try:
            image = render_navigation_image(model.grid, field, scale=scale)
            content = encode_png(image)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Rendering failed: {exc}") from exc
        return Response(content=content, media_type="image/png")

    return app
