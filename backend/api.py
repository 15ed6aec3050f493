"""
FastAPI backend for the Technology Radar.

Serves the radar snapshot, the computed layout, the list view and the
server-rendered SVG/HTML views. The data file is reloaded on every request.
"""

import json
import logging
import math
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

# Ensure we import from the local radar src directory, not elsewhere
radar_root = Path(__file__).parent.parent
if str(radar_root) not in sys.path:
    sys.path.insert(0, str(radar_root))

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response

from src.core.errors import DataUnavailable, InvalidGeometryError
from src.core.layout import LayoutEngine
from src.core.provider import RadarDataProvider
from src.core.render import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    build_list_view,
    render_page,
    render_svg,
)
from src.core.store import QUADRANT_LABELS, QUADRANT_ORDER, RING_LABELS, RING_ORDER, RadarSnapshot, ViewState, parse_pin

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = "data/radar.yaml"
DEFAULT_PORT = 8080


def load_config(config_path: Path = radar_root / "config.json") -> Dict[str, Any]:
    """
    Load config.json, falling back to defaults if it is missing or invalid.

    ``RADAR_DATA_PATH`` in the environment overrides ``radar_data_path``.

    Returns
    -------
    dict
        ``{"radar_data_path": Path, "port": int}``
    """
    config: Dict[str, Any] = {}
    try:
        with open(config_path, "r") as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not load config.json: {e}, using defaults")

    data_path = Path(os.environ.get("RADAR_DATA_PATH") or config.get("radar_data_path") or DEFAULT_DATA_PATH)
    if not data_path.is_absolute():
        data_path = radar_root / data_path

    port = config.get("backend", {}).get("port", DEFAULT_PORT)
    return {"radar_data_path": data_path, "port": port}


config = load_config()
logger.info(f"Using radar data file: {config['radar_data_path']}")

# Initialize FastAPI app
app = FastAPI(
    title="Technology Radar API",
    description="Backend API for the technology radar visualization",
    version="1.0.0",
)

# Configure CORS - allow all localhost origins in development
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):\d+",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

provider = RadarDataProvider(config["radar_data_path"])
layout_engine = LayoutEngine()


def fetch_snapshot() -> RadarSnapshot:
    """Load the snapshot, mapping data failures to HTTP 500."""
    try:
        return provider.fetch_snapshot()
    except DataUnavailable as e:
        logger.error(f"Error loading radar data: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=e.message)


def build_view_state(
    quadrant: Optional[str],
    status: Optional[str],
    selected: Optional[str],
    theme: str,
    pins: Optional[List[str]] = None,
) -> ViewState:
    """Build the request's ViewState; a malformed pin is a 422."""
    try:
        pinned = dict(parse_pin(pin) for pin in pins or [])
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ViewState(  # type: ignore[arg-type]
        quadrant_filter=quadrant,
        status_filter=status,
        selected=selected,
        theme=theme,
        pinned=pinned,
    )


@app.get("/", response_class=HTMLResponse)  # type: ignore[misc]
async def index(
    quadrant: Optional[str] = Query(None, description="Quadrant filter"),
    status: Optional[str] = Query(None, description="Ring/status filter"),
    selected: Optional[str] = Query(None, description="Label of the item shown in the details panel"),
    theme: Literal["light", "dark"] = Query("light", description="Color theme"),
    width: float = Query(DEFAULT_WIDTH, description="Radar width in pixels"),
    height: float = Query(DEFAULT_HEIGHT, description="Radar height in pixels"),
    pin: List[str] = Query([], description="Drag override, <node id>:<x>,<y> (repeatable)"),
) -> HTMLResponse:
    """
    Main radar page.

    Returns
    -------
    HTMLResponse
        Server-rendered page with radar, filters, list and details panel
    """
    snapshot = fetch_snapshot()
    state = build_view_state(quadrant, status, selected, theme, pin)
    return HTMLResponse(content=render_page(snapshot, state, width=width, height=height))


@app.get("/health")  # type: ignore[misc]
async def health() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns
    -------
    dict
        Health status
    """
    return {"status": "healthy"}


@app.get("/api/radar")  # type: ignore[misc]
async def get_radar() -> Dict[str, Any]:
    """
    Get the radar snapshot.

    Returns
    -------
    dict
        ``{"lastModified": str, "items": [...]}`` with every item in file
        order, including items the radar cannot place
    """
    return fetch_snapshot().to_dict()


@app.get("/api/layout")  # type: ignore[misc]
async def get_layout(
    radius: float = Query(..., description="Drawing radius in pixels"),
) -> Dict[str, Any]:
    """
    Run a layout pass and return the positioned nodes.

    Parameters
    ----------
    radius : float
        Outer radius of the drawing area

    Returns
    -------
    dict
        - lastModified: Snapshot marker
        - radius: Requested radius
        - drawn: False if the radius was not positive and finite
        - rings: Ring names, innermost first
        - quadrants: Quadrant names, clockwise from 12 o'clock
        - nodes: Positioned items in input order (unplaceable items omitted)
    """
    snapshot = fetch_snapshot()
    try:
        nodes = layout_engine.layout(snapshot.items, radius)
        drawn = True
    except InvalidGeometryError as e:
        logger.warning(f"Skipping layout: {e}")
        nodes, drawn = [], False

    return {
        "lastModified": snapshot.last_modified,
        "radius": radius if math.isfinite(radius) else None,
        "drawn": drawn,
        "rings": [RING_LABELS[r] for r in RING_ORDER],
        "quadrants": [QUADRANT_LABELS[q] for q in QUADRANT_ORDER],
        "nodes": [node.to_dict() for node in nodes],
    }


@app.get("/api/items")  # type: ignore[misc]
async def get_items(
    quadrant: Optional[str] = Query(None, description="Quadrant filter"),
    status: Optional[str] = Query(None, description="Ring/status filter"),
) -> Dict[str, Any]:
    """
    Get the list view, grouped by quadrant.

    Unlike the radar, the list includes items with an unrecognized ring or
    quadrant.
    """
    snapshot = fetch_snapshot()
    state = ViewState(quadrant_filter=quadrant, status_filter=status)
    return {
        "lastModified": snapshot.last_modified,
        "quadrants": build_list_view(snapshot.items, state),
    }


@app.get("/api/radar.svg")  # type: ignore[misc]
async def get_radar_svg(
    quadrant: Optional[str] = Query(None, description="Quadrant filter"),
    status: Optional[str] = Query(None, description="Ring/status filter"),
    selected: Optional[str] = Query(None, description="Highlighted item label"),
    theme: Literal["light", "dark"] = Query("light", description="Color theme"),
    width: float = Query(DEFAULT_WIDTH, description="Width in pixels"),
    height: float = Query(DEFAULT_HEIGHT, description="Height in pixels"),
    pin: List[str] = Query([], description="Drag override, <node id>:<x>,<y> (repeatable)"),
) -> Response:
    """Render the radar as an SVG image."""
    snapshot = fetch_snapshot()
    state = build_view_state(quadrant, status, selected, theme, pin)
    svg = render_svg(snapshot.items, state, width=width, height=height, engine=layout_engine)
    return Response(content=svg, media_type="image/svg+xml")


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    port = config["port"]
    logger.info(f"Starting Technology Radar on http://0.0.0.0:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")  # nosec B104
