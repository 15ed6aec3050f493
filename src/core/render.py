"""
Radar Renderer.

Turns a layout pass into SVG/HTML. Everything here is a pure function of the
items, the drawing size and an explicit ViewState, so the same inputs always
produce the same markup.

Filters only change node opacity; they never move a node. Drag overrides
(``ViewState.pinned``) replace the final position of a single node after the
layout pass has run.
"""

import html
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from src.core.errors import InvalidGeometryError
from src.core.layout import LayoutEngine, RadarGeometry
from src.core.store import (
    QUADRANT_LABELS,
    QUADRANT_ORDER,
    RING_LABELS,
    RING_ORDER,
    PositionedItem,
    RadarItem,
    RadarSnapshot,
    Ring,
    ViewState,
    filter_items,
    format_pin,
)

logger = logging.getLogger(__name__)

RING_COLORS: Dict[Ring, str] = {
    Ring.ADOPTED: "#006400",
    Ring.IN_DISCOVERY: "#B8860B",
    Ring.NOT_RECOMMENDED: "#8B0000",
}

THEME_COLORS: Dict[str, Dict[str, str]] = {
    "light": {
        "background": "#ffffff",
        "default_node": "#ccc",
        "ring_stroke": "#ddd",
        "ring_label": "#666",
        "quad_line": "#aaa",
        "quad_label": "#333",
        "node_label": "#333",
        "text": "#1a202c",
    },
    "dark": {
        "background": "#1a202c",
        "default_node": "#718096",
        "ring_stroke": "#4a5568",
        "ring_label": "#a0aec0",
        "quad_line": "#718096",
        "quad_label": "#e2e8f0",
        "node_label": "#e2e8f0",
        "text": "#e2e8f0",
    },
}

# Room for the quadrant labels outside the outer ring
RADAR_MARGIN = 60.0

NODE_RADIUS = 6
NODE_LABEL_X_OFFSET = 10
NODE_LABEL_Y_OFFSET = 4
NODE_FONT_SIZE = "10px"
DIMMED_OPACITY = 0.2
SELECTED_STROKE_WIDTH = 3

LEGEND_ITEM_HEIGHT = 20
LEGEND_COLOR_WIDTH = 15
LEGEND_TEXT_OFFSET = 5

DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 800

# Quadrant labels rendered on two lines
SPLIT_QUADRANT_LABELS = {
    QUADRANT_LABELS[QUADRANT_ORDER[2]]: ("Programming Languages", "& Frameworks"),
}

NO_OWNER = "N/A"
NO_DESCRIPTION = "No description available."
MOVED_NOTE = "* This item has been moved recently."
DETAIL_ROWS = (
    ("Quadrant", "quadrant"),
    ("Ring", "ring"),
    ("Owner", "owner"),
    ("Description", "description"),
)

PAGE_TEMPLATE = "index.html"
_templates = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
    autoescape=select_autoescape(["html", "xml"]),
)


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def _esc(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _query(params: List[Tuple[str, Optional[str]]], state: ViewState) -> str:
    """Query string of the non-empty ``params`` plus the active pins."""
    query = [(name, value) for name, value in params if value]
    query.extend(("pin", format_pin(node_id, position)) for node_id, position in state.pinned.items())
    return "?" + urlencode(query)


def selection_link(state: ViewState, label: str) -> str:
    """
    Query string that selects ``label`` while keeping filters, theme and pins.

    Selecting the item that is already selected clears the selection.
    """
    return _query(
        [
            ("quadrant", state.quadrant_filter),
            ("status", state.status_filter),
            ("theme", state.theme),
            ("selected", label if state.selected != label else None),
        ],
        state,
    )


def theme_toggle_link(state: ViewState) -> str:
    return _query(
        [
            ("quadrant", state.quadrant_filter),
            ("status", state.status_filter),
            ("selected", state.selected),
            ("theme", "light" if state.theme == "dark" else "dark"),
        ],
        state,
    )


def apply_pins(nodes: Sequence[PositionedItem], pinned: Dict[str, Tuple[float, float]]) -> None:
    """Move dragged nodes (keyed by node id) to their pinned position, leaving the rest alone."""
    for node in nodes:
        if node.id in pinned:
            node.x, node.y = pinned[node.id]


def _legend(colors: Dict[str, str]) -> List[str]:
    parts = ['<g class="legend" transform="translate(20, 20)">']
    for i, ring in enumerate(reversed(RING_ORDER)):
        parts.append(
            f'<g class="legend-item" transform="translate(0, {i * LEGEND_ITEM_HEIGHT})">'
            f'<rect width="{LEGEND_COLOR_WIDTH}" height="{LEGEND_COLOR_WIDTH}" '
            f'style="fill: {RING_COLORS[ring]}"/>'
            f'<text x="{LEGEND_COLOR_WIDTH + LEGEND_TEXT_OFFSET}" y="{LEGEND_COLOR_WIDTH / 2}" '
            f'dy="0.35em" style="font-size: 12px; fill: {colors["quad_label"]}">'
            f"{_esc(ring.label)}</text></g>"
        )
    parts.append("</g>")
    return parts


def _rings_and_labels(geometry: RadarGeometry, colors: Dict[str, str]) -> List[str]:
    parts = []
    label_positions = geometry.ring_label_positions()
    for i, ring in enumerate(geometry.ring_order):
        _, outer = geometry.ring_band(i)
        parts.append(
            f'<circle class="ring ring-{i}" r="{_fmt(outer)}" fill="none" '
            f'stroke="{colors["ring_stroke"]}" stroke-width="1"/>'
        )
        x, y = label_positions[i]
        parts.append(
            f'<text class="ring-label" x="{_fmt(x)}" y="{_fmt(y)}" text-anchor="middle" '
            f'font-size="14px" font-weight="bold" fill="{colors["ring_label"]}">'
            f"{_esc(RING_LABELS[ring])}</text>"
        )
    return parts


def _quadrant_lines_and_labels(geometry: RadarGeometry, colors: Dict[str, str]) -> List[str]:
    parts = []
    label_positions = geometry.quadrant_label_positions()
    for j, quadrant in enumerate(geometry.quadrant_order):
        angle = geometry.slice_start(j)
        x = math.cos(angle) * geometry.radius
        y = math.sin(angle) * geometry.radius
        parts.append(
            f'<line class="quadrant-line quadrant-line-{j}" x1="0" y1="0" '
            f'x2="{_fmt(x)}" y2="{_fmt(y)}" stroke="{colors["quad_line"]}" stroke-width="1"/>'
        )

        lx, ly = label_positions[j]
        name = QUADRANT_LABELS[quadrant]
        open_tag = (
            f'<text class="quadrant-label" x="{_fmt(lx)}" y="{_fmt(ly)}" text-anchor="middle" '
            f'alignment-baseline="middle" font-weight="bold" font-size="16px" '
            f'fill="{colors["quad_label"]}">'
        )
        if name in SPLIT_QUADRANT_LABELS:
            first, second = SPLIT_QUADRANT_LABELS[name]
            parts.append(
                f'{open_tag}<tspan x="{_fmt(lx)}" dy="-0.6em">{_esc(first)}</tspan>'
                f'<tspan x="{_fmt(lx)}" dy="1.2em">{_esc(second)}</tspan></text>'
            )
        else:
            parts.append(f"{open_tag}{_esc(name)}</text>")
    return parts


def _nodes(nodes: Sequence[PositionedItem], state: ViewState, colors: Dict[str, str]) -> List[str]:
    parts = []
    for node in nodes:
        item = node.item
        fill = RING_COLORS.get(item.ring_enum, colors["default_node"])
        opacity = 1.0 if state.matches(item) else DIMMED_OPACITY
        selected = state.selected == item.label

        stroke = (
            f' stroke="{colors["node_label"]}" stroke-width="{SELECTED_STROKE_WIDTH}"'
            if selected
            else ""
        )
        decoration = "underline" if item.moved else "none"
        parts.append(
            f'<a href="{_esc(selection_link(state, item.label))}">'
            f'<g class="node{" selected" if selected else ""}" id="{node.id}" '
            f'transform="translate({_fmt(node.x)}, {_fmt(node.y)})" opacity="{opacity}" '
            f'style="cursor: pointer">'
            f'<title>{_esc(item.label)}</title>'
            f'<circle class="ring-{node.ring_index}" r="{NODE_RADIUS}" fill="{fill}"{stroke}/>'
            f'<text x="{NODE_LABEL_X_OFFSET}" y="{NODE_LABEL_Y_OFFSET}" font-size="{NODE_FONT_SIZE}" '
            f'fill="{colors["node_label"]}" style="text-decoration: {decoration}">'
            f"{_esc(item.label)}</text></g></a>"
        )
    return parts


def render_svg(
    items: Sequence[RadarItem],
    state: Optional[ViewState] = None,
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
    engine: Optional[LayoutEngine] = None,
) -> str:
    """
    Render the radar as a standalone SVG document.

    Parameters
    ----------
    items : Sequence[RadarItem]
        Snapshot items; unplaceable ones are skipped by the layout
    state : Optional[ViewState]
        Filters, selection, theme and drag overrides (default: empty state)
    width, height : float
        Drawing size in pixels
    engine : Optional[LayoutEngine]
        Layout engine to use (default settings if None)

    Returns
    -------
    str
        SVG markup. Empty (no content) if the drawing radius is not positive
        or there are no items.
    """
    state = state or ViewState()
    engine = engine or LayoutEngine()
    colors = THEME_COLORS[state.theme]
    if not (math.isfinite(width) and math.isfinite(height)):
        logger.warning(f"Non-finite drawing size {width}x{height}, rendering an empty radar")
        width = height = 0
    open_svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" id="radar" class="radar theme-{state.theme}" '
        f'width="{_fmt(width)}" height="{_fmt(height)}" viewBox="0 0 {_fmt(width)} {_fmt(height)}">'
    )
    empty_svg = open_svg + "</svg>"

    if not items:
        return empty_svg

    radius = min(width, height) / 2 - RADAR_MARGIN
    try:
        geometry = RadarGeometry(radius=radius)
        nodes = engine.layout(items, radius)
    except InvalidGeometryError as e:
        logger.warning(f"Skipping radar render: {e}")
        return empty_svg

    apply_pins(nodes, state.pinned)

    parts = [open_svg]
    parts.extend(_legend(colors))
    parts.append(f'<g class="radar-group" transform="translate({_fmt(width / 2)}, {_fmt(height / 2)})">')
    parts.extend(_rings_and_labels(geometry, colors))
    parts.extend(_quadrant_lines_and_labels(geometry, colors))
    parts.extend(_nodes(nodes, state, colors))
    parts.append("</g></svg>")
    return "".join(parts)


def build_list_view(items: Sequence[RadarItem], state: Optional[ViewState] = None) -> List[Dict[str, Any]]:
    """
    Group filtered items by quadrant for the list view.

    Known quadrants come first in radar order; items with an unrecognized
    quadrant follow in groups of their own, in first-seen order. Rings are not
    validated here. Empty groups are skipped.

    Returns
    -------
    list
        ``[{"quadrant": str, "items": [item dict + "selected"]}, ...]``
    """
    state = state or ViewState()
    filtered = filter_items(list(items), state)

    group_names = [QUADRANT_LABELS[q] for q in QUADRANT_ORDER]
    for item in filtered:
        if item.quadrant not in group_names:
            group_names.append(item.quadrant)

    groups = []
    for name in group_names:
        members = [item for item in filtered if item.quadrant == name]
        if not members:
            continue
        groups.append({
            "quadrant": name,
            "items": [
                {**item.to_dict(), "selected": item.label == state.selected}
                for item in members
            ],
        })
    return groups


def item_details(item: RadarItem) -> Dict[str, Any]:
    """Fields shown in the details panel, with display defaults applied."""
    return {
        "title": item.label,
        "quadrant": item.quadrant,
        "ring": item.ring,
        "owner": item.owners or NO_OWNER,
        "description": item.description or NO_DESCRIPTION,
        "moved_note": MOVED_NOTE if item.moved else None,
    }


def find_item(items: Sequence[RadarItem], label: Optional[str]) -> Optional[RadarItem]:
    if label is None:
        return None
    for item in items:
        if item.label == label:
            return item
    return None


def render_page(
    snapshot: RadarSnapshot,
    state: Optional[ViewState] = None,
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
    title: str = "Technology Radar",
) -> str:
    """
    Render the full HTML page: filters, theme toggle, radar, list and details.

    The radar always shows every placeable item; filters dim the radar and
    narrow the list.
    """
    state = state or ViewState()
    items = list(snapshot.items)
    selected_item = find_item(items, state.selected)

    hidden_inputs = [("theme", state.theme)]
    if state.selected:
        hidden_inputs.append(("selected", state.selected))
    hidden_inputs.extend(("pin", format_pin(node_id, position)) for node_id, position in state.pinned.items())

    groups = build_list_view(items, state)
    for group in groups:
        for entry in group["items"]:
            entry["href"] = selection_link(state, entry["label"])

    template = _templates.get_template(PAGE_TEMPLATE)
    return template.render(
        title=title,
        state=state,
        colors=THEME_COLORS[state.theme],
        last_modified=snapshot.last_modified,
        toggle_href=theme_toggle_link(state),
        toggle_label="Light mode" if state.theme == "dark" else "Dark mode",
        hidden_inputs=hidden_inputs,
        filters=[
            ("quadrant", [QUADRANT_LABELS[q] for q in QUADRANT_ORDER], state.quadrant_filter, "All quadrants"),
            ("status", [RING_LABELS[r] for r in RING_ORDER], state.status_filter, "All statuses"),
        ],
        # Built with html.escape on every interpolated value
        radar_svg=Markup(render_svg(items, state, width, height)),
        details=item_details(selected_item) if selected_item else None,
        close_href=selection_link(state, selected_item.label) if selected_item else None,
        detail_rows=DETAIL_ROWS,
        groups=groups,
    )
