"""
Data Models for the Technology Radar.

This module defines the snapshot-based data structures shared by the data
provider, the layout engine and the renderer.

Key principles:
- Ring and quadrant membership is decided by closed enums, never by ad-hoc
  string comparison
- Raw ring/quadrant strings are kept on items so the list view can show
  entries the radar cannot place
- Snapshots are read-only (reload the file for updates)
- PositionedItems are created fresh on every layout pass
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple


class Ring(Enum):
    """
    Adoption status of an item, ordered from least to most mature.

    The enum value is the ring index. Ring 0 takes the outer band of the
    drawing and the most mature ring sits at the center.
    """

    NOT_RECOMMENDED = 0
    IN_DISCOVERY = 1
    ADOPTED = 2

    @property
    def label(self) -> str:
        return RING_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["Ring"]:
        """Return the ring named ``value`` or None if it is not recognized."""
        return _RINGS_BY_LABEL.get(value) if isinstance(value, str) else None


class Quadrant(Enum):
    """
    Top-level category of an item.

    The enum value is the slice index: slice 0 starts at 12 o'clock and
    slices proceed clockwise.
    """

    PLATFORMS = 0
    TOOLS = 1
    LANGUAGES_AND_FRAMEWORKS = 2
    TECHNIQUES = 3

    @property
    def label(self) -> str:
        return QUADRANT_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> Optional["Quadrant"]:
        """Return the quadrant named ``value`` or None if it is not recognized."""
        return _QUADRANTS_BY_LABEL.get(value) if isinstance(value, str) else None


RING_LABELS: Dict[Ring, str] = {
    Ring.NOT_RECOMMENDED: "Not Recommended",
    Ring.IN_DISCOVERY: "In Discovery",
    Ring.ADOPTED: "Adopted",
}

QUADRANT_LABELS: Dict[Quadrant, str] = {
    Quadrant.PLATFORMS: "Platforms",
    Quadrant.TOOLS: "Tools",
    Quadrant.LANGUAGES_AND_FRAMEWORKS: "Programming Languages & Frameworks",
    Quadrant.TECHNIQUES: "Techniques",
}

_RINGS_BY_LABEL = {label: ring for ring, label in RING_LABELS.items()}
_QUADRANTS_BY_LABEL = {label: quadrant for quadrant, label in QUADRANT_LABELS.items()}

# Least to most mature
RING_ORDER: Tuple[Ring, ...] = tuple(sorted(Ring, key=lambda r: r.value))
# Clockwise from 12 o'clock
QUADRANT_ORDER: Tuple[Quadrant, ...] = tuple(sorted(Quadrant, key=lambda q: q.value))


@dataclass(frozen=True)
class RadarItem:
    """
    A single technology entry as read from the data file.

    Parameters
    ----------
    label : str
        Display name, unique within a quadrant for list purposes
    quadrant : str
        Raw quadrant name (may be unrecognized)
    ring : str
        Raw ring name (may be unrecognized)
    moved : bool
        True if the ring changed recently
    description : str
        Free text description
    owners : str
        Free text owner(s)
    """

    label: str
    quadrant: str
    ring: str
    moved: bool = False
    description: str = ""
    owners: str = ""

    @property
    def quadrant_enum(self) -> Optional[Quadrant]:
        return Quadrant.parse(self.quadrant)

    @property
    def ring_enum(self) -> Optional[Ring]:
        return Ring.parse(self.ring)

    @property
    def is_placeable(self) -> bool:
        """True if both ring and quadrant are recognized."""
        return self.quadrant_enum is not None and self.ring_enum is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "quadrant": self.quadrant,
            "ring": self.ring,
            "moved": self.moved,
            "description": self.description,
            "owners": self.owners,
        }


@dataclass(frozen=True)
class RadarSnapshot:
    """
    Read-only set of items plus the last-modified marker, as of one fetch.

    Parameters
    ----------
    last_modified : str
        Last-modified marker taken verbatim from the data file
    items : Tuple[RadarItem, ...]
        All items in file order, including unplaceable ones
    """

    last_modified: str = ""
    items: Tuple[RadarItem, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert snapshot to the JSON wire format.

        Returns
        -------
        dict
            ``{"lastModified": str, "items": [...]}``
        """
        return {
            "lastModified": self.last_modified,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class PositionedItem:
    """
    An item placed on the radar by one layout pass.

    Parameters
    ----------
    item : RadarItem
        Source item
    id : str
        Node id, ``node-<index>`` where index is the position in the full input
    ring_index : int
        Index of the item's ring (0 = least mature)
    quadrant_index : int
        Index of the item's quadrant slice
    target_x, target_y : float
        Ideal position before collision relaxation
    target_radius : float
        Midpoint radius of the ring band
    target_angle : float
        Angle of the ideal position in radians
    x, y : float
        Current position (equal to the target until relaxed)
    vx, vy : float
        Current velocity, only meaningful during relaxation
    """

    item: RadarItem
    id: str
    ring_index: int
    quadrant_index: int
    target_x: float
    target_y: float
    target_radius: float
    target_angle: float
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    @property
    def label(self) -> str:
        return self.item.label

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.item.to_dict(),
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "targetX": self.target_x,
            "targetY": self.target_y,
            "targetRadius": self.target_radius,
            "ringIndex": self.ring_index,
            "quadrantIndex": self.quadrant_index,
        }


Theme = Literal["light", "dark"]


@dataclass
class ViewState:
    """
    Serializable UI state passed into every render call.

    Parameters
    ----------
    quadrant_filter : Optional[str]
        Only emphasize items in this quadrant (None = all)
    status_filter : Optional[str]
        Only emphasize items in this ring (None = all)
    selected : Optional[str]
        Label of the item shown in the details panel
    theme : str
        'light' or 'dark'
    pinned : Dict[str, Tuple[float, float]]
        Manual drag overrides, node id -> final (x, y)
    """

    quadrant_filter: Optional[str] = None
    status_filter: Optional[str] = None
    selected: Optional[str] = None
    theme: Theme = "light"
    pinned: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Empty strings come from unselected <select> options
        self.quadrant_filter = self.quadrant_filter or None
        self.status_filter = self.status_filter or None
        self.selected = self.selected or None
        if self.theme not in ("light", "dark"):
            raise ValueError(f"Unknown theme: {self.theme!r}")

    def matches(self, item: RadarItem) -> bool:
        """True if ``item`` passes both the quadrant and the status filter."""
        matches_quadrant = self.quadrant_filter is None or item.quadrant == self.quadrant_filter
        matches_status = self.status_filter is None or item.ring == self.status_filter
        return matches_quadrant and matches_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quadrant_filter": self.quadrant_filter,
            "status_filter": self.status_filter,
            "selected": self.selected,
            "theme": self.theme,
            "pinned": {node_id: list(pos) for node_id, pos in self.pinned.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewState":
        pinned = {
            node_id: (float(pos[0]), float(pos[1]))
            for node_id, pos in (data.get("pinned") or {}).items()
        }
        return cls(
            quadrant_filter=data.get("quadrant_filter"),
            status_filter=data.get("status_filter"),
            selected=data.get("selected"),
            theme=data.get("theme") or "light",
            pinned=pinned,
        )


def filter_items(items: List[RadarItem], state: ViewState) -> List[RadarItem]:
    """Apply the quadrant/status filters of ``state`` to ``items``."""
    return [item for item in items if state.matches(item)]


def parse_pin(value: str) -> Tuple[str, Tuple[float, float]]:
    """
    Parse a ``<node id>:<x>,<y>`` drag override.

    Raises
    ------
    ValueError
        If the value is malformed or a coordinate is not a finite number
    """
    node_id, sep, coords = value.rpartition(":")
    if not sep or not node_id:
        raise ValueError(f"Pin must look like 'node-3:120.5,-40', got {value!r}")
    x_text, sep, y_text = coords.partition(",")
    if not sep:
        raise ValueError(f"Pin must look like 'node-3:120.5,-40', got {value!r}")
    x, y = float(x_text), float(y_text)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError(f"Pin coordinates must be finite, got {value!r}")
    return node_id, (x, y)


def format_pin(node_id: str, position: Tuple[float, float]) -> str:
    return f"{node_id}:{position[0]},{position[1]}"
