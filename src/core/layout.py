"""
Radar Layout Engine.

Maps every placeable item onto a point of the radar disc in two stages:

1. Target assignment (deterministic, exact): the radius is the midpoint of the
   item's ring band and the angle falls inside its quadrant slice.
2. Collision relaxation: a fixed number of integrator ticks over three forces
   (collide, pull-to-target, ring-label avoidance). Each force is a pure
   function from the current nodes to per-node velocity deltas.

Coordinates are relative to the radar center with SVG orientation (y grows
downwards), so angle -pi/2 points to 12 o'clock and increasing angles run
clockwise.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from src.core.errors import InvalidGeometryError
from src.core.store import (
    QUADRANT_ORDER,
    RING_ORDER,
    PositionedItem,
    Quadrant,
    RadarItem,
    Ring,
)

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Delta = Tuple[float, float]

# Simulation
SIMULATION_TICKS = 200
NODE_COLLIDE_RADIUS = 35.0  # includes label space
COLLIDE_STRENGTH = 1.0
NODE_FORCE_STRENGTH = 0.05
VELOCITY_DECAY = 0.4  # fraction of velocity lost per tick
ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
ALPHA_TARGET = 0.0

# Ring label avoidance
RING_LABEL_EXCLUSION_RADIUS = 40.0
LABEL_NUDGE_ANGLE = 0.1  # radians
LABEL_NUDGE_STRENGTH = 0.05

# Static geometry
RING_LABEL_Y_OFFSET = 15.0
QUADRANT_LABEL_OFFSET = 40.0

# Share of each slice left empty on either edge
SLICE_MARGIN = 0.1
SLICE_SPREAD = 1 - 2 * SLICE_MARGIN


@dataclass(frozen=True)
class RadarGeometry:
    """
    Fixed geometry of one radar drawing.

    Parameters
    ----------
    radius : float
        Outer boundary of the usable disc, must be positive
    ring_order : Tuple[Ring, ...]
        Rings from least to most mature; index 0 takes the outer band of
        the drawing and the last ring the bullseye
    quadrant_order : Tuple[Quadrant, ...]
        Quadrants clockwise from 12 o'clock
    """

    radius: float
    ring_order: Tuple[Ring, ...] = RING_ORDER
    quadrant_order: Tuple[Quadrant, ...] = QUADRANT_ORDER

    def __post_init__(self) -> None:
        if not (math.isfinite(self.radius) and self.radius > 0):
            raise InvalidGeometryError(f"Drawing radius must be positive and finite, got {self.radius}")
        if not self.ring_order or not self.quadrant_order:
            raise InvalidGeometryError("Ring and quadrant orders must not be empty")

    @property
    def ring_count(self) -> int:
        return len(self.ring_order)

    @property
    def quadrant_count(self) -> int:
        return len(self.quadrant_order)

    @property
    def slice_width(self) -> float:
        return 2 * math.pi / self.quadrant_count

    def scale(self, value: float) -> float:
        """Linear radius scale, domain [0, ring_count] -> range [0, radius]."""
        return value / self.ring_count * self.radius

    def ring_index(self, ring: Optional[Ring]) -> Optional[int]:
        if ring is None or ring not in self.ring_order:
            return None
        return self.ring_order.index(ring)

    def quadrant_index(self, quadrant: Optional[Quadrant]) -> Optional[int]:
        if quadrant is None or quadrant not in self.quadrant_order:
            return None
        return self.quadrant_order.index(quadrant)

    def ring_band(self, ring_index: int) -> Tuple[float, float]:
        """Return (inner, outer) radius of the ring at ``ring_index``."""
        inner = self.scale(self.ring_count - ring_index - 1)
        outer = self.scale(self.ring_count - ring_index)
        return inner, outer

    def ring_target_radius(self, ring_index: int) -> float:
        inner, outer = self.ring_band(ring_index)
        return (inner + outer) / 2

    def slice_start(self, quadrant_index: int) -> float:
        return quadrant_index * self.slice_width - math.pi / 2

    def slice_bounds(self, quadrant_index: int) -> Tuple[float, float]:
        start = self.slice_start(quadrant_index)
        return start, start + self.slice_width

    def ring_label_positions(self) -> List[Point]:
        """Anchor of each ring label, just inside the top of the ring's outer circle."""
        return [
            (0.0, -self.scale(self.ring_count - i) + RING_LABEL_Y_OFFSET)
            for i in range(self.ring_count)
        ]

    def quadrant_label_positions(self) -> List[Point]:
        """Anchor of each quadrant label, mid-slice and outside the outer ring."""
        label_radius = self.radius + QUADRANT_LABEL_OFFSET
        positions = []
        for j in range(self.quadrant_count):
            angle = self.slice_start(j) + self.slice_width / 2
            positions.append((math.cos(angle) * label_radius, math.sin(angle) * label_radius))
        return positions


def compute_targets(items: Sequence[RadarItem], geometry: RadarGeometry) -> List[PositionedItem]:
    """
    Assign the ideal position of every placeable item.

    The angular offset inside a slice uses the item's index in the *whole*
    input, not its index within its quadrant, so a quadrant's items are not
    spread evenly over their own slice. Items with an unrecognized ring or
    quadrant are dropped; the index of the others is unchanged.

    Parameters
    ----------
    items : Sequence[RadarItem]
        Items in input order
    geometry : RadarGeometry
        Drawing geometry

    Returns
    -------
    List[PositionedItem]
        Nodes in input order, positioned at their targets
    """
    total = len(items)
    nodes = []
    for index, item in enumerate(items):
        ring_index = geometry.ring_index(item.ring_enum)
        quadrant_index = geometry.quadrant_index(item.quadrant_enum)
        if ring_index is None or quadrant_index is None:
            continue

        target_radius = geometry.ring_target_radius(ring_index)
        offset = SLICE_MARGIN * geometry.slice_width + (index / total) * SLICE_SPREAD * geometry.slice_width
        angle = geometry.slice_start(quadrant_index) + offset
        target_x = math.cos(angle) * target_radius
        target_y = math.sin(angle) * target_radius

        nodes.append(
            PositionedItem(
                item=item,
                id=f"node-{index}",
                ring_index=ring_index,
                quadrant_index=quadrant_index,
                target_x=target_x,
                target_y=target_y,
                target_radius=target_radius,
                target_angle=angle,
                x=target_x,
                y=target_y,
            )
        )
    return nodes


def _separation_direction(a: PositionedItem, b: PositionedItem) -> Point:
    """Unit vector from b to a for coincident nodes, taken from their targets."""
    dx = a.target_x - b.target_x
    dy = a.target_y - b.target_y
    length = math.hypot(dx, dy)
    if length == 0.0:
        return (1.0, 0.0)
    return (dx / length, dy / length)


def collide_force(
    nodes: Sequence[PositionedItem],
    radius: float = NODE_COLLIDE_RADIUS,
    strength: float = COLLIDE_STRENGTH,
) -> List[Delta]:
    """
    Push apart every pair of nodes closer than ``2 * radius``.

    Distances are measured on predicted positions (position + velocity). Both
    nodes of a pair take half of the correction.
    """
    min_distance = 2 * radius
    deltas = [[0.0, 0.0] for _ in nodes]
    for i, a in enumerate(nodes):
        ax, ay = a.x + a.vx, a.y + a.vy
        for j in range(i + 1, len(nodes)):
            b = nodes[j]
            dx = ax - (b.x + b.vx)
            dy = ay - (b.y + b.vy)
            distance = math.hypot(dx, dy)
            if distance >= min_distance:
                continue

            if distance == 0.0:
                ux, uy = _separation_direction(a, b)
            else:
                ux, uy = dx / distance, dy / distance

            push = (min_distance - distance) * strength / 2
            deltas[i][0] += ux * push
            deltas[i][1] += uy * push
            deltas[j][0] -= ux * push
            deltas[j][1] -= uy * push
    return [(dx, dy) for dx, dy in deltas]


def target_force(
    nodes: Sequence[PositionedItem],
    alpha: float,
    strength: float = NODE_FORCE_STRENGTH,
) -> List[Delta]:
    """Weak spring pulling every node back towards its own target."""
    return [
        ((node.target_x - node.x) * strength * alpha, (node.target_y - node.y) * strength * alpha)
        for node in nodes
    ]


def _angle_difference(a: float, b: float) -> float:
    """Signed difference a - b wrapped into [-pi, pi)."""
    return (a - b + math.pi) % (2 * math.pi) - math.pi


def label_avoid_force(
    nodes: Sequence[PositionedItem],
    label_positions: Iterable[Point],
    exclusion_radius: float = RING_LABEL_EXCLUSION_RADIUS,
    angle_step: float = LABEL_NUDGE_ANGLE,
    strength: float = LABEL_NUDGE_STRENGTH,
    alpha: float = 1.0,
) -> List[Delta]:
    """
    Slide nodes near a ring label along their own ring.

    The nudge points towards the spot on the node's ring radius rotated by
    ``angle_step`` away from the label, so the node keeps its ring. It fades
    with ``alpha`` so collisions win once the simulation cools down.
    """
    labels = list(label_positions)
    deltas = []
    for node in nodes:
        dvx = dvy = 0.0
        for lx, ly in labels:
            if math.hypot(node.x - lx, node.y - ly) >= exclusion_radius:
                continue

            angle = math.atan2(node.y, node.x)
            direction = 1.0 if _angle_difference(angle, math.atan2(ly, lx)) >= 0 else -1.0
            new_angle = angle + direction * angle_step
            ring_radius = math.hypot(node.target_x, node.target_y)
            dvx += (math.cos(new_angle) * ring_radius - node.x) * strength * alpha
            dvy += (math.sin(new_angle) * ring_radius - node.y) * strength * alpha
        deltas.append((dvx, dvy))
    return deltas


def integrate(
    nodes: Sequence[PositionedItem],
    deltas: Sequence[Delta],
    velocity_decay: float = VELOCITY_DECAY,
) -> None:
    """Apply velocity deltas, decay velocities and advance positions in place."""
    keep = 1 - velocity_decay
    for node, (dvx, dvy) in zip(nodes, deltas):
        node.vx = (node.vx + dvx) * keep
        node.vy = (node.vy + dvy) * keep
        node.x += node.vx
        node.y += node.vy


def _sum_deltas(*force_deltas: Sequence[Delta]) -> List[Delta]:
    return [
        (sum(d[0] for d in per_node), sum(d[1] for d in per_node))
        for per_node in zip(*force_deltas)
    ]


class LayoutEngine:
    """
    Runs one layout pass: target assignment followed by relaxation.

    The engine keeps no state between passes; tuning parameters are fixed at
    construction.
    """

    def __init__(
        self,
        ticks: int = SIMULATION_TICKS,
        collide_radius: float = NODE_COLLIDE_RADIUS,
        force_strength: float = NODE_FORCE_STRENGTH,
        label_exclusion_radius: float = RING_LABEL_EXCLUSION_RADIUS,
    ):
        self.ticks = ticks
        self.collide_radius = collide_radius
        self.force_strength = force_strength
        self.label_exclusion_radius = label_exclusion_radius

    def relax(self, nodes: List[PositionedItem], geometry: RadarGeometry) -> List[PositionedItem]:
        """
        Run the fixed-length simulation over ``nodes`` in place.

        Parameters
        ----------
        nodes : List[PositionedItem]
            Nodes from compute_targets()
        geometry : RadarGeometry
            Geometry providing the ring label anchors

        Returns
        -------
        List[PositionedItem]
            The same nodes, relaxed and with velocities cleared
        """
        labels = geometry.ring_label_positions()
        alpha = 1.0
        for _ in range(self.ticks):
            alpha += (ALPHA_TARGET - alpha) * ALPHA_DECAY
            deltas = _sum_deltas(
                collide_force(nodes, radius=self.collide_radius),
                target_force(nodes, alpha, strength=self.force_strength),
                label_avoid_force(nodes, labels, exclusion_radius=self.label_exclusion_radius, alpha=alpha),
            )
            integrate(nodes, deltas)

        # Frozen until the next pass
        for node in nodes:
            node.vx = node.vy = 0.0
        return nodes

    def layout(
        self,
        items: Sequence[RadarItem],
        radius: float,
        ring_order: Tuple[Ring, ...] = RING_ORDER,
        quadrant_order: Tuple[Quadrant, ...] = QUADRANT_ORDER,
    ) -> List[PositionedItem]:
        """
        Compute final node positions for ``items``.

        Raises
        ------
        InvalidGeometryError
            If ``radius`` is not positive
        """
        geometry = RadarGeometry(radius=radius, ring_order=ring_order, quadrant_order=quadrant_order)
        nodes = compute_targets(items, geometry)
        if not nodes:
            return nodes

        self.relax(nodes, geometry)
        logger.debug(
            f"Layout pass: {len(nodes)}/{len(items)} items placed, "
            f"radius={radius}, ticks={self.ticks}"
        )
        return nodes


def compute_layout(items: Sequence[RadarItem], radius: float) -> List[PositionedItem]:
    """Run a layout pass with the default engine settings."""
    return LayoutEngine().layout(items, radius)
