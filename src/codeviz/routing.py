"""Edge routing — draw paths for every edge of a laid-out graph.

Each edge gets one of four shapes:

  - self-loop:  cubic curve bulging up and to the right of the node, leaving
                and re-entering at the node's bottom anchor
  - back-edge:  cubic arc above both endpoints, so loop-closing edges stand
                apart from forward flow
  - forward:    straight segment from the source's bottom anchor to the
                target's top anchor
  - parallel:   any of the above, fanned out by a perpendicular offset when
                several edges share the same (source, target) pair
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass

from codeviz.graph import EdgeData, GraphIR
from codeviz.layout import LayoutNode, LayoutResult

PARALLEL_SEPARATION: float = 18.0
LOOP_REACH: float = 80.0  # how far self-loops and back-edge arcs bulge out
SELF_LOOP_DROP: float = 40.0  # lower control point of a self-loop, below the anchor
LABEL_LIFT: float = 8.0

MARKERS: dict[str, str] = {
    "true": "arrow-green",
    "false": "arrow-red",
    "back": "arrow-purple",
}
DEFAULT_MARKER = "arrowhead"

EDGE_COLORS: dict[str, str] = {
    "normal": "#9CA3AF",
    "true": "#10B981",
    "false": "#EF4444",
    "back": "#8B5CF6",
    "def-use": "#3B82F6",
    "child": "#6B7280",
}
DEFAULT_EDGE_COLOR = "#9CA3AF"


@dataclass(frozen=True)
class Point:
    """A 2D point in canvas coordinates."""

    x: float
    y: float

    def shifted(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)


@dataclass
class RoutedEdge:
    """A routed edge.

    ``points`` is ``[start, end]`` for straight edges and
    ``[start, control1, control2, end]`` for cubic curves.
    """

    index: int
    edge: EdgeData
    points: list[Point]
    label_at: Point
    offset: float = 0.0

    @property
    def source(self) -> int:
        return self.edge.source

    @property
    def target(self) -> int:
        return self.edge.target

    @property
    def curved(self) -> bool:
        return len(self.points) == 4

    @property
    def marker(self) -> str:
        return marker_for(self.edge.kind)

    @property
    def color(self) -> str:
        return EDGE_COLORS.get(self.edge.kind, DEFAULT_EDGE_COLOR)

    def touches(self, node_id: int | None) -> bool:
        return node_id is not None and node_id in (self.edge.source, self.edge.target)

    def path_data(self) -> str:
        """SVG ``d`` attribute for this edge."""
        coords = [f"{_num(p.x)} {_num(p.y)}" for p in self.points]
        if self.curved:
            return f"M {coords[0]} C {coords[1]} {coords[2]} {coords[3]}"
        return f"M {coords[0]} L {coords[-1]}"


def _num(value: float) -> str:
    """Compact number formatting for path data (``12`` not ``12.0``)."""
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:g}"


def marker_for(kind: str) -> str:
    return MARKERS.get(kind, DEFAULT_MARKER)


# ─── Sibling Offsets ──────────────────────────────────────────────────────────


def sibling_offsets(edges: list[EdgeData]) -> list[float]:
    """Perpendicular offset for every edge, fanning out parallel siblings.

    The i-th of n edges sharing a (source, target) pair is offset by
    ``(i - (n - 1) / 2) * PARALLEL_SEPARATION``; a lone edge gets 0.
    """
    counts = Counter((e.source, e.target) for e in edges)
    seen: dict[tuple[int, int], int] = defaultdict(int)
    offsets: list[float] = []
    for e in edges:
        pair = (e.source, e.target)
        index = seen[pair]
        seen[pair] += 1
        offsets.append((index - (counts[pair] - 1) / 2) * PARALLEL_SEPARATION)
    return offsets


# ─── Path Shapes ──────────────────────────────────────────────────────────────


def route_self_loop(node: LayoutNode, offset: float) -> tuple[list[Point], Point]:
    spread = abs(offset)
    anchor = Point(node.x, node.bottom)
    reach_x = anchor.x + LOOP_REACH + spread
    points = [
        anchor,
        Point(reach_x, anchor.y - LOOP_REACH - spread),
        Point(reach_x, anchor.y + SELF_LOOP_DROP + spread),
        anchor,
    ]
    label_at = Point(anchor.x + max(40.0, 60.0 + spread), anchor.y - 30.0 - spread)
    return points, label_at


def route_back_edge(src: LayoutNode, tgt: LayoutNode, offset: float) -> tuple[list[Point], Point]:
    start = Point(src.x, src.bottom)
    end = Point(tgt.x, tgt.bottom)
    ctrl_y = min(start.y, end.y) - LOOP_REACH - abs(offset)
    points = [
        start,
        Point(start.x + offset * 0.5, ctrl_y),
        Point(end.x + offset * 0.5, ctrl_y),
        end,
    ]
    label_at = Point((start.x + end.x) / 2 + offset * 0.3, ctrl_y - LABEL_LIFT)
    return points, label_at


def route_forward(src: LayoutNode, tgt: LayoutNode, offset: float) -> tuple[list[Point], Point]:
    start = Point(src.x, src.bottom)
    end = Point(tgt.x, tgt.top)
    if offset:
        dx, dy = end.x - start.x, end.y - start.y
        length = math.hypot(dx, dy) or 1.0
        ox, oy = -dy / length * offset, dx / length * offset
        start, end = start.shifted(ox, oy), end.shifted(ox, oy)
    label_at = Point((start.x + end.x) / 2, (start.y + end.y) / 2)
    return [start, end], label_at


def route_edge(edge: EdgeData, src: LayoutNode, tgt: LayoutNode, offset: float, index: int = 0) -> RoutedEdge:
    """Pick the path shape for a single edge."""
    if edge.is_self_loop:
        points, label_at = route_self_loop(src, offset)
    elif edge.is_back_edge:
        points, label_at = route_back_edge(src, tgt, offset)
    else:
        points, label_at = route_forward(src, tgt, offset)
    return RoutedEdge(index=index, edge=edge, points=points, label_at=label_at, offset=offset)


def route_edges(gir: GraphIR, layout: LayoutResult) -> list[RoutedEdge]:
    """Route every edge of ``gir`` whose endpoints have a position."""
    offsets = sibling_offsets(gir.edges)
    routes: list[RoutedEdge] = []
    for index, (edge, offset) in enumerate(zip(gir.edges, offsets)):
        src = layout.get(edge.source)
        tgt = layout.get(edge.target)
        if src is None or tgt is None:
            continue
        routes.append(route_edge(edge, src, tgt, offset, index=index))
    return routes
