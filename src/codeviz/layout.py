"""Layout module — layered placement of a normalized graph.

Phases:
  1. Level assignment (breadth-first distance from the entry node over
     non-back edges)
  2. Ordering (each level sorted ascending by node id)
  3. Coordinate assignment (levels centred inside the content rectangle)
  4. Overflow grid for nodes the entry cannot reach

Positions are node centres in canvas pixels. The result does not depend on
node or edge insertion order, so re-running the layout on the same graph
always yields the same positions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import networkx as nx

from codeviz.graph import GraphIR

# ─── Geometry Constants ───────────────────────────────────────────────────────

NODE_WIDTH: int = 120
NODE_HEIGHT: int = 40
CANVAS_PADDING: int = 80  # blank border around the content rectangle
H_GAP: int = 80  # horizontal gap between nodes in the same level
V_GAP: int = 90  # vertical gap between adjacent levels
MIN_CANVAS_WIDTH: int = 900
MIN_CANVAS_HEIGHT: int = 600
UNPLACED_MAX_COLUMNS: int = 6


# ─── Level Assignment ─────────────────────────────────────────────────────────


def forward_view(gir: GraphIR) -> nx.MultiDiGraph:
    """Read-only view of the graph without back-edges."""
    digraph = gir.digraph

    def keep(src: int, tgt: int, key: int) -> bool:
        return not digraph.edges[src, tgt, key]["data"].is_back_edge

    return nx.subgraph_view(digraph, filter_edge=keep)


class LevelAssignment:
    """Result of level assignment: each reachable node is assigned a level.

    Level 0 holds the entry node. Nodes that cannot be reached from the entry
    along forward edges get no level and are listed in ``unplaced``.

    Attributes:
        levels: Maps node id → level index.
        ordering: One list per level, ids sorted ascending.
        unplaced: Unreached node ids, ascending.
    """

    def __init__(self, levels: dict[int, int], ordering: list[list[int]], unplaced: list[int]) -> None:
        self.levels = levels
        self.ordering = ordering
        self.unplaced = unplaced

    @property
    def level_count(self) -> int:
        return len(self.ordering)

    @property
    def widest(self) -> int:
        return max((len(ids) for ids in self.ordering), default=0)

    @classmethod
    def assign(cls, gir: GraphIR) -> LevelAssignment:
        """Breadth-first levels from ``gir.entry``, ignoring back-edges."""
        if gir.is_empty or gir.entry is None:
            return cls(levels={}, ordering=[], unplaced=[])

        levels: dict[int, int] = dict(nx.single_source_shortest_path_length(forward_view(gir), gir.entry))

        level_count = max(levels.values()) + 1
        ordering: list[list[int]] = [[] for _ in range(level_count)]
        for node_id, level in levels.items():
            ordering[level].append(node_id)
        for ids in ordering:
            ids.sort()

        unplaced = sorted(n.id for n in gir.nodes if n.id not in levels)
        return cls(levels=levels, ordering=ordering, unplaced=unplaced)


# ─── Coordinate Assignment ────────────────────────────────────────────────────


@dataclass
class LayoutNode:
    """A positioned node. ``x``/``y`` are the centre of its box."""

    id: int
    layer: int | None
    order: int
    x: float
    y: float
    width: int = NODE_WIDTH
    height: int = NODE_HEIGHT

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2


@dataclass
class LayoutResult:
    """Positioned nodes in layout order plus the size of the whole canvas."""

    nodes: list[LayoutNode] = field(default_factory=list)
    width: int = MIN_CANVAS_WIDTH
    height: int = MIN_CANVAS_HEIGHT

    def __post_init__(self) -> None:
        self._by_id: dict[int, LayoutNode] = {n.id: n for n in self.nodes}

    def get(self, node_id: int) -> LayoutNode | None:
        return self._by_id.get(node_id)

    def order(self) -> list[int]:
        """Node ids level by level, then the unplaced grid."""
        return [n.id for n in self.nodes]


def row_width(count: int) -> int:
    """Pixel width of ``count`` nodes laid side by side."""
    return count * NODE_WIDTH + max(0, count - 1) * H_GAP


def level_y(level: int) -> float:
    """Centre y of nodes in ``level``."""
    return CANVAS_PADDING + level * (NODE_HEIGHT + V_GAP) + NODE_HEIGHT / 2


def assign_coordinates(la: LevelAssignment) -> list[LayoutNode]:
    """Assign centre coordinates to every node.

    Each level is horizontally centred in a content rectangle as wide as the
    widest level. Unplaced nodes go into a grid below the last level with at
    most ``UNPLACED_MAX_COLUMNS`` columns.
    """
    content_w = row_width(max(1, la.widest))
    nodes: list[LayoutNode] = []

    for level, ids in enumerate(la.ordering):
        start_x = CANVAS_PADDING + (content_w - row_width(len(ids))) / 2
        y = level_y(level)
        for order, node_id in enumerate(ids):
            x = start_x + order * (NODE_WIDTH + H_GAP) + NODE_WIDTH / 2
            nodes.append(LayoutNode(id=node_id, layer=level, order=order, x=x, y=y))

    if la.unplaced:
        cols, _ = _grid_shape(len(la.unplaced))
        start_y = level_y(la.level_count)
        for index, node_id in enumerate(la.unplaced):
            col, row = index % cols, index // cols
            nodes.append(
                LayoutNode(
                    id=node_id,
                    layer=None,
                    order=index,
                    x=CANVAS_PADDING + col * (NODE_WIDTH + H_GAP) + NODE_WIDTH / 2,
                    y=start_y + row * (NODE_HEIGHT + V_GAP),
                )
            )

    return nodes


def _grid_shape(count: int) -> tuple[int, int]:
    """(columns, rows) of the overflow grid holding ``count`` unplaced nodes."""
    if count == 0:
        return 0, 0
    cols = min(UNPLACED_MAX_COLUMNS, max(1, math.ceil(math.sqrt(count))))
    return cols, math.ceil(count / cols)


def canvas_size(la: LevelAssignment) -> tuple[int, int]:
    """(width, height) of the full canvas, never below the minimum canvas.

    The overflow grid counts towards the content area so fit-to-view and the
    SVG canvas both cover unplaced nodes.
    """
    cols, rows = _grid_shape(len(la.unplaced))
    widest = max(1, la.widest, cols)
    deepest = max(0, la.level_count + rows - 1)
    content_w = row_width(widest)
    content_h = (deepest + 1) * NODE_HEIGHT + deepest * V_GAP
    width = max(MIN_CANVAS_WIDTH, CANVAS_PADDING * 2 + content_w)
    height = max(MIN_CANVAS_HEIGHT, CANVAS_PADDING * 2 + content_h)
    return width, height


# ─── Full Layout Pipeline ─────────────────────────────────────────────────────


def full_layout(gir: GraphIR) -> LayoutResult:
    """Run level assignment and coordinate assignment over ``gir``."""
    if gir.is_empty:
        return LayoutResult()

    la = LevelAssignment.assign(gir)
    nodes = assign_coordinates(la)
    width, height = canvas_size(la)
    return LayoutResult(nodes=nodes, width=width, height=height)
