"""Selection state and the node inspector.

Two independent slots drive highlighting:

  - ``hovered``: the node under the pointer, or the current playback step
  - ``pinned``:  the node locked by a click

The active node is ``pinned`` when set, else ``hovered``. Hovering while a
node is pinned still records ``hovered`` so it becomes active again once the
pin is cleared.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from codeviz.graph import EdgeData, GraphIR


@dataclass
class Selection:
    hovered: int | None = None
    pinned: int | None = None

    @property
    def active(self) -> int | None:
        return self.pinned if self.pinned is not None else self.hovered

    def hover(self, node_id: int) -> None:
        self.hovered = node_id

    def unhover(self, keep: bool = False) -> None:
        """Pointer left a node. ``keep`` holds the highlight (e.g. during playback)."""
        if keep or self.pinned is not None:
            return
        self.hovered = None

    def pin(self, node_id: int) -> None:
        self.pinned = node_id
        self.hovered = node_id

    def clear_pin(self) -> None:
        self.pinned = None

    def reset(self) -> None:
        self.hovered = None
        self.pinned = None


# ─── Inspector ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NeighborEntry:
    """One row of the predecessor/successor lists; clicking it re-pins to ``node_id``."""

    node_id: int
    label: str
    edge_kind: str
    edge_label: str | None = None


@dataclass(frozen=True)
class InspectorView:
    node_id: int
    label: str
    kind: str
    source_line: int | None = None
    predecessors: list[NeighborEntry] = field(default_factory=list)
    successors: list[NeighborEntry] = field(default_factory=list)


def _entry(gir: GraphIR, neighbor_id: int, edge: EdgeData) -> NeighborEntry:
    node = gir.node(neighbor_id)
    label = node.label if node is not None else str(neighbor_id)
    return NeighborEntry(node_id=neighbor_id, label=label, edge_kind=edge.kind, edge_label=edge.label)


def inspect(gir: GraphIR, node_id: int | None) -> InspectorView | None:
    """Details of ``node_id`` with its incoming and outgoing neighbours.

    Returns ``None`` when there is no active node or it is not in the graph.
    """
    if node_id is None:
        return None
    node = gir.node(node_id)
    if node is None:
        return None
    return InspectorView(
        node_id=node.id,
        label=node.label,
        kind=node.kind,
        source_line=node.source_line,
        predecessors=[_entry(gir, e.source, e) for e in gir.incoming(node.id)],
        successors=[_entry(gir, e.target, e) for e in gir.outgoing(node.id)],
    )
