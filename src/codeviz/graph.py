"""Graph IR and payload normalization.

The analysis service returns a loosely-typed JSON payload. ``normalize_payload``
turns it into a ``GraphIR`` that the layout, routing and inspector phases can
trust:

  - node ids are unique integers (first occurrence wins)
  - every edge references existing node ids (others are dropped)
  - ``entry`` is an existing node id (first node when missing or unknown)
  - edges are synthesized from per-node ``successors`` lists when the payload
    has no edge list

Nothing in here raises for malformed content.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import networkx as nx

logger = logging.getLogger(__name__)

DEFAULT_NODE_KIND = "statement"
DEFAULT_EDGE_KIND = "normal"
BACK_EDGE_KIND = "back"


class DiagramKind(str, Enum):
    """Which structural view of the program the service should compute."""

    AST = "ast"
    CFG = "cfg"
    DFG = "dfg"

    @property
    def simulates_iteration(self) -> bool:
        """Only control-flow graphs get the loop-unrolling playback."""
        return self is DiagramKind.CFG


@dataclass(frozen=True)
class NodeData:
    """A node as delivered by the analysis service."""

    id: int
    kind: str = DEFAULT_NODE_KIND
    label: str = ""
    source_line: int | None = None


@dataclass(frozen=True)
class EdgeData:
    """A directed edge. Several edges may share the same (source, target) pair."""

    source: int
    target: int
    kind: str = DEFAULT_EDGE_KIND
    label: str | None = None

    @property
    def is_back_edge(self) -> bool:
        return self.kind == BACK_EDGE_KIND

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target


@dataclass
class GraphIR:
    """Normalized graph.

    ``nodes`` and ``edges`` keep payload order. ``digraph`` is a
    ``networkx.MultiDiGraph`` over the same data: node attribute ``data`` holds
    the ``NodeData`` and each edge is keyed by its index in ``edges`` with the
    ``EdgeData`` under the ``data`` attribute.
    """

    nodes: list[NodeData] = field(default_factory=list)
    edges: list[EdgeData] = field(default_factory=list)
    entry: int | None = None
    exits: list[int] = field(default_factory=list)
    digraph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph)

    @classmethod
    def build(
        cls,
        nodes: list[NodeData],
        edges: list[EdgeData],
        entry: int | None = None,
        exits: list[int] | None = None,
    ) -> GraphIR:
        """Assemble a GraphIR from already-valid nodes and edges."""
        digraph: nx.MultiDiGraph = nx.MultiDiGraph()
        for node in nodes:
            digraph.add_node(node.id, data=node)
        for key, edge in enumerate(edges):
            digraph.add_edge(edge.source, edge.target, key=key, data=edge)

        if entry is None or entry not in digraph:
            entry = nodes[0].id if nodes else None

        return cls(
            nodes=list(nodes),
            edges=list(edges),
            entry=entry,
            exits=list(exits or []),
            digraph=digraph,
        )

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node(self, node_id: int) -> NodeData | None:
        if node_id not in self.digraph:
            return None
        return self.digraph.nodes[node_id]["data"]

    def has_node(self, node_id: int) -> bool:
        return node_id in self.digraph

    def incoming(self, node_id: int) -> list[EdgeData]:
        """Edges whose target is ``node_id``, in payload order."""
        if node_id not in self.digraph:
            return []
        keyed = [(key, attrs["data"]) for _, _, key, attrs in self.digraph.in_edges(node_id, keys=True, data=True)]
        return [edge for _, edge in sorted(keyed, key=lambda item: item[0])]

    def outgoing(self, node_id: int) -> list[EdgeData]:
        """Edges whose source is ``node_id``, in payload order."""
        if node_id not in self.digraph:
            return []
        keyed = [(key, attrs["data"]) for _, _, key, attrs in self.digraph.out_edges(node_id, keys=True, data=True)]
        return [edge for _, edge in sorted(keyed, key=lambda item: item[0])]

    def back_edges(self) -> list[EdgeData]:
        return [e for e in self.edges if e.is_back_edge]


# ─── Payload Normalization ────────────────────────────────────────────────────


def _coerce_id(value: Any) -> int | None:
    """Coerce a payload id to ``int``; ``None`` when it is not an integral value."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                as_float = float(value)
            except ValueError:
                return None
            return int(as_float) if as_float.is_integer() else None
    return None


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _normalize_nodes(raw_nodes: list[Any]) -> tuple[list[NodeData], dict[int, list[Any]]]:
    nodes: list[NodeData] = []
    successors: dict[int, list[Any]] = {}
    seen: set[int] = set()

    for raw in raw_nodes:
        if not isinstance(raw, Mapping):
            logger.debug("Dropping non-mapping node entry %r", raw)
            continue
        node_id = _coerce_id(raw.get("id"))
        if node_id is None:
            logger.debug("Dropping node with invalid id %r", raw.get("id"))
            continue
        if node_id in seen:
            logger.debug("Dropping duplicate node id %d", node_id)
            continue
        seen.add(node_id)

        label = _coerce_text(raw.get("label"))
        nodes.append(
            NodeData(
                id=node_id,
                kind=_coerce_text(raw.get("type")) or DEFAULT_NODE_KIND,
                label=label if label is not None else str(node_id),
                source_line=_coerce_id(raw.get("line")),
            )
        )
        succ = raw.get("successors")
        if isinstance(succ, list):
            successors[node_id] = succ

    return nodes, successors


def _normalize_edges(raw_edges: list[Any], known: set[int]) -> list[EdgeData]:
    edges: list[EdgeData] = []
    for raw in raw_edges:
        if not isinstance(raw, Mapping):
            logger.debug("Dropping non-mapping edge entry %r", raw)
            continue
        source = _coerce_id(raw.get("source"))
        target = _coerce_id(raw.get("target"))
        if source not in known or target not in known:
            logger.debug("Dropping edge %r -> %r with unknown endpoint", raw.get("source"), raw.get("target"))
            continue
        edges.append(
            EdgeData(
                source=source,
                target=target,
                kind=_coerce_text(raw.get("type")) or DEFAULT_EDGE_KIND,
                label=_coerce_text(raw.get("label")) or None,
            )
        )
    return edges


def _edges_from_successors(nodes: list[NodeData], successors: dict[int, list[Any]]) -> list[dict[str, Any]]:
    raw_edges: list[dict[str, Any]] = []
    for node in nodes:
        for succ in successors.get(node.id, []):
            raw_edges.append({"source": node.id, "target": succ, "type": DEFAULT_EDGE_KIND})
    return raw_edges


def normalize_payload(payload: Any) -> GraphIR:
    """Turn a raw service payload into a well-formed ``GraphIR``.

    Accepts either the graph mapping itself or an envelope ``{"graph": {...}}``.
    Anything that is not a mapping with a node list yields the empty graph.
    """
    if isinstance(payload, Mapping) and isinstance(payload.get("graph"), Mapping):
        payload = payload["graph"]
    if not isinstance(payload, Mapping) or not isinstance(payload.get("nodes"), list):
        logger.debug("Payload has no node list; using empty graph")
        return GraphIR()

    nodes, successors = _normalize_nodes(payload["nodes"])
    known = {n.id for n in nodes}

    raw_edges = payload.get("edges")
    if not isinstance(raw_edges, list) or not raw_edges:
        raw_edges = _edges_from_successors(nodes, successors)
    edges = _normalize_edges(raw_edges, known)

    entry = _coerce_id(payload.get("entry"))
    if entry is not None and entry not in known:
        logger.debug("Entry %d is not a node id; defaulting to first node", entry)

    raw_exits = payload.get("exits")
    exits: list[int] = []
    if isinstance(raw_exits, list):
        exits = [e for e in (_coerce_id(x) for x in raw_exits) if e in known]

    return GraphIR.build(nodes, edges, entry=entry, exits=exits)
