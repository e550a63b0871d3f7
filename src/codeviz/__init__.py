"""codeviz: layered layout, routing, SVG rendering and playback for program graphs."""

from codeviz.engine import Visualization
from codeviz.errors import CodevizError, GraphSourceError, SequenceError
from codeviz.graph import DiagramKind, EdgeData, GraphIR, NodeData, normalize_payload
from codeviz.layout import LayoutResult, full_layout
from codeviz.routing import RoutedEdge, route_edges

__all__ = [
    "CodevizError",
    "DiagramKind",
    "EdgeData",
    "GraphIR",
    "GraphSourceError",
    "LayoutResult",
    "NodeData",
    "RoutedEdge",
    "SequenceError",
    "Visualization",
    "full_layout",
    "normalize_payload",
    "route_edges",
]
