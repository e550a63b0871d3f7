"""Base renderer protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from codeviz.graph import GraphIR
from codeviz.layout import LayoutResult
from codeviz.routing import RoutedEdge
from codeviz.viewport import Viewport


@dataclass
class Scene:
    """Everything a renderer needs for one frame."""

    graph: GraphIR = field(default_factory=GraphIR)
    layout: LayoutResult = field(default_factory=LayoutResult)
    edges: list[RoutedEdge] = field(default_factory=list)
    viewport: Viewport = field(default_factory=Viewport)
    active: int | None = None
    error: str | None = None
    loading: bool = False


class Renderer(Protocol):
    """Protocol that all renderers must implement."""

    def render(self, scene: Scene) -> str:
        """Render one frame of a laid-out graph to an output string."""
        ...
