"""Visualization — the state machine behind the interactive diagram.

Graph, viewport, selection and animation are plain records owned by a
``Visualization`` and changed only through its named transitions. Hosts
subscribe with ``subscribe(callback)``; each callback receives the transition
name and the visualization after the transition has been applied, and usually
responds by calling ``render()``.

Per graph load the pipeline is normalize → layout → route, run once. Viewport
and rendering work per interaction. Selection and playback both feed the single
active node used for highlighting: pinned, else hovered, else the current
playback step. Playing or stepping writes the step into the hovered slot, so a
pinned node always wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from codeviz.animation import AnimationState, AsyncioTicker, Ticker, try_build_sequence
from codeviz.errors import GraphSourceError
from codeviz.graph import DiagramKind, GraphIR, normalize_payload
from codeviz.layout import LayoutResult, full_layout
from codeviz.renderers.base import Renderer, Scene
from codeviz.renderers.svg import SvgRenderer
from codeviz.routing import RoutedEdge, route_edges
from codeviz.selection import InspectorView, Selection, inspect
from codeviz.source import GenerationCounter, GraphSource
from codeviz.viewport import Viewport, graph_bounds

logger = logging.getLogger(__name__)

ESCAPE_KEY = "Escape"

Observer = Callable[[str, "Visualization"], None]


class Visualization:
    """Interactive view of one program's structural graph.

    Args:
        source: Graph source used by ``refresh``; built from the environment when omitted.
        renderer: Frame renderer, ``SvgRenderer`` by default.
        ticker: Playback timer, an ``AsyncioTicker`` by default.
        viewport: Initial viewport (its size is kept across graph loads).
        kind: Initial diagram kind.
        on_close: Called once the overlay is closed.
    """

    def __init__(
        self,
        source: GraphSource | None = None,
        renderer: Renderer | None = None,
        ticker: Ticker | None = None,
        viewport: Viewport | None = None,
        kind: DiagramKind = DiagramKind.CFG,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._source = source
        self.renderer = renderer or SvgRenderer()
        self.ticker = ticker or AsyncioTicker()
        self.viewport = viewport or Viewport()
        self.kind = DiagramKind(kind)
        self.on_close = on_close

        self.graph = GraphIR()
        self.layout = LayoutResult()
        self.edges: list[RoutedEdge] = []
        self.selection = Selection()
        self.animation = AnimationState()
        self.generations = GenerationCounter()

        self.code = ""
        self.graph_key: tuple[str, DiagramKind] | None = None
        self.loading = False
        self.error: str | None = None
        self.is_open = True
        self.show_inspector = True
        self._observers: list[Observer] = []

    @property
    def source(self) -> GraphSource:
        if self._source is None:
            self._source = GraphSource()
        return self._source

    # ─── Observers ────────────────────────────────────────────────────────

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _emit(self, transition: str) -> None:
        for callback in list(self._observers):
            callback(transition, self)

    # ─── Derived State ────────────────────────────────────────────────────

    @property
    def active(self) -> int | None:
        """Pinned node, else hovered node, else the current playback step."""
        selected = self.selection.active
        if selected is not None:
            return selected
        return self.animation.current_node()

    def inspector(self) -> InspectorView | None:
        """Inspector contents for the active node, ``None`` when hidden or idle."""
        if not self.show_inspector:
            return None
        return inspect(self.graph, self.active)

    def scene(self) -> Scene:
        return Scene(
            graph=self.graph,
            layout=self.layout,
            edges=self.edges,
            viewport=self.viewport,
            active=self.active,
            error=self.error,
            loading=self.loading,
        )

    def render(self) -> str:
        return self.renderer.render(self.scene())

    # ─── Graph Loading ────────────────────────────────────────────────────

    def load_graph(self, payload: Any, kind: DiagramKind | None = None) -> GraphIR:
        """Replace the current graph with ``payload`` and reset the view around it."""
        if kind is not None:
            self.kind = DiagramKind(kind)
        self.ticker.stop()

        self.graph = normalize_payload(payload)
        self.layout = full_layout(self.graph)
        self.edges = route_edges(self.graph, self.layout)

        self.selection.reset()
        self.viewport.reset()
        self.animation = self._build_animation()
        self.viewport.fit(graph_bounds(self.layout))

        logger.info(
            "Loaded %s graph: %d nodes, %d edges",
            self.kind.value,
            len(self.graph.nodes),
            len(self.graph.edges),
        )
        self._emit("graph_loaded")
        return self.graph

    def _build_animation(self) -> AnimationState:
        raw_order = [n.id for n in self.graph.nodes]
        if not self.kind.simulates_iteration:
            return AnimationState(sequence=None, fallback=raw_order)
        order = self.layout.order() or raw_order
        return AnimationState(sequence=try_build_sequence(order, self.graph.edges), fallback=raw_order)

    async def refresh(self, code: str, kind: DiagramKind | None = None) -> bool:
        """Fetch and load the graph for ``code``.

        Returns ``True`` when this call's response was applied. A response
        that arrives after a newer ``refresh`` started is discarded; a failure
        keeps the current graph and sets ``error``.
        """
        kind = DiagramKind(kind) if kind is not None else self.kind
        self.code = code
        self.kind = kind
        if not code.strip():
            return False

        token = self.generations.issue()
        self.loading = True
        self.error = None
        self._emit("fetch_started")

        try:
            payload = await self.source.fetch(self.source.request_for(code, kind))
        except GraphSourceError as exc:
            if not self.generations.is_current(token):
                logger.debug("Ignoring failure of superseded fetch %d: %s", token.generation, exc)
                return False
            logger.warning("Graph fetch failed: %s", exc)
            self.loading = False
            self.error = str(exc)
            self._emit("fetch_failed")
            return False
        finally:
            # The newest fetch owns the flag, whatever way it ended.
            if self.generations.is_current(token):
                self.loading = False

        if not self.generations.is_current(token):
            logger.debug("Discarding stale response of fetch %d", token.generation)
            return False

        self.graph_key = (code, kind)
        self.load_graph(payload, kind)
        return True

    async def set_kind(self, kind: DiagramKind) -> bool:
        """Switch diagram kind, refetching for the current source text."""
        kind = DiagramKind(kind)
        if kind is self.kind and self.graph_key == (self.code, kind):
            return False
        self.kind = kind
        self._emit("kind_changed")
        return await self.refresh(self.code, kind)

    # ─── Playback ─────────────────────────────────────────────────────────

    def _highlight_step(self) -> None:
        node_id = self.animation.current_node()
        if node_id is not None:
            self.selection.hover(node_id)

    def _tick(self) -> bool:
        keep_going = self.animation.tick()
        self._highlight_step()
        try:
            self._emit("tick")
        except Exception:
            self.animation.pause()
            raise
        return keep_going

    def play(self) -> None:
        """Start playback. A ticker that fails to start leaves playback paused."""
        if not self.animation.play():
            return
        try:
            self.ticker.start(self._tick)
        except Exception:
            self.animation.pause()
            raise
        self._highlight_step()
        self._emit("play")

    def pause(self) -> None:
        self.animation.pause()
        self.ticker.stop()
        self._emit("pause")

    def toggle_play(self) -> None:
        if self.animation.playing:
            self.pause()
        else:
            self.play()

    def step_forward(self) -> None:
        if self.animation.step_forward():
            self._highlight_step()
            self._emit("step")

    def step_back(self) -> None:
        if self.animation.step_back():
            self._highlight_step()
            self._emit("step")

    # ─── View Controls ────────────────────────────────────────────────────

    def zoom_in(self) -> None:
        self.viewport.zoom_in()
        self._emit("zoom")

    def zoom_out(self) -> None:
        self.viewport.zoom_out()
        self._emit("zoom")

    def reset_view(self) -> None:
        self.viewport.reset()
        self._emit("reset_view")

    def fit_to_view(self) -> None:
        if self.viewport.fit(graph_bounds(self.layout)):
            self._emit("fit")

    def resize(self, width: float, height: float) -> None:
        self.viewport.resize(width, height)
        self._emit("resize")

    def toggle_inspector(self) -> None:
        self.show_inspector = not self.show_inspector
        self._emit("inspector_toggled")

    # ─── Pointer Input ────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float, node_id: int | None = None, button: int = 0) -> None:
        """Press on the canvas. Off any node this starts a pan and drops the pin."""
        if self.viewport.press(x, y, on_node=node_id is not None, button=button):
            self.selection.clear_pin()
            self._emit("pan_started")

    def pointer_move(self, x: float, y: float) -> None:
        if self.viewport.move(x, y):
            self._emit("pan")

    def pointer_up(self) -> None:
        self.viewport.release()

    def pointer_leave(self) -> None:
        self.viewport.leave()

    def wheel(self, x: float, y: float, dx: float, dy: float, ctrl: bool = False) -> None:
        if self.viewport.wheel(x, y, dx, dy, ctrl=ctrl):
            self._emit("zoom" if ctrl else "pan")

    def hover_node(self, node_id: int) -> None:
        if self.graph.has_node(node_id):
            self.selection.hover(node_id)
            self._emit("hover")

    def leave_node(self, node_id: int) -> None:
        if self.selection.hovered == node_id:
            self.selection.unhover(keep=self.animation.playing)
            self._emit("hover")

    def click_node(self, node_id: int) -> None:
        if self.graph.has_node(node_id):
            self.selection.pin(node_id)
            self._emit("pin")

    select_neighbor = click_node

    def click_background(self) -> None:
        self.selection.clear_pin()
        self._emit("unpin")

    # ─── Overlay ──────────────────────────────────────────────────────────

    def key_down(self, key: str) -> None:
        if key == ESCAPE_KEY and self.is_open:
            self.close()

    def close(self) -> None:
        self.animation.pause()
        self.ticker.stop()
        self.is_open = False
        self._emit("closed")
        if self.on_close is not None:
            self.on_close()

    def open(self) -> None:
        self.is_open = True
        self._emit("opened")
