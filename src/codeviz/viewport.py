"""Viewport controller — zoom factor and pan offset of the canvas.

Screen coordinates relate to graph coordinates by

    screen = graph * zoom + pan

Only one input gesture is active at a time: a press on the background sets
the ``panning`` flag, moves are ignored unless it is set, and a release or
pointer-leave clears it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from codeviz.layout import LayoutResult

MIN_ZOOM: float = 0.2
MAX_ZOOM: float = 2.0
ZOOM_STEP: float = 0.1
WHEEL_ZOOM_RATE: float = 0.001  # zoom change per wheel delta unit
FIT_MARGIN: float = 40.0
PRIMARY_BUTTON: int = 0
DEFAULT_WIDTH: int = 1200
DEFAULT_HEIGHT: int = 800


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box in graph coordinates."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def graph_bounds(layout: LayoutResult) -> Bounds | None:
    """Bounding box of every positioned node box; ``None`` for an empty layout."""
    if not layout.nodes:
        return None
    return Bounds(
        min_x=min(n.left for n in layout.nodes),
        min_y=min(n.top for n in layout.nodes),
        max_x=max(n.right for n in layout.nodes),
        max_y=max(n.bottom for n in layout.nodes),
    )


@dataclass
class Viewport:
    """Zoom/pan state of a ``width`` × ``height`` drawing surface."""

    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    panning: bool = False
    _drag_origin: tuple[float, float, float, float] | None = field(default=None, init=False, repr=False)

    # ─── Coordinate Conversion ────────────────────────────────────────────

    def screen_to_graph(self, x: float, y: float) -> tuple[float, float]:
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom

    def graph_to_screen(self, x: float, y: float) -> tuple[float, float]:
        return x * self.zoom + self.pan_x, y * self.zoom + self.pan_y

    @property
    def transform(self) -> str:
        """SVG transform attribute mapping graph space onto the surface."""
        return f"translate({self.pan_x:g},{self.pan_y:g}) scale({self.zoom:g})"

    def resize(self, width: float, height: float) -> None:
        self.width = width
        self.height = height

    # ─── Drag-Pan ─────────────────────────────────────────────────────────

    def press(self, x: float, y: float, on_node: bool = False, button: int = PRIMARY_BUTTON) -> bool:
        """Begin a pan gesture. Returns ``True`` when panning started."""
        if on_node or button != PRIMARY_BUTTON:
            return False
        self.panning = True
        self._drag_origin = (x, y, self.pan_x, self.pan_y)
        return True

    def move(self, x: float, y: float) -> bool:
        """Track the pointer while panning. Returns ``True`` when the pan changed."""
        if not self.panning or self._drag_origin is None:
            return False
        start_x, start_y, pan_x, pan_y = self._drag_origin
        self.pan_x = pan_x + (x - start_x)
        self.pan_y = pan_y + (y - start_y)
        return True

    def release(self) -> None:
        self.panning = False
        self._drag_origin = None

    leave = release

    # ─── Zoom ─────────────────────────────────────────────────────────────

    def zoom_at(self, x: float, y: float, new_zoom: float) -> bool:
        """Zoom so the graph point under screen (x, y) stays under it.

        Returns ``False`` when the clamped zoom does not change.
        """
        next_zoom = clamp_zoom(new_zoom)
        if abs(next_zoom - self.zoom) < 1e-9:
            return False
        gx, gy = self.screen_to_graph(x, y)
        self.zoom = next_zoom
        self.pan_x = x - gx * next_zoom
        self.pan_y = y - gy * next_zoom
        return True

    def wheel(self, x: float, y: float, dx: float, dy: float, ctrl: bool = False) -> bool:
        """Handle a scroll gesture: zoom with the modifier held, pan otherwise."""
        if ctrl:
            return self.zoom_at(x, y, self.zoom - dy * WHEEL_ZOOM_RATE)
        self.pan_x -= dx
        self.pan_y -= dy
        return True

    def zoom_in(self) -> None:
        self.zoom = clamp_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> None:
        self.zoom = clamp_zoom(self.zoom - ZOOM_STEP)

    # ─── Fit / Reset ──────────────────────────────────────────────────────

    def fit(self, bounds: Bounds | None, margin: float = FIT_MARGIN) -> bool:
        """Choose zoom and pan so ``bounds`` is centred and fully visible.

        Returns ``False`` (and leaves the viewport alone) when there is
        nothing to fit.
        """
        if bounds is None:
            return False
        gw = max(1.0, bounds.width)
        gh = max(1.0, bounds.height)
        avail_w = max(1.0, self.width - margin * 2)
        avail_h = max(1.0, self.height - margin * 2)

        zoom = clamp_zoom(min(avail_w / gw, avail_h / gh))
        self.zoom = zoom
        self.pan_x = -bounds.min_x * zoom + (self.width - gw * zoom) / 2
        self.pan_y = -bounds.min_y * zoom + (self.height - gh * zoom) / 2
        return True

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0
        self.release()
