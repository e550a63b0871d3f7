"""SVG renderer — renders a Scene to an SVG string."""

from __future__ import annotations

from codeviz.graph import NodeData
from codeviz.layout import LayoutNode
from codeviz.renderers.base import Scene
from codeviz.routing import DEFAULT_MARKER, EDGE_COLORS, MARKERS, RoutedEdge

# ─── Constants ──────────────────────────────────────────────────────────────

FONT_SIZE = 12
CAPTION_FONT_SIZE = 10
FONT_FAMILY = "sans-serif"
NODE_RADIUS = 6
LABEL_MAX_CHARS = 15
LABEL_DY = -5  # edge labels sit slightly above their anchor

DIMMED_EDGE_OPACITY = 0.25
DIMMED_NODE_OPACITY = 0.55
HIGHLIGHT_STROKE = "#FBBF24"
HIGHLIGHT_STROKE_WIDTH = 3

# theme name -> (background, error text colour)
THEMES: dict[str, tuple[str, str]] = {
    "light": ("#FFFFFF", "#DC2626"),
    "dark": ("#111827", "#F87171"),
}
DEFAULT_THEME = "light"

NODE_COLORS: dict[str, str] = {
    "entry": "#10B981",
    "exit": "#EF4444",
    "statement": "#3B82F6",
    "condition": "#F59E0B",
    "loop_header": "#8B5CF6",
    "function_call": "#EC4899",
    "definition": "#10B981",
    "use": "#3B82F6",
    "return": "#EF4444",
    "Module": "#6366F1",
    "FunctionDef": "#8B5CF6",
    "Assign": "#3B82F6",
    "While": "#F59E0B",
    "For": "#F59E0B",
    "If": "#F59E0B",
}
DEFAULT_NODE_COLOR = "#6B7280"

# marker id → fill colour of its arrowhead
_MARKER_FILLS: dict[str, str] = {
    DEFAULT_MARKER: EDGE_COLORS["normal"],
    MARKERS["true"]: EDGE_COLORS["true"],
    MARKERS["false"]: EDGE_COLORS["false"],
    MARKERS["back"]: EDGE_COLORS["back"],
}


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _font(size: int = FONT_SIZE) -> str:
    return f'font-family="{FONT_FAMILY}" font-size="{size}"'


def _n(value: float) -> str:
    return f"{round(value, 2):g}"


def node_color(kind: str) -> str:
    return NODE_COLORS.get(kind, DEFAULT_NODE_COLOR)


def truncate_label(label: str, limit: int = LABEL_MAX_CHARS) -> str:
    return label if len(label) <= limit else label[:limit] + "..."


# ─── Node Rendering ─────────────────────────────────────────────────────────


def _render_node(ln: LayoutNode, data: NodeData | None, active: int | None) -> str:
    kind = data.kind if data is not None else ""
    label = data.label if data is not None else str(ln.id)
    is_active = active == ln.id

    opacity = f' opacity="{DIMMED_NODE_OPACITY}"' if active is not None and not is_active else ""
    if is_active:
        stroke = f'stroke="{HIGHLIGHT_STROKE}" stroke-width="{HIGHLIGHT_STROKE_WIDTH}"'
    else:
        stroke = 'stroke="transparent" stroke-width="0"'

    cx, cy = ln.width / 2, ln.height / 2
    parts = [
        f'<g class="node" data-node-id="{ln.id}" data-kind="{_escape(kind)}" '
        f'transform="translate({_n(ln.left)},{_n(ln.top)})"{opacity}>',
        f'<rect width="{ln.width}" height="{ln.height}" rx="{NODE_RADIUS}" fill="{node_color(kind)}" {stroke}/>',
        f'<text x="{_n(cx)}" y="{_n(cy)}" text-anchor="middle" dominant-baseline="middle" fill="white" '
        f'font-weight="500" {_font()}>{_escape(truncate_label(label))}</text>',
    ]
    if data is not None and data.source_line:
        parts.append(
            f'<text x="{_n(cx)}" y="{ln.height - 8}" text-anchor="middle" fill="rgba(255,255,255,0.7)" '
            f"{_font(CAPTION_FONT_SIZE)}>Line {data.source_line}</text>"
        )
    parts.append("</g>")
    return "\n".join(parts)


# ─── Edge Rendering ─────────────────────────────────────────────────────────


def _render_edge(re: RoutedEdge, active: int | None) -> str:
    dimmed = active is not None and not re.touches(active)
    opacity = DIMMED_EDGE_OPACITY if dimmed else 1
    parts = [
        f'<g class="edge" data-source="{re.source}" data-target="{re.target}" data-kind="{_escape(re.edge.kind)}">',
        f'<path d="{re.path_data()}" fill="none" stroke="{re.color}" stroke-width="2" '
        f'marker-end="url(#{re.marker})" opacity="{opacity}"/>',
    ]
    if re.edge.label:
        parts.append(
            f'<text x="{_n(re.label_at.x)}" y="{_n(re.label_at.y)}" dy="{LABEL_DY}" text-anchor="middle" '
            f'fill="{re.color}" {_font()}>{_escape(re.edge.label)}</text>'
        )
    parts.append("</g>")
    return "\n".join(parts)


def _render_defs() -> list[str]:
    parts = ["<defs>"]
    for marker_id, fill in _MARKER_FILLS.items():
        parts.append(
            f'  <marker id="{marker_id}" markerWidth="10" markerHeight="7" refX="9" refY="3.5" orient="auto">'
        )
        parts.append(f'    <polygon points="0 0, 10 3.5, 0 7" fill="{fill}"/>')
        parts.append("  </marker>")
    parts.append("</defs>")
    return parts


# ─── Overlays ───────────────────────────────────────────────────────────────


def _render_error(message: str, width: float, text_color: str) -> str:
    banner_w = min(width - 32, max(240, len(message) * 7 + 48))
    x = (width - banner_w) / 2
    return "\n".join(
        [
            '<g class="error-banner">',
            f'<rect x="{_n(x)}" y="16" width="{_n(banner_w)}" height="32" rx="8" '
            'fill="#EF4444" fill-opacity="0.2" stroke="#EF4444"/>',
            f'<text x="{_n(width / 2)}" y="32" text-anchor="middle" dominant-baseline="middle" fill="{text_color}" '
            f"{_font()}>{_escape(message)}</text>",
            "</g>",
        ]
    )


def _render_loading(width: float, height: float) -> str:
    return (
        f'<circle class="loading" cx="{_n(width / 2)}" cy="{_n(height / 2)}" r="24" fill="none" '
        'stroke="#3B82F6" stroke-width="2" stroke-dasharray="110 40"/>'
    )


# ─── Public Renderer ────────────────────────────────────────────────────────


class SvgRenderer:
    """SVG renderer — consumes a Scene, produces an SVG string the size of the viewport.

    Args:
        theme: ``"light"`` or ``"dark"`` canvas.
    """

    def __init__(self, theme: str = DEFAULT_THEME) -> None:
        if theme not in THEMES:
            raise ValueError(f"unknown theme {theme!r}; expected one of {sorted(THEMES)}")
        self.theme = theme

    def render(self, scene: Scene) -> str:
        vp = scene.viewport
        w, h = _n(vp.width), _n(vp.height)
        background, error_color = THEMES[self.theme]

        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" viewBox="0 0 {w} {h}">',
            *_render_defs(),
            f'<rect class="background" width="{w}" height="{h}" fill="{background}"/>',
        ]

        if scene.layout.nodes:
            parts.append(f'<g class="graph" transform="{vp.transform}">')
            # Edges (behind nodes)
            for re in scene.edges:
                parts.append(_render_edge(re, scene.active))
            # Nodes (on top)
            for ln in scene.layout.nodes:
                parts.append(_render_node(ln, scene.graph.node(ln.id), scene.active))
            parts.append("</g>")

        if scene.loading:
            parts.append(_render_loading(vp.width, vp.height))
        if scene.error:
            parts.append(_render_error(scene.error, vp.width, error_color))

        parts.append("</svg>")
        return "\n".join(parts)
