"""Renderers turning a Scene into a drawable document."""

from codeviz.renderers.base import Renderer, Scene
from codeviz.renderers.svg import SvgRenderer

__all__ = ["Renderer", "Scene", "SvgRenderer"]
