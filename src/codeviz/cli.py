"""
codeviz CLI - render program structure graphs to SVG.

Two entry points into the same pipeline:

  codeviz render graph.json -o cfg.svg          (payload already on disk)
  codeviz fetch program.py --kind dfg -o d.svg  (ask the analysis service)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from codeviz.config import Settings
from codeviz.engine import Visualization
from codeviz.graph import DiagramKind
from codeviz.renderers.svg import DEFAULT_THEME, THEMES, SvgRenderer
from codeviz.source import GraphSource
from codeviz.viewport import DEFAULT_HEIGHT, DEFAULT_WIDTH, Viewport

logger = logging.getLogger(__name__)

KIND_CHOICE = click.Choice([k.value for k in DiagramKind])


def _view_options(func):
    """Options shared by every command that produces a frame."""
    options = [
        click.option("--kind", type=KIND_CHOICE, default=DiagramKind.CFG.value, show_default=True,
                     help="Diagram kind"),
        click.option("-o", "--output", type=click.File("w"), default="-", help="Output SVG file (default stdout)"),
        click.option("--width", type=int, default=DEFAULT_WIDTH, show_default=True, help="Viewport width"),
        click.option("--height", type=int, default=DEFAULT_HEIGHT, show_default=True, help="Viewport height"),
        click.option("--fit/--no-fit", default=True, show_default=True, help="Fit the graph into the viewport"),
        click.option("--select", "select", type=int, default=None, help="Pin this node id"),
        click.option("--step", type=int, default=0, help="Advance playback by this many steps"),
        click.option("--inspect", is_flag=True, help="Print inspector details of the active node to stderr"),
        click.option("--theme", type=click.Choice(sorted(THEMES)), default=DEFAULT_THEME, show_default=True,
                     help="Canvas theme"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _apply_view(viz: Visualization, fit: bool, select: int | None, step: int) -> None:
    if not fit:
        viz.reset_view()
    for _ in range(max(0, step)):
        viz.step_forward()
    if select is not None:
        if not viz.graph.has_node(select):
            raise click.BadParameter(f"node {select} is not in the graph", param_hint="--select")
        viz.click_node(select)


def _echo_inspector(viz: Visualization) -> None:
    view = viz.inspector()
    if view is None:
        click.echo("No active node", err=True)
        return
    click.echo(f"Node {view.node_id}: {view.label} [{view.kind}]", err=True)
    if view.source_line is not None:
        click.echo(f"  Line {view.source_line}", err=True)
    for title, entries in (("Predecessors", view.predecessors), ("Successors", view.successors)):
        click.echo(f"  {title}:", err=True)
        if not entries:
            click.echo("    None", err=True)
        for entry in entries:
            click.echo(f"    {entry.node_id} {entry.label} ({entry.edge_kind})", err=True)


@click.group()
@click.version_option(package_name="codeviz")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """codeviz: program structure graphs as navigable diagrams."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("payload", type=click.File("r"))
@_view_options
def render(payload, kind, output, width, height, fit, select, step, inspect, theme):
    """Render a graph payload (JSON) to SVG."""
    try:
        data = json.load(payload)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON payload: {exc}") from exc

    viz = Visualization(renderer=SvgRenderer(theme), viewport=Viewport(width=width, height=height))
    viz.load_graph(data, DiagramKind(kind))
    _apply_view(viz, fit, select, step)

    output.write(viz.render() + "\n")
    if inspect:
        _echo_inspector(viz)


@main.command()
@click.argument("source_file", type=click.File("r"))
@click.option("--api-url", envvar="CODEVIZ_API_URL", default=None, help="Analysis service base URL")
@click.option("--max-nodes", type=int, default=None, help="Node cap sent to the service")
@_view_options
def fetch(source_file, api_url, max_nodes, kind, output, width, height, fit, select, step, inspect, theme):
    """Send SOURCE_FILE to the analysis service and render the returned graph."""
    settings = Settings.from_env()
    settings = Settings(
        api_url=(api_url or settings.api_url).rstrip("/"),
        max_nodes=max_nodes or settings.max_nodes,
        timeout=settings.timeout,
    )
    viz = Visualization(
        source=GraphSource(settings),
        renderer=SvgRenderer(theme),
        viewport=Viewport(width=width, height=height),
    )

    loaded = asyncio.run(viz.refresh(source_file.read(), DiagramKind(kind)))
    if loaded:
        _apply_view(viz, fit, select, step)

    output.write(viz.render() + "\n")
    if inspect and loaded:
        _echo_inspector(viz)
    if viz.error:
        click.echo(f"Error: {viz.error}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
