"""Tests for the codeviz CLI."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from codeviz import cli
from codeviz.renderers.svg import THEMES
from codeviz.source import GraphSource

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"
LOOP_EXAMPLE = str(EXAMPLES_DIR / "while_loop.cfg.json")
NS = {"svg": "http://www.w3.org/2000/svg"}


@pytest.fixture
def runner():
    return CliRunner()


def node_ids(svg_path: Path) -> set[int]:
    root = ET.parse(svg_path).getroot()
    return {int(g.get("data-node-id")) for g in root.iterfind(".//svg:g[@class='node']", NS)}


class TestRender:
    def test_writes_svg_to_stdout(self, runner):
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE])
        assert result.exit_code == 0, result.output
        assert result.output.lstrip().startswith("<svg")
        assert 'data-node-id="6"' in result.output

    def test_writes_svg_to_file(self, runner, tmp_path):
        out = tmp_path / "cfg.svg"
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE, "-o", str(out), "--width", "500", "--height", "400"])
        assert result.exit_code == 0, result.output
        assert node_ids(out) == {1, 2, 3, 4, 5, 6}
        assert ET.parse(out).getroot().get("width") == "500"

    def test_select_and_inspect(self, runner, tmp_path):
        result = runner.invoke(
            cli.main, ["render", LOOP_EXAMPLE, "-o", str(tmp_path / "out.svg"), "--select", "2", "--inspect"]
        )
        assert result.exit_code == 0, result.output
        assert "Node 2: while n > 0 [loop_header]" in result.output
        assert "4 n -= 1 (back)" in result.output
        assert "5 return 'liftoff' (false)" in result.output

    def test_step_highlights_playback_node(self, runner, tmp_path):
        result = runner.invoke(
            cli.main, ["render", LOOP_EXAMPLE, "-o", str(tmp_path / "out.svg"), "--step", "4", "--inspect"]
        )
        assert result.exit_code == 0, result.output
        assert "Node 4: n -= 1 [statement]" in result.output

    def test_inspect_defaults_to_first_step(self, runner, tmp_path):
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE, "-o", str(tmp_path / "out.svg"), "--inspect"])
        assert result.exit_code == 0, result.output
        assert "Node 1: def countdown(n) [entry]" in result.output

    def test_inspect_empty_graph(self, runner, tmp_path):
        empty = tmp_path / "empty.json"
        empty.write_text('{"nodes": []}')
        result = runner.invoke(cli.main, ["render", str(empty), "-o", str(tmp_path / "out.svg"), "--inspect"])
        assert result.exit_code == 0, result.output
        assert "No active node" in result.output

    def test_dark_theme(self, runner, tmp_path):
        out = tmp_path / "dark.svg"
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE, "-o", str(out), "--theme", "dark"])
        assert result.exit_code == 0, result.output
        background = ET.parse(out).getroot().find("svg:rect[@class='background']", NS)
        assert background.get("fill") == THEMES["dark"][0]

    def test_unknown_select_is_usage_error(self, runner):
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE, "--select", "99"])
        assert result.exit_code == 2
        assert "node 99 is not in the graph" in result.output

    def test_invalid_json(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        result = runner.invoke(cli.main, ["render", str(bad)])
        assert result.exit_code == 1
        assert "Invalid JSON payload" in result.output

    def test_unknown_kind_rejected(self, runner):
        result = runner.invoke(cli.main, ["render", LOOP_EXAMPLE, "--kind", "uml"])
        assert result.exit_code == 2


class TestFetch:
    @pytest.fixture
    def program(self, tmp_path):
        path = tmp_path / "countdown.py"
        path.write_text("def countdown(n):\n    while n > 0:\n        n -= 1\n")
        return path

    def patch_source(self, monkeypatch, handler):
        def factory(settings):
            return GraphSource(settings, transport=httpx.MockTransport(handler))

        monkeypatch.setattr(cli, "GraphSource", factory)

    def test_fetch_renders_service_graph(self, runner, monkeypatch, program, tmp_path):
        payload = json.loads(Path(LOOP_EXAMPLE).read_text())
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=payload)

        self.patch_source(monkeypatch, handler)
        out = tmp_path / "cfg.svg"
        result = runner.invoke(
            cli.main,
            ["fetch", str(program), "--api-url", "http://analysis.test/", "--max-nodes", "50", "-o", str(out)],
        )

        assert result.exit_code == 0, result.output
        assert str(seen[0].url) == "http://analysis.test/api/ai/visualize/cfg"
        assert json.loads(seen[0].content)["max_nodes"] == 50
        assert node_ids(out) == {1, 2, 3, 4, 5, 6}

    def test_fetch_uses_environment_url(self, runner, monkeypatch, program):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"nodes": [{"id": 1}]})

        self.patch_source(monkeypatch, handler)
        result = runner.invoke(
            cli.main, ["fetch", str(program), "--kind", "ast"], env={"CODEVIZ_API_URL": "http://env.test"}
        )
        assert result.exit_code == 0, result.output
        assert str(seen[0].url) == "http://env.test/api/ai/visualize/ast"

    def test_fetch_failure_reports_error(self, runner, monkeypatch, program):
        self.patch_source(monkeypatch, lambda request: httpx.Response(503, text="busy"))
        result = runner.invoke(cli.main, ["fetch", str(program), "--api-url", "http://analysis.test"])
        assert result.exit_code == 1
        assert "Error: Visualization request failed: HTTP 503" in result.output
        assert "error-banner" in result.output
