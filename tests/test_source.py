"""Tests for source.py and config.py — the analysis-service client and its settings."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from codeviz.config import DEFAULT_API_URL, DEFAULT_MAX_NODES, DEFAULT_TIMEOUT, Settings
from codeviz.errors import GraphSourceError
from codeviz.graph import DiagramKind
from codeviz.source import GenerationCounter, GraphRequest, GraphSource

PAYLOAD = {"graph": {"nodes": [{"id": 1, "type": "entry", "label": "start"}], "edges": [], "entry": 1}}


def source_with(handler, **settings) -> GraphSource:
    return GraphSource(Settings(**settings), transport=httpx.MockTransport(handler))


def fetch(source: GraphSource, code: str = "x = 1", kind: DiagramKind = DiagramKind.CFG):
    return asyncio.run(source.fetch(source.request_for(code, kind)))


# ─── Fetch Tests ──────────────────────────────────────────────────────────────


class TestGraphSource:
    def test_posts_code_and_node_cap(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=PAYLOAD)

        source = source_with(handler, api_url="http://analysis.test", max_nodes=120)
        assert fetch(source, "while x:\n    x -= 1", DiagramKind.DFG) == PAYLOAD

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://analysis.test/api/ai/visualize/dfg"
        assert json.loads(request.content) == {"code": "while x:\n    x -= 1", "max_nodes": 120}

    def test_http_error_status(self):
        source = source_with(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(GraphSourceError) as excinfo:
            fetch(source)
        assert excinfo.value.status_code == 500
        assert "500" in str(excinfo.value)

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GraphSourceError) as excinfo:
            fetch(source_with(handler))
        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(GraphSourceError, match="Timed out"):
            fetch(source_with(handler))

    def test_invalid_base_url(self):
        source = GraphSource(Settings(api_url="http://[::1"))
        with pytest.raises(GraphSourceError, match="Invalid analysis service URL") as excinfo:
            fetch(source)
        assert excinfo.value.status_code is None

    def test_non_json_body(self):
        source = source_with(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(GraphSourceError, match="non-JSON"):
            fetch(source)

    def test_request_uses_settings_cap(self):
        source = GraphSource(Settings(max_nodes=64))
        request = source.request_for("pass", "ast")
        assert request == GraphRequest(code="pass", kind=DiagramKind.AST, max_nodes=64)
        assert request.body() == {"code": "pass", "max_nodes": 64}


# ─── Generation Counter Tests ─────────────────────────────────────────────────


class TestGenerationCounter:
    def test_only_latest_token_is_current(self):
        counter = GenerationCounter()
        first = counter.issue()
        second = counter.issue()
        assert not counter.is_current(first)
        assert counter.is_current(second)
        assert counter.current == 2


# ─── Settings Tests ───────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings == Settings(api_url=DEFAULT_API_URL, max_nodes=DEFAULT_MAX_NODES, timeout=DEFAULT_TIMEOUT)

    def test_reads_environment(self):
        settings = Settings.from_env(
            {"CODEVIZ_API_URL": "https://viz.example.com/", "CODEVIZ_MAX_NODES": "250", "CODEVIZ_TIMEOUT": "4.5"}
        )
        assert settings.api_url == "https://viz.example.com"
        assert settings.max_nodes == 250
        assert settings.timeout == 4.5

    def test_invalid_values_fall_back(self, caplog):
        settings = Settings.from_env({"CODEVIZ_MAX_NODES": "lots", "CODEVIZ_TIMEOUT": "soon"})
        assert settings.max_nodes == DEFAULT_MAX_NODES
        assert settings.timeout == DEFAULT_TIMEOUT
        assert "CODEVIZ_MAX_NODES" in caplog.text
