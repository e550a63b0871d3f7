"""Graph source — asynchronous client for the analysis service.

Every fetch is tagged with a ``FetchToken`` issued by a ``GenerationCounter``.
The caller compares the token against the counter once the response arrives
and drops it when a newer fetch has started meanwhile. The network request
itself is never aborted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from codeviz.config import DEFAULT_MAX_NODES, Settings
from codeviz.errors import GraphSourceError
from codeviz.graph import DiagramKind

logger = logging.getLogger(__name__)

VISUALIZE_PATH = "/api/ai/visualize/{kind}"


@dataclass(frozen=True)
class FetchToken:
    generation: int


class GenerationCounter:
    """Monotonic counter of issued fetches."""

    def __init__(self) -> None:
        self._generation = 0

    @property
    def current(self) -> int:
        return self._generation

    def issue(self) -> FetchToken:
        self._generation += 1
        return FetchToken(self._generation)

    def is_current(self, token: FetchToken) -> bool:
        return token.generation == self._generation


@dataclass(frozen=True)
class GraphRequest:
    code: str
    kind: DiagramKind
    max_nodes: int = DEFAULT_MAX_NODES

    def body(self) -> dict[str, Any]:
        return {"code": self.code, "max_nodes": self.max_nodes}


class GraphSource:
    """Fetches raw graph payloads from ``POST /api/ai/visualize/{kind}``.

    Args:
        settings: Service location, node cap and timeout.
        transport: Optional ``httpx`` transport (tests pass a ``MockTransport``).
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self._transport = transport

    def request_for(self, code: str, kind: DiagramKind) -> GraphRequest:
        return GraphRequest(code=code, kind=DiagramKind(kind), max_nodes=self.settings.max_nodes)

    def url_for(self, kind: DiagramKind) -> str:
        return self.settings.api_url + VISUALIZE_PATH.format(kind=DiagramKind(kind).value)

    async def fetch(self, request: GraphRequest) -> Any:
        """Return the decoded JSON payload or raise ``GraphSourceError``."""
        url = self.url_for(request.kind)
        logger.debug("Fetching %s graph (%d chars) from %s", request.kind.value, len(request.code), url)
        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout, transport=self._transport) as client:
                response = await client.post(url, json=request.body())
        except httpx.TimeoutException as exc:
            raise GraphSourceError(f"Timed out fetching {request.kind.value} graph") from exc
        except httpx.HTTPError as exc:
            raise GraphSourceError(f"Could not reach the analysis service: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise GraphSourceError(f"Invalid analysis service URL {url!r}: {exc}") from exc

        if not response.is_success:
            raise GraphSourceError(
                f"Visualization request failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise GraphSourceError("Analysis service returned a non-JSON body") from exc
