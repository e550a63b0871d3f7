"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_MAX_NODES = 800
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    """Where to reach the analysis service and how much to ask of it."""

    api_url: str = DEFAULT_API_URL
    max_nodes: int = DEFAULT_MAX_NODES
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``CODEVIZ_*`` variables, keeping defaults for bad values."""
        env = os.environ if environ is None else environ

        api_url = env.get("CODEVIZ_API_URL", DEFAULT_API_URL).rstrip("/")
        max_nodes = _parse(env, "CODEVIZ_MAX_NODES", int, DEFAULT_MAX_NODES)
        timeout = _parse(env, "CODEVIZ_TIMEOUT", float, DEFAULT_TIMEOUT)
        return cls(api_url=api_url, max_nodes=max_nodes, timeout=timeout)


def _parse(env, name, convert, default):
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return convert(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default
