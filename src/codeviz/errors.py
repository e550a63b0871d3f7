"""Exception hierarchy for codeviz."""

from __future__ import annotations


class CodevizError(Exception):
    """Base class for all codeviz errors."""


class GraphSourceError(CodevizError):
    """Raised when the analysis service cannot produce a graph payload.

    ``status_code`` is set for HTTP-level failures and ``None`` for transport
    or decoding failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class SequenceError(CodevizError):
    """Raised when a playback sequence cannot be built from the back-edges."""
