"""Playback of a synthetic execution trace.

For control-flow graphs the playback order is the layout order with every loop
body unrolled: for a back-edge ``source -> target`` where ``target`` comes
before ``source``, the slice ``target..source`` is repeated
``LOOP_EXTRA_ITERATIONS`` more times right after its first pass. Back-edges
are trusted as tagged by the analysis service; no cycle detection happens
here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from codeviz.errors import SequenceError
from codeviz.graph import EdgeData

logger = logging.getLogger(__name__)

# Extra passes through each loop body beyond the natural one. Fixed for now;
# could become a per-visualization option.
LOOP_EXTRA_ITERATIONS: int = 2
TICK_INTERVAL: float = 1.0  # seconds between playback steps


# ─── Sequence Construction ────────────────────────────────────────────────────


def build_sequence(order: list[int], edges: list[EdgeData]) -> list[int]:
    """Unroll every back-edge's loop body into ``order``.

    Raises ``SequenceError`` when a back-edge references a node that is not in
    ``order``.
    """
    seq = list(order)
    for edge in edges:
        if not edge.is_back_edge:
            continue
        try:
            t_idx = seq.index(edge.target)
            s_idx = seq.index(edge.source)
        except ValueError as exc:
            raise SequenceError(f"back-edge {edge.source}->{edge.target} references an unknown node") from exc
        if t_idx >= s_idx:
            continue
        body = seq[t_idx : s_idx + 1]
        seq[s_idx + 1 : s_idx + 1] = body * LOOP_EXTRA_ITERATIONS
    return seq


def try_build_sequence(order: list[int], edges: list[EdgeData]) -> list[int] | None:
    """Like ``build_sequence`` but returns ``None`` instead of raising."""
    try:
        return build_sequence(order, edges)
    except SequenceError as exc:
        logger.debug("Falling back to raw node order: %s", exc)
        return None


# ─── Playback State ───────────────────────────────────────────────────────────


@dataclass
class AnimationState:
    """Step cursor over ``sequence``, or over ``fallback`` (raw node order) without one."""

    sequence: list[int] | None = None
    fallback: list[int] = field(default_factory=list)
    step: int = 0
    playing: bool = False

    @property
    def steps(self) -> list[int]:
        return self.sequence if self.sequence else self.fallback

    @property
    def length(self) -> int:
        return len(self.steps)

    @property
    def at_end(self) -> bool:
        return self.step >= self.length - 1

    def current_node(self) -> int | None:
        steps = self.steps
        if not steps:
            return None
        return steps[min(self.step, len(steps) - 1)]

    def play(self) -> bool:
        """Start playing; restarts from the first step when already at the end."""
        if self.length == 0:
            return False
        if self.at_end:
            self.step = 0
        self.playing = True
        return True

    def pause(self) -> None:
        self.playing = False

    def tick(self) -> bool:
        """One timer tick. Returns ``False`` once playback has stopped."""
        if not self.playing:
            return False
        if self.at_end:
            self.playing = False
            return False
        self.step += 1
        if self.at_end:
            self.playing = False
        return self.playing

    def step_forward(self) -> bool:
        if self.length and not self.at_end:
            self.step += 1
            return True
        return False

    def step_back(self) -> bool:
        if self.step > 0:
            self.step -= 1
            return True
        return False


# ─── Timer ────────────────────────────────────────────────────────────────────


class Ticker(Protocol):
    """Repeating timer driving playback."""

    @property
    def running(self) -> bool: ...

    def start(self, callback: Callable[[], bool]) -> None: ...

    def stop(self) -> None: ...


class AsyncioTicker:
    """Calls ``callback`` every ``interval`` seconds on the running event loop.

    The loop ends when the callback returns ``False`` or ``stop()`` is called.
    Starting again cancels any previous task first, so ticks never overlap.
    """

    def __init__(self, interval: float = TICK_INTERVAL) -> None:
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], bool]) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(callback))
        self._task.add_done_callback(self._report)

    @staticmethod
    def _report(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Playback stopped: tick callback raised %r", exc, exc_info=exc)

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, callback: Callable[[], bool]) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not callback():
                break
