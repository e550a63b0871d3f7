"""Tests for animation.py — loop unrolling, playback transitions and the asyncio ticker."""

from __future__ import annotations

import asyncio

import pytest

from codeviz.animation import (
    LOOP_EXTRA_ITERATIONS,
    AnimationState,
    AsyncioTicker,
    build_sequence,
    try_build_sequence,
)
from codeviz.errors import SequenceError
from codeviz.graph import EdgeData

# ─── Sequence Construction Tests ──────────────────────────────────────────────


class TestBuildSequence:
    def test_no_back_edges(self):
        edges = [EdgeData(1, 2), EdgeData(2, 3)]
        assert build_sequence([1, 2, 3], edges) == [1, 2, 3]

    def test_simple_loop_unrolled(self):
        """A → B → C -back-> A: one natural pass plus two repeats."""
        edges = [EdgeData(1, 2), EdgeData(2, 3), EdgeData(3, 1, "back")]
        seq = build_sequence([1, 2, 3], edges)
        assert seq == [1, 2, 3] * (1 + LOOP_EXTRA_ITERATIONS)

    def test_length_grows_by_repeated_body(self):
        edges = [EdgeData(3, 1, "back")]
        seq = build_sequence([1, 2, 3, 4], edges)
        assert len(seq) == 4 + LOOP_EXTRA_ITERATIONS * 3

    def test_repeats_spliced_after_first_pass(self):
        """The body repeats right after the loop, before the code that follows it."""
        edges = [EdgeData(1, 2), EdgeData(2, 3), EdgeData(3, 2, "back"), EdgeData(2, 4)]
        assert build_sequence([1, 2, 3, 4], edges) == [1, 2, 3, 2, 3, 2, 3, 4]

    def test_back_edge_pointing_forward_ignored(self):
        edges = [EdgeData(1, 3, "back")]
        assert build_sequence([1, 2, 3], edges) == [1, 2, 3]

    def test_self_loop_back_edge_ignored(self):
        assert build_sequence([1, 2], [EdgeData(2, 2, "back")]) == [1, 2]

    def test_nested_loops(self):
        edges = [EdgeData(3, 2, "back"), EdgeData(4, 1, "back")]
        seq = build_sequence([1, 2, 3, 4], edges)
        inner = [1, 2, 3, 2, 3, 2, 3, 4]
        assert seq == inner * 3

    def test_non_back_edges_never_unroll(self):
        assert build_sequence([1, 2], [EdgeData(2, 1, "normal")]) == [1, 2]

    def test_unknown_node_raises(self):
        with pytest.raises(SequenceError):
            build_sequence([1, 2], [EdgeData(5, 1, "back")])

    def test_try_build_falls_back_to_none(self):
        assert try_build_sequence([1, 2], [EdgeData(5, 1, "back")]) is None
        assert try_build_sequence([1, 2], []) == [1, 2]

    def test_input_not_mutated(self):
        order = [1, 2, 3]
        build_sequence(order, [EdgeData(3, 1, "back")])
        assert order == [1, 2, 3]


# ─── Playback State Tests ─────────────────────────────────────────────────────


class TestAnimationState:
    def test_playback_stops_at_last_step(self):
        state = AnimationState(sequence=[1, 2, 3])
        assert state.play()
        assert state.current_node() == 1
        assert state.tick() is True
        assert state.current_node() == 2
        assert state.tick() is False
        assert state.current_node() == 3
        assert not state.playing
        assert state.tick() is False
        assert state.step == 2

    def test_tick_while_paused_does_nothing(self):
        state = AnimationState(sequence=[1, 2, 3])
        assert state.tick() is False
        assert state.step == 0

    def test_play_resumes_from_current_step(self):
        state = AnimationState(sequence=[1, 2, 3, 4], step=1)
        state.play()
        assert state.step == 1

    def test_play_at_end_restarts(self):
        state = AnimationState(sequence=[1, 2, 3], step=2)
        state.play()
        assert state.step == 0
        assert state.playing

    def test_play_without_steps(self):
        state = AnimationState()
        assert not state.play()
        assert not state.playing
        assert state.current_node() is None

    def test_manual_steps_clamped(self):
        state = AnimationState(sequence=[7, 8])
        assert not state.step_back()
        assert state.step_forward()
        assert not state.step_forward()
        assert state.current_node() == 8
        assert state.step_back()
        assert state.current_node() == 7

    def test_manual_steps_while_playing(self):
        state = AnimationState(sequence=[1, 2, 3])
        state.play()
        state.step_forward()
        assert state.playing
        assert state.current_node() == 2

    def test_fallback_to_raw_order(self):
        state = AnimationState(sequence=None, fallback=[5, 3, 9])
        assert state.length == 3
        state.step_forward()
        assert state.current_node() == 3

    def test_pause(self):
        state = AnimationState(sequence=[1, 2])
        state.play()
        state.pause()
        assert not state.playing


# ─── Ticker Tests ─────────────────────────────────────────────────────────────


class TestAsyncioTicker:
    def test_ticks_until_callback_declines(self):
        calls: list[int] = []

        async def scenario():
            ticker = AsyncioTicker(interval=0.001)
            done = asyncio.Event()

            def callback() -> bool:
                calls.append(1)
                if len(calls) == 3:
                    done.set()
                    return False
                return True

            ticker.start(callback)
            assert ticker.running
            await asyncio.wait_for(done.wait(), timeout=2)
            await asyncio.sleep(0.01)
            return ticker.running

        assert asyncio.run(scenario()) is False
        assert len(calls) == 3

    def test_stop_cancels(self):
        calls: list[int] = []

        async def scenario():
            ticker = AsyncioTicker(interval=0.005)
            ticker.start(lambda: calls.append(1) is None)
            ticker.stop()
            await asyncio.sleep(0.03)
            return ticker.running

        assert asyncio.run(scenario()) is False
        assert calls == []

    def test_restart_replaces_previous_task(self):
        first: list[int] = []
        second: list[int] = []

        async def scenario():
            ticker = AsyncioTicker(interval=0.005)
            ticker.start(lambda: first.append(1) is None)
            ticker.start(lambda: second.append(1) is None and len(second) < 2)
            await asyncio.sleep(0.05)
            ticker.stop()

        asyncio.run(scenario())
        assert first == []
        assert len(second) == 2

    def test_callback_error_is_logged(self, caplog):
        def callback() -> bool:
            raise ValueError("observer failed")

        async def scenario():
            ticker = AsyncioTicker(interval=0.001)
            ticker.start(callback)
            await asyncio.sleep(0.02)
            return ticker.running

        assert asyncio.run(scenario()) is False
        assert "Playback stopped" in caplog.text
        assert "observer failed" in caplog.text

    def test_start_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            AsyncioTicker().start(lambda: False)
