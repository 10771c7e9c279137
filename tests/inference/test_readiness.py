"""
Tests for the readiness state machine.
"""

import threading

import pytest

from src.inference.errors import InvalidTransition
from src.inference.models import ReadinessStatus
from src.inference.readiness import ReadinessState


class TestReadinessState:
    """Tests for ReadinessState class."""

    def test_starts_loading(self):
        """A fresh process is loading and not ready."""
        state = ReadinessState()

        assert state.status is ReadinessStatus.LOADING
        assert state.reason is None
        assert state.is_ready() is False
        assert state.can_score() is False

    def test_loading_to_ready(self):
        state = ReadinessState()

        state.mark_ready()

        assert state.status is ReadinessStatus.READY
        assert state.is_ready() is True
        assert state.can_score() is True

    def test_degraded_still_serves(self):
        """Degraded reports ready and keeps scoring."""
        state = ReadinessState()

        state.mark_degraded("accelerator unavailable")

        assert state.snapshot() == (ReadinessStatus.DEGRADED, "accelerator unavailable")
        assert state.is_ready() is True
        assert state.can_score() is True

    def test_failed_is_terminal(self):
        """Once failed, no transition leaves the state."""
        state = ReadinessState()
        state.mark_failed("model file missing")

        for target in ReadinessStatus:
            with pytest.raises(InvalidTransition):
                state.transition(target)

        assert state.status is ReadinessStatus.FAILED
        assert state.reason == "model file missing"
        assert state.is_ready() is False

    @pytest.mark.parametrize("start", [ReadinessStatus.READY, ReadinessStatus.DEGRADED])
    def test_serving_states_are_final(self, start):
        """Ready and degraded never go back to loading."""
        state = ReadinessState()
        state.transition(start, "reason")

        with pytest.raises(InvalidTransition, match="Cannot transition"):
            state.transition(ReadinessStatus.LOADING)

        assert state.status is start

    def test_reset_returns_to_loading(self):
        """Reset models a process restart."""
        state = ReadinessState()
        state.mark_failed("boom")

        state.reset()

        assert state.snapshot() == (ReadinessStatus.LOADING, None)
        state.mark_ready()
        assert state.status is ReadinessStatus.READY

    def test_concurrent_transitions_single_winner(self):
        """Only one of many racing transitions out of loading succeeds."""
        state = ReadinessState()
        errors = []
        barrier = threading.Barrier(8)

        def attempt():
            barrier.wait()
            try:
                state.mark_ready()
            except InvalidTransition as e:
                errors.append(e)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 7
        assert state.status is ReadinessStatus.READY
