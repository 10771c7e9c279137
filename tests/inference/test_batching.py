"""
Tests for BatchScheduler.
"""

import pytest

from src.inference.batching import BatchScheduler
from src.inference.models import FlushReason


class TestBatchScheduler:
    """Tests for BatchScheduler class."""

    def test_rejects_invalid_arguments(self):
        with pytest.raises(ValueError, match="Batch size"):
            BatchScheduler(batch_size=0)
        with pytest.raises(ValueError, match="Batch timeout"):
            BatchScheduler(batch_size=4, timeout_seconds=0)

    @pytest.mark.parametrize("batch_size", [1, 2, 4, 64])
    def test_flushes_exactly_at_size(self, batch_size, window_factory, fake_clock):
        """A batch flushes with size_reached when it reaches B, never before."""
        scheduler = BatchScheduler(batch_size=batch_size, timeout_seconds=60, clock=fake_clock)

        for i in range(batch_size - 1):
            assert scheduler.add(window_factory(i)) is None
            assert scheduler.pending == i + 1

        batch = scheduler.add(window_factory(batch_size - 1))

        assert batch is not None
        assert batch.flush_reason is FlushReason.SIZE_REACHED
        assert len(batch) == batch_size
        assert scheduler.pending == 0

    def test_timeout_flush_with_partial_batch(self, window_factory, fake_clock):
        """A lone window still flushes once the max wait elapses."""
        scheduler = BatchScheduler(batch_size=8, timeout_seconds=5.0, clock=fake_clock)
        scheduler.add(window_factory(0))

        fake_clock.advance(4.9)
        assert scheduler.flush_if_due() is None

        fake_clock.advance(0.1)
        batch = scheduler.flush_if_due()

        assert batch is not None
        assert batch.flush_reason is FlushReason.TIMEOUT
        assert len(batch) == 1

    def test_timer_not_armed_while_empty(self, window_factory, fake_clock):
        """An empty batch is never flushed, however long it waits."""
        scheduler = BatchScheduler(batch_size=4, timeout_seconds=1.0, clock=fake_clock)

        fake_clock.advance(100)

        assert scheduler.seconds_until_due() is None
        assert scheduler.flush_if_due() is None
        assert scheduler.flush(FlushReason.TIMEOUT) is None

    def test_timer_armed_by_first_window(self, window_factory, fake_clock):
        """The wait starts when the first window of a batch arrives."""
        scheduler = BatchScheduler(batch_size=4, timeout_seconds=3.0, clock=fake_clock)
        fake_clock.advance(10)

        scheduler.add(window_factory(0))
        fake_clock.advance(1)
        scheduler.add(window_factory(1))

        assert scheduler.seconds_until_due() == pytest.approx(2.0)
        assert scheduler.flush_if_due() is None

    def test_new_batch_opened_after_flush(self, window_factory, fake_clock):
        """Windows after a flush accumulate into a fresh batch with a new id."""
        scheduler = BatchScheduler(batch_size=2, timeout_seconds=60, clock=fake_clock)

        first = scheduler.add(window_factory(0)) or scheduler.add(window_factory(1))
        scheduler.add(window_factory(2))

        assert first.batch_id == 1
        assert [w.sequence_id for w in first.windows] == [0, 1]
        assert scheduler.pending == 1

        second = scheduler.add(window_factory(3))
        assert second.batch_id == 2
        assert [w.sequence_id for w in second.windows] == [2, 3]

    def test_flush_never_exceeds_size(self, window_factory, fake_clock):
        """No batch ever holds more than B windows."""
        scheduler = BatchScheduler(batch_size=3, timeout_seconds=60, clock=fake_clock)
        batches = [b for b in (scheduler.add(window_factory(i)) for i in range(10)) if b]

        assert len(batches) == 3
        assert all(len(b) == 3 for b in batches)
        assert scheduler.pending == 1

    def test_forced_flush(self, window_factory, fake_clock):
        """flush hands off a partial batch with the given reason."""
        scheduler = BatchScheduler(batch_size=4, timeout_seconds=60, clock=fake_clock)
        scheduler.add(window_factory(0))

        batch = scheduler.flush(FlushReason.TIMEOUT)

        assert len(batch) == 1
        assert batch.flush_reason is FlushReason.TIMEOUT
        assert batch.opened_at == fake_clock.now
