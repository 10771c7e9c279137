"""
Tests for WindowAssembler.
"""

import pytest

from src.inference.window import WindowAssembler


class TestWindowAssembler:
    """Tests for WindowAssembler class."""

    def test_rejects_invalid_size(self):
        with pytest.raises(ValueError, match="Window size"):
            WindowAssembler(window_size=0)

    @pytest.mark.parametrize("window_size", [1, 2, 5, 8])
    def test_first_window_after_exactly_n_ticks(self, window_size, tick_factory):
        """Ticks 1..N-1 produce nothing; tick N produces the first window."""
        assembler = WindowAssembler(window_size=window_size)

        for i in range(window_size - 1):
            assert assembler.push(tick_factory([float(i)], seconds=i)) is None

        window = assembler.push(tick_factory([float(window_size)], seconds=window_size))

        assert window is not None
        assert window.sequence_id == 0
        assert len(window.ticks) == window_size
        assert assembler.ticks_seen == window_size

    def test_stride_one_after_warm_up(self, tick_factory):
        """Every tick after warm-up emits one window of the N newest ticks."""
        assembler = WindowAssembler(window_size=3)
        ticks = [tick_factory([float(i)], seconds=i) for i in range(6)]

        windows = [w for w in (assembler.push(t) for t in ticks) if w is not None]

        assert len(windows) == 4
        assert [w.sequence_id for w in windows] == [0, 1, 2, 3]
        for offset, window in enumerate(windows):
            assert window.ticks == tuple(ticks[offset : offset + 3])

    def test_ticks_in_window_are_ordered(self, tick_factory):
        """No window observes ticks out of order."""
        assembler = WindowAssembler(window_size=4)
        for i in range(10):
            window = assembler.push(tick_factory([float(i)], seconds=i))
            if window is not None:
                timestamps = [tick.timestamp for tick in window.ticks]
                assert timestamps == sorted(timestamps)

    def test_warm_up_ticks_are_counted(self, tick_factory):
        """Warm-up ticks count toward ticks_seen even without output."""
        assembler = WindowAssembler(window_size=5)
        for i in range(3):
            assembler.push(tick_factory([0.0], seconds=i))

        assert assembler.ticks_seen == 3
        assert assembler.warmed_up is False
