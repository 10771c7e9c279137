"""
Sliding window assembly over the tick stream.
"""

from collections import deque
from typing import Optional

import structlog

from .models import Tick, Window

logger = structlog.get_logger(__name__)


class WindowAssembler:
    """Builds stride-1 windows of the N most recent ticks

    Must be driven by a single consumer; ticks are assumed to arrive in
    stream order.
    """

    def __init__(self, window_size: int = 5):
        if window_size < 1:
            raise ValueError(f"Window size must be >= 1, got {window_size}")
        self.window_size = window_size
        self._buffer: deque[Tick] = deque(maxlen=window_size)
        self._next_sequence_id = 0
        self.ticks_seen = 0

    @property
    def warmed_up(self) -> bool:
        return len(self._buffer) == self.window_size

    def push(self, tick: Tick) -> Optional[Window]:
        """Add a tick and return the completed window, if any

        The first window_size - 1 ticks only fill the buffer; every tick after
        that yields exactly one window.
        """
        self._buffer.append(tick)
        self.ticks_seen += 1

        if not self.warmed_up:
            logger.debug(
                "Window warming up",
                ticks_seen=self.ticks_seen,
                window_size=self.window_size,
            )
            return None

        window = Window(ticks=tuple(self._buffer), sequence_id=self._next_sequence_id)
        self._next_sequence_id += 1
        return window
