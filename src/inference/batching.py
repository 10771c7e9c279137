"""
Dual-trigger batch scheduler: a batch flushes when it is full or when its
oldest window has waited long enough, whichever comes first.
"""

import time
from collections.abc import Callable
from typing import Optional

import structlog

from .models import Batch, FlushReason, Window

logger = structlog.get_logger(__name__)


class BatchScheduler:
    """Accumulates windows into batches for the scorer

    The scheduler never waits on its own; the owning task asks how long it
    may sleep (seconds_until_due) and calls flush_if_due when it wakes.
    """

    def __init__(
        self,
        batch_size: int = 64,
        timeout_seconds: float = 64.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError(f"Batch size must be >= 1, got {batch_size}")
        if timeout_seconds <= 0:
            raise ValueError(f"Batch timeout must be > 0, got {timeout_seconds}")

        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._next_batch_id = 1
        self._batch = self._open_batch()

    def _open_batch(self) -> Batch:
        batch = Batch(batch_id=self._next_batch_id)
        self._next_batch_id += 1
        return batch

    @property
    def pending(self) -> int:
        """Number of windows in the open batch"""
        return len(self._batch)

    def add(self, window: Window) -> Optional[Batch]:
        """Append a window; return the flushed batch if it is now full"""
        if not self._batch.windows:
            # First window arms the timeout
            self._batch.opened_at = self._clock()

        self._batch.windows.append(window)

        if len(self._batch) >= self.batch_size:
            return self.flush(FlushReason.SIZE_REACHED)
        return None

    def seconds_until_due(self) -> Optional[float]:
        """Remaining wait before the open batch times out, None if it is empty"""
        if not self._batch.windows:
            return None
        elapsed = self._clock() - self._batch.opened_at
        return max(0.0, self.timeout_seconds - elapsed)

    def flush_if_due(self) -> Optional[Batch]:
        """Flush the open batch if its timeout has elapsed"""
        remaining = self.seconds_until_due()
        if remaining is None or remaining > 0:
            return None
        return self.flush(FlushReason.TIMEOUT)

    def flush(self, reason: FlushReason) -> Optional[Batch]:
        """Hand off the open batch and open a new one; no-op when empty"""
        if not self._batch.windows:
            return None

        batch = self._batch
        batch.flush_reason = reason
        self._batch = self._open_batch()

        logger.debug(
            "Batch flushed",
            batch_id=batch.batch_id,
            window_count=len(batch),
            flush_reason=reason.value,
        )
        return batch
