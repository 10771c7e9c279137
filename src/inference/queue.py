"""
Bounded FIFO of ticks awaiting windowing.
"""

import asyncio
from collections import deque

import structlog

from .errors import Backpressure, QueueClosed
from .models import Tick

logger = structlog.get_logger(__name__)


class BoundedQueue:
    """Fixed-capacity FIFO with fail-fast enqueue and suspending dequeue

    Producers call enqueue() from request handlers; a single consumer task
    awaits dequeue(). Both run on the same event loop.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError(f"Queue capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: deque[Tick] = deque()
        self._has_items = asyncio.Event()
        self._closed = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, tick: Tick) -> None:
        """Append a tick, or raise Backpressure immediately if the queue is full"""
        if self._closed:
            raise QueueClosed("Queue is closed")
        if len(self._items) >= self.capacity:
            raise Backpressure(self.capacity)
        self._items.append(tick)
        self._has_items.set()

    async def dequeue(self) -> Tick:
        """Remove and return the oldest tick, waiting until one is available

        Raises:
            QueueClosed: If the queue is closed and fully drained
        """
        while not self._items:
            if self._closed:
                raise QueueClosed("Queue is closed")
            self._has_items.clear()
            await self._has_items.wait()
        return self._items.popleft()

    def close(self) -> None:
        """Reject further enqueues and wake the consumer once drained"""
        if self._closed:
            return
        self._closed = True
        self._has_items.set()
        logger.debug("Queue closed", remaining=len(self._items))
