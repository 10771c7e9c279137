"""
Tests for BoundedQueue.
"""

import asyncio

import pytest

from src.inference.errors import Backpressure, QueueClosed
from src.inference.queue import BoundedQueue


class TestBoundedQueue:
    """Tests for BoundedQueue class."""

    def test_rejects_invalid_capacity(self):
        """Capacity must be at least one."""
        with pytest.raises(ValueError, match="capacity"):
            BoundedQueue(capacity=0)

    @pytest.mark.parametrize("capacity", [1, 2, 5, 100])
    def test_backpressure_when_full(self, capacity, tick_factory):
        """After C enqueues the next one is rejected and C items remain."""
        queue = BoundedQueue(capacity=capacity)
        for i in range(capacity):
            queue.enqueue(tick_factory([float(i)], seconds=i))

        with pytest.raises(Backpressure) as exc_info:
            queue.enqueue(tick_factory([99.0]))

        assert exc_info.value.capacity == capacity
        assert len(queue) == capacity

    @pytest.mark.asyncio
    async def test_fifo_order(self, tick_factory):
        """Ticks come out in the order they went in."""
        queue = BoundedQueue(capacity=5)
        ticks = [tick_factory([float(i)], seconds=i) for i in range(5)]
        for tick in ticks:
            queue.enqueue(tick)

        dequeued = [await queue.dequeue() for _ in range(5)]

        assert dequeued == ticks
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_dequeue_waits_for_item(self, tick_factory):
        """dequeue suspends until a producer enqueues."""
        queue = BoundedQueue(capacity=2)
        consumer = asyncio.create_task(queue.dequeue())

        await asyncio.sleep(0.01)
        assert not consumer.done()

        tick = tick_factory([1.0])
        queue.enqueue(tick)

        assert await asyncio.wait_for(consumer, timeout=1.0) is tick

    @pytest.mark.asyncio
    async def test_space_frees_after_dequeue(self, tick_factory):
        """A rejected producer can enqueue once the consumer catches up."""
        queue = BoundedQueue(capacity=1)
        queue.enqueue(tick_factory([1.0]))
        with pytest.raises(Backpressure):
            queue.enqueue(tick_factory([2.0]))

        await queue.dequeue()
        queue.enqueue(tick_factory([3.0]))

        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_close_drains_then_raises(self, tick_factory):
        """Remaining items are still delivered after close."""
        queue = BoundedQueue(capacity=3)
        tick = tick_factory([1.0])
        queue.enqueue(tick)
        queue.close()

        assert await queue.dequeue() is tick
        with pytest.raises(QueueClosed):
            await queue.dequeue()

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self):
        """A consumer blocked on an empty queue is released by close."""
        queue = BoundedQueue(capacity=3)
        consumer = asyncio.create_task(queue.dequeue())
        await asyncio.sleep(0.01)

        queue.close()

        with pytest.raises(QueueClosed):
            await asyncio.wait_for(consumer, timeout=1.0)

    def test_enqueue_after_close_rejected(self, tick_factory):
        """Closed queues accept nothing."""
        queue = BoundedQueue(capacity=3)
        queue.close()

        with pytest.raises(QueueClosed):
            queue.enqueue(tick_factory([1.0]))
        assert queue.closed is True
