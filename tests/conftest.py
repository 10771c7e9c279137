"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from src.inference.models import Batch, PipelineConfig, Tick, Window

BASE_TIME = datetime(2025, 10, 2, 12, 0, 0, tzinfo=UTC)


def make_tick(values, seconds: int = 0) -> Tick:
    """Build a tick at BASE_TIME + seconds"""
    return Tick(timestamp=BASE_TIME + timedelta(seconds=seconds), features=np.asarray(values))


def make_window(sequence_id: int, num_features: int = 3, window_size: int = 2, fill=0.0) -> Window:
    ticks = tuple(
        make_tick([fill] * num_features, seconds=sequence_id + i) for i in range(window_size)
    )
    return Window(ticks=ticks, sequence_id=sequence_id)


def make_batch(batch_id: int = 1, windows: int = 2, num_features: int = 3, fill=0.0) -> Batch:
    return Batch(
        batch_id=batch_id,
        windows=[make_window(i, num_features=num_features, fill=fill) for i in range(windows)],
    )


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Pipeline fixtures
@pytest.fixture
def small_config():
    """Three-feature pipeline configuration for fast tests."""
    return PipelineConfig(
        num_features=3,
        queue_capacity=10,
        window_size=5,
        batch_size=1,
        batch_timeout_seconds=0.05,
        anomaly_threshold=0.9,
        scorer_name="last_value",
        worker_pool_size=2,
        scoring_timeout_seconds=2.0,
        alert_endpoint="http://alerts.test/alerts",
        max_retries=2,
        backoff_base_seconds=0.0,
        backoff_max_seconds=0.0,
        dispatch_workers=1,
        dispatch_queue_size=10,
    )


@pytest.fixture
def fake_clock():
    """Controllable clock for batch timeout tests."""
    return FakeClock()


@pytest.fixture
def zero_tick():
    """A single three-feature tick of zeros."""
    return make_tick([0.0, 0.0, 0.0])


@pytest.fixture
def tick_factory():
    """Factory for ticks: tick_factory(values, seconds=0)."""
    return make_tick


@pytest.fixture
def window_factory():
    """Factory for windows: window_factory(sequence_id, num_features=3, window_size=2)."""
    return make_window


@pytest.fixture
def batch_factory():
    """Factory for batches: batch_factory(batch_id=1, windows=2, num_features=3)."""
    return make_batch
