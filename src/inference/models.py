"""
Data models and configuration for the streaming inference pipeline.
"""

import math
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import numpy as np


class FlushReason(Enum):
    """Why a batch left the scheduler"""

    SIZE_REACHED = "size_reached"
    TIMEOUT = "timeout"


class ReadinessStatus(Enum):
    """Process-wide readiness of the scoring path"""

    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True, eq=False)
class Tick:
    """One timestamped observation of all features"""

    timestamp: datetime
    features: np.ndarray

    def __post_init__(self):
        features = np.array(self.features, dtype=np.float64)
        if features.ndim != 1:
            raise ValueError(f"Tick features must be one-dimensional, got shape {features.shape}")
        features.flags.writeable = False
        object.__setattr__(self, "features", features)

    @property
    def num_features(self) -> int:
        return int(self.features.shape[0])


@dataclass(frozen=True, eq=False)
class Window:
    """N consecutive ticks treated as one inference unit"""

    ticks: tuple[Tick, ...]
    sequence_id: int

    @property
    def timestamp(self) -> datetime:
        """Timestamp of the most recent tick in the window"""
        return self.ticks[-1].timestamp

    def as_array(self) -> np.ndarray:
        """Stack the window into an (N, F) array"""
        return np.stack([tick.features for tick in self.ticks])


@dataclass
class Batch:
    """Group of windows submitted together to the scorer"""

    batch_id: int
    windows: list[Window] = field(default_factory=list)
    opened_at: Optional[float] = None
    flush_reason: Optional[FlushReason] = None

    def __len__(self) -> int:
        return len(self.windows)

    def as_array(self) -> np.ndarray:
        """Stack the batch into a (B, N, F) array"""
        return np.stack([window.as_array() for window in self.windows])


@dataclass(frozen=True, eq=False)
class ScoreMatrix:
    """Per-feature scores, one row per window of the batch they came from"""

    per_window: np.ndarray

    def __post_init__(self):
        scores = np.asarray(self.per_window, dtype=np.float64)
        if scores.ndim != 2:
            raise ValueError(f"Score matrix must be two-dimensional, got shape {scores.shape}")
        object.__setattr__(self, "per_window", scores)

    def __len__(self) -> int:
        return int(self.per_window.shape[0])

    @property
    def num_features(self) -> int:
        return int(self.per_window.shape[1])


@dataclass(frozen=True)
class AlertMessage:
    """Anomalous features found in a single window"""

    window_sequence_id: int
    timestamp: datetime
    anomalous_features: tuple[tuple[int, float], ...]
    batch_id: int

    def to_payload(self) -> dict[str, Any]:
        """Convert to the JSON body sent to the alert endpoint"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "window_sequence_id": self.window_sequence_id,
            "batch_id": self.batch_id,
            "anomalous_features": [
                {"index": index, "score": score} for index, score in self.anomalous_features
            ],
        }


@dataclass(frozen=True)
class ResourceSnapshot:
    """Host utilization sampled at inference time"""

    cpu_pct: Optional[float]
    mem_pct: Optional[float]
    accelerator_pct: Optional[float] = None
    accelerator_mem_pct: Optional[float] = None

    def to_dict(self) -> dict[str, Optional[float]]:
        return {
            "cpu_pct": self.cpu_pct,
            "mem_pct": self.mem_pct,
            "accelerator_pct": self.accelerator_pct,
            "accelerator_mem_pct": self.accelerator_mem_pct,
        }


@dataclass
class PipelineConfig:
    """Configuration for the streaming inference pipeline"""

    # Tick shape
    num_features: int = 25000

    # Ingestion
    queue_capacity: int = 100
    max_payload_bytes: int = 500 * 1024  # as received, before decompression
    max_decoded_bytes: Optional[int] = None  # after decompression, derived when unset

    # Windowing and batching
    window_size: int = 5
    batch_size: int = 64
    tick_interval_seconds: float = 1.0  # expected producer cadence
    batch_timeout_seconds: Optional[float] = None  # derived from cadence when unset

    # Scoring
    anomaly_threshold: float = 0.9
    scorer_name: str = "linear_boundary"
    scorer_config: dict = field(default_factory=dict)
    prefer_accelerator: bool = False
    worker_pool_size: Optional[int] = None  # defaults to core count
    max_pending_inferences: Optional[int] = None  # defaults to 2x pool size
    scoring_timeout_seconds: float = 30.0
    fail_fast_on_load_error: bool = False

    # Alert dispatch
    alert_endpoint: str = "http://localhost:8080/alerts"
    max_retries: int = 5
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 30.0
    backoff_jitter: bool = False
    dispatch_timeout_seconds: float = 5.0
    dispatch_workers: int = 4
    dispatch_queue_size: int = 1000

    # Observability
    stats_log_interval_seconds: float = 30.0

    def __post_init__(self):
        if self.worker_pool_size is None:
            self.worker_pool_size = os.cpu_count() or 1
        if self.max_pending_inferences is None:
            self.max_pending_inferences = 2 * self.worker_pool_size
        if self.batch_timeout_seconds is None:
            # Long enough for a full batch at the expected cadence
            self.batch_timeout_seconds = self.tick_interval_seconds * self.batch_size
        if self.max_decoded_bytes is None:
            # Generous per-feature JSON budget, never below the wire limit
            self.max_decoded_bytes = max(self.num_features * 64, self.max_payload_bytes)

        for name in (
            "num_features",
            "queue_capacity",
            "window_size",
            "batch_size",
            "worker_pool_size",
            "max_pending_inferences",
            "dispatch_workers",
            "dispatch_queue_size",
            "max_payload_bytes",
            "max_decoded_bytes",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")

        for name in (
            "tick_interval_seconds",
            "batch_timeout_seconds",
            "scoring_timeout_seconds",
            "dispatch_timeout_seconds",
            "stats_log_interval_seconds",
        ):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

        if not math.isfinite(self.anomaly_threshold):
            raise ValueError(f"anomaly_threshold must be finite, got {self.anomaly_threshold}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
