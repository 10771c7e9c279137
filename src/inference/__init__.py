"""
Streaming Inference Pipeline

Scores a high-cardinality tick stream with an anomaly model and alerts on
features whose score crosses a threshold.

Architecture:
- Ingestion: Validated ticks enter a bounded FIFO; a full queue is rejected, not awaited
- Windowing: A single consumer builds stride-1 windows of the last N ticks
- Batching: Windows are grouped and flushed on batch size or max wait
- Scoring: Batches are scored in a bounded worker pool by a pluggable scorer
- Alerting: Anomalous windows become alerts delivered with exponential backoff
- Readiness: A state machine reports whether scoring is available

Usage:
    # Run the HTTP service
    python -m src.service.serve
"""

from .dispatcher import AlertDispatcher, BackoffPolicy, DispatchOutcome, DispatchResult
from .errors import (
    Backpressure,
    DispatchError,
    InvalidTransition,
    LoadError,
    PayloadTooLarge,
    PipelineError,
    QueueClosed,
    ScoringError,
    ScoringTimeout,
    ValidationError,
)
from .models import (
    AlertMessage,
    Batch,
    FlushReason,
    PipelineConfig,
    ReadinessStatus,
    ResourceSnapshot,
    ScoreMatrix,
    Tick,
    Window,
)
from .pipeline import InferencePipeline
from .readiness import ReadinessState

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "Backpressure",
    "BackoffPolicy",
    "Batch",
    "DispatchError",
    "DispatchOutcome",
    "DispatchResult",
    "FlushReason",
    "InferencePipeline",
    "InvalidTransition",
    "LoadError",
    "PayloadTooLarge",
    "PipelineConfig",
    "PipelineError",
    "QueueClosed",
    "ReadinessState",
    "ReadinessStatus",
    "ResourceSnapshot",
    "ScoreMatrix",
    "ScoringError",
    "ScoringTimeout",
    "Tick",
    "ValidationError",
    "Window",
]
