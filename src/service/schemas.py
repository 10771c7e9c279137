"""
Response bodies for the HTTP boundary.
"""

from typing import Optional

from pydantic import BaseModel


class EnqueueResponse(BaseModel):
    status: str  # "accepted"
    queue_depth: int


class LivenessResponse(BaseModel):
    status: str  # "alive"


class ReadinessResponse(BaseModel):
    status: str  # loading | ready | degraded | failed
    reason: Optional[str] = None


class StatsResponse(BaseModel):
    ticks_enqueued: int
    ticks_rejected_invalid: int
    ticks_rejected_backpressure: int
    ticks_consumed: int
    windows_emitted: int
    batches_flushed: int
    batches_scored: int
    batches_dropped: int
    scoring_errors: int
    alerts_produced: int
    alerts_delivered: int
    alerts_dropped: int
    queue_depth: int
    queue_capacity: int
    open_batch_windows: int
    in_flight_inferences: int
    readiness: str
    readiness_reason: Optional[str] = None
