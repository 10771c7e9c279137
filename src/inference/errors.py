"""
Error taxonomy for the streaming inference pipeline.

Boundary errors (ValidationError, Backpressure) are raised synchronously to the
caller. Pipeline errors (ScoringError, DispatchError) are handled where they
occur and logged; they never stop the consumer task.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors"""


class ValidationError(PipelineError):
    """Ingestion payload is malformed or has the wrong number of features"""


class PayloadTooLarge(ValidationError):
    """Ingestion payload exceeds the configured size limit, as received or once decompressed"""

    def __init__(self, size: int, limit: int, label: str = "Payload"):
        super().__init__(f"{label} of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class Backpressure(PipelineError):
    """Ingestion queue is full; the producer should retry later"""

    def __init__(self, capacity: int):
        super().__init__(f"Queue is full (capacity={capacity})")
        self.capacity = capacity


class QueueClosed(PipelineError):
    """Queue has been closed and holds no more items"""


class ScoringError(PipelineError):
    """Scorer call failed, timed out, or was rejected by a saturated pool"""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ScoringTimeout(ScoringError):
    """Scorer call exceeded its deadline"""


class DispatchError(PipelineError):
    """Alert could not be delivered to the downstream endpoint"""

    def __init__(self, reason: str, attempts: int = 0, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.attempts = attempts
        self.status_code = status_code


class LoadError(PipelineError):
    """Scorer capability could not be acquired at startup"""


class InvalidTransition(PipelineError):
    """Readiness state machine was asked to make an illegal transition"""
