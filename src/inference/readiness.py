"""
Readiness state machine gating ingestion and scoring.

    LOADING -> READY | DEGRADED | FAILED

Transitions out of LOADING are one-way. Only reset() (a process restart)
returns to LOADING. READY and DEGRADED both serve traffic; DEGRADED means the
preferred accelerator is missing and scoring runs on CPU.
"""

import threading
from typing import Optional

import structlog

from .errors import InvalidTransition
from .models import ReadinessStatus

logger = structlog.get_logger(__name__)

SERVING_STATES = frozenset({ReadinessStatus.READY, ReadinessStatus.DEGRADED})

ALLOWED_TRANSITIONS = {
    ReadinessStatus.LOADING: frozenset(
        {ReadinessStatus.READY, ReadinessStatus.DEGRADED, ReadinessStatus.FAILED}
    ),
    ReadinessStatus.READY: frozenset(),
    ReadinessStatus.DEGRADED: frozenset(),
    ReadinessStatus.FAILED: frozenset(),
}


class ReadinessState:
    """Thread-safe holder of the process readiness status"""

    def __init__(self):
        self._lock = threading.Lock()
        self._status = ReadinessStatus.LOADING
        self._reason: Optional[str] = None

    @property
    def status(self) -> ReadinessStatus:
        with self._lock:
            return self._status

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    def snapshot(self) -> tuple[ReadinessStatus, Optional[str]]:
        """Status and reason read together"""
        with self._lock:
            return self._status, self._reason

    def is_ready(self) -> bool:
        return self.status in SERVING_STATES

    def can_score(self) -> bool:
        return self.status in SERVING_STATES

    def transition(self, target: ReadinessStatus, reason: Optional[str] = None) -> None:
        """Move to target, or raise InvalidTransition and keep the current state"""
        with self._lock:
            current = self._status
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Cannot transition readiness from {current.value} to {target.value}"
                )
            self._status = target
            self._reason = reason

        log = logger.error if target is ReadinessStatus.FAILED else logger.info
        log("Readiness changed", previous=current.value, status=target.value, reason=reason)

    def mark_ready(self) -> None:
        self.transition(ReadinessStatus.READY)

    def mark_degraded(self, reason: str) -> None:
        self.transition(ReadinessStatus.DEGRADED, reason)

    def mark_failed(self, reason: str) -> None:
        self.transition(ReadinessStatus.FAILED, reason)

    def reset(self) -> None:
        """Return to LOADING, as on a process restart"""
        with self._lock:
            previous = self._status
            self._status = ReadinessStatus.LOADING
            self._reason = None
        logger.info("Readiness reset", previous=previous.value)
