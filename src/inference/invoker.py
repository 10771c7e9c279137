"""
Offloaded scorer invocation on a bounded worker pool.
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import structlog

from .errors import ScoringError, ScoringTimeout
from .models import Batch, ScoreMatrix
from .resources import ResourceMonitor
from .scorers import Scorer, describe

logger = structlog.get_logger(__name__)


class InferenceInvoker:
    """Runs scorer calls in worker threads so windowing never waits on them

    At most ``max_pending`` invocations may be in flight (running or queued
    in the pool). Further calls are rejected rather than queued, since a
    batch that waits behind a backlog is stale by the time it is scored.
    """

    def __init__(
        self,
        scorer: Scorer,
        monitor: ResourceMonitor,
        pool_size: int = 4,
        max_pending: int = 8,
        timeout_seconds: float = 30.0,
    ):
        if pool_size < 1:
            raise ValueError(f"Pool size must be >= 1, got {pool_size}")
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")

        self.scorer = scorer
        self.monitor = monitor
        self.pool_size = pool_size
        self.max_pending = max_pending
        self.timeout_seconds = timeout_seconds

        self._executor = ThreadPoolExecutor(
            max_workers=pool_size, thread_name_prefix="inference"
        )
        self._lock = threading.Lock()
        self._in_flight = 0

        logger.info(
            "Inference invoker initialized",
            scorer=describe(scorer),
            pool_size=pool_size,
            max_pending=max_pending,
            timeout_seconds=timeout_seconds,
        )

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def _release(self, _future) -> None:
        with self._lock:
            self._in_flight -= 1

    def _fail(self, batch: Batch, error: ScoringError) -> ScoringError:
        logger.error(
            "Scoring failed, dropping batch",
            batch_id=batch.batch_id,
            window_count=len(batch),
            error=str(error),
            cause=repr(error.cause) if error.cause else None,
            resources=self.monitor.sample().to_dict(),
        )
        return error

    async def invoke(self, batch: Batch) -> ScoreMatrix:
        """Score a batch in the worker pool

        Raises:
            ScoringError: If the pool is saturated, the scorer fails, or its
                output does not match the batch
            ScoringTimeout: If the scorer exceeds the deadline
        """
        with self._lock:
            if self._in_flight >= self.max_pending:
                saturated = True
            else:
                saturated = False
                self._in_flight += 1

        if saturated:
            raise self._fail(
                batch, ScoringError(f"Worker pool saturated ({self.max_pending} in flight)")
            )

        start = time.perf_counter()
        try:
            future = self._executor.submit(self.scorer.score, batch)
        except RuntimeError as e:
            self._release(None)
            raise self._fail(batch, ScoringError("Worker pool is shut down", cause=e)) from e
        future.add_done_callback(self._release)

        try:
            scores = await asyncio.wait_for(asyncio.wrap_future(future), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise self._fail(
                batch,
                ScoringTimeout(f"Scoring exceeded {self.timeout_seconds}s deadline", cause=e),
            ) from e
        except Exception as e:
            raise self._fail(batch, ScoringError(f"Scorer raised: {e}", cause=e)) from e

        if not isinstance(scores, ScoreMatrix) or len(scores) != len(batch):
            rows = len(scores) if isinstance(scores, ScoreMatrix) else None
            raise self._fail(
                batch,
                ScoringError(f"Scorer returned {rows} rows for {len(batch)} windows"),
            )

        num_features = batch.windows[0].ticks[0].num_features
        if scores.num_features != num_features:
            raise self._fail(
                batch,
                ScoringError(
                    f"Scorer returned {scores.num_features} columns for {num_features} features"
                ),
            )

        logger.debug(
            "Batch scored",
            batch_id=batch.batch_id,
            window_count=len(batch),
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
            resources=self.monitor.sample().to_dict(),
        )
        return scores

    def shutdown(self) -> None:
        """Stop the worker pool; running calls finish in the background"""
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Inference invoker stopped")
