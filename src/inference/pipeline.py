"""
Streaming inference pipeline.

One consumer task owns dequeue -> window -> batch so tick order is preserved.
Each flushed batch is scored in its own task through the worker pool, and
alerts go to the dispatcher's background workers. Errors in a batch are logged
and counted; they never stop the consumer.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

import structlog

from .batching import BatchScheduler
from .dispatcher import AlertDispatcher
from .errors import LoadError, QueueClosed, ScoringError
from .evaluator import evaluate
from .ingestion import IngestionGateway
from .invoker import InferenceInvoker
from .models import Batch, FlushReason, PipelineConfig, ReadinessStatus, Tick
from .queue import BoundedQueue
from .readiness import ReadinessState
from .resources import ResourceMonitor
from .scorers import Scorer, describe, load_scorer
from .window import WindowAssembler

logger = structlog.get_logger(__name__)

ScorerFactory = Callable[[PipelineConfig, ResourceMonitor], tuple[Scorer, ReadinessStatus]]


class InferencePipeline:
    """Wires queue, windowing, batching, scoring and alerting together"""

    def __init__(
        self,
        config: PipelineConfig,
        scorer_factory: ScorerFactory = load_scorer,
        dispatcher: Optional[AlertDispatcher] = None,
        monitor: Optional[ResourceMonitor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.readiness = ReadinessState()
        self.monitor = monitor or ResourceMonitor()
        self._scorer_factory = scorer_factory
        self._clock = clock

        self.queue = BoundedQueue(config.queue_capacity)
        self.gateway = IngestionGateway(
            self.queue,
            config.num_features,
            config.max_payload_bytes,
            config.max_decoded_bytes,
        )
        self.assembler = WindowAssembler(config.window_size)
        self.scheduler = BatchScheduler(
            batch_size=config.batch_size,
            timeout_seconds=config.batch_timeout_seconds,
            clock=clock,
        )
        self.dispatcher = dispatcher or AlertDispatcher.from_config(config)
        self.invoker: Optional[InferenceInvoker] = None

        self._consumer_task: Optional[asyncio.Task] = None
        self._load_task: Optional[asyncio.Task] = None
        self._batch_tasks: set[asyncio.Task] = set()
        self._started_at: Optional[float] = None

        self.stats = {
            "ticks_consumed": 0,
            "windows_emitted": 0,
            "batches_flushed": 0,
            "batches_scored": 0,
            "batches_dropped": 0,
            "scoring_errors": 0,
            "alerts_produced": 0,
        }

        logger.info(
            "Pipeline initialized",
            num_features=config.num_features,
            queue_capacity=config.queue_capacity,
            window_size=config.window_size,
            batch_size=config.batch_size,
            batch_timeout_seconds=config.batch_timeout_seconds,
            anomaly_threshold=config.anomaly_threshold,
            scorer=config.scorer_name,
        )

    # Lifecycle

    async def start(self) -> None:
        """Start alert workers, scorer loading and the consumer task"""
        if self._consumer_task is not None:
            return
        self._started_at = self._clock()
        self.dispatcher.start()
        self._load_task = asyncio.create_task(self._load_scorer(), name="scorer-load")
        self._consumer_task = asyncio.create_task(self._consume(), name="tick-consumer")
        logger.info("Pipeline started")

    async def wait_loaded(self) -> ReadinessStatus:
        """Wait for scorer loading to finish and return the resulting status

        Raises:
            LoadError: If loading failed and fail_fast_on_load_error is set
        """
        if self._load_task is not None:
            await asyncio.shield(self._load_task)
        return self.readiness.status

    async def stop(self) -> None:
        """Drain queued ticks, flush the open batch and stop all workers"""
        self.queue.close()

        if self._consumer_task is not None:
            await self._consumer_task
            self._consumer_task = None

        if self._batch_tasks:
            await asyncio.gather(*self._batch_tasks, return_exceptions=True)

        if self._load_task is not None:
            if not self._load_task.done():
                self._load_task.cancel()
            await asyncio.gather(self._load_task, return_exceptions=True)

        await self.dispatcher.stop()
        if self.invoker is not None:
            self.invoker.shutdown()

        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        logger.info("Pipeline stopped", elapsed_sec=round(elapsed, 1), **self.stats)

    # Ingestion

    def submit(
        self,
        body: bytes,
        content_encoding: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Tick:
        """Validate and enqueue a producer payload (see IngestionGateway.submit)"""
        return self.gateway.submit(body, content_encoding, timestamp)

    # Scorer loading

    async def _load_scorer(self) -> None:
        logger.info("Loading scorer", scorer=self.config.scorer_name)
        try:
            scorer, status = await asyncio.to_thread(
                self._scorer_factory, self.config, self.monitor
            )
        except Exception as e:
            self.readiness.mark_failed(str(e))
            logger.error("Scorer load failed", error=str(e), exc_info=True)
            if not self.config.fail_fast_on_load_error:
                return
            if isinstance(e, LoadError):
                raise
            raise LoadError(str(e)) from e

        self.invoker = InferenceInvoker(
            scorer,
            self.monitor,
            pool_size=self.config.worker_pool_size,
            max_pending=self.config.max_pending_inferences,
            timeout_seconds=self.config.scoring_timeout_seconds,
        )

        if status is ReadinessStatus.DEGRADED:
            self.readiness.mark_degraded("Preferred accelerator unavailable")
        else:
            self.readiness.mark_ready()
        logger.info("Scorer loaded", scorer=describe(scorer), status=status.value)

    # Consumer

    async def _next_tick(self, stats_due_in: float) -> Optional[Tick]:
        """Dequeue the next tick, or None if the open batch or stats log fell due first"""
        wait = stats_due_in
        batch_due_in = self.scheduler.seconds_until_due()
        if batch_due_in is not None:
            wait = min(wait, batch_due_in)
        try:
            return await asyncio.wait_for(self.queue.dequeue(), wait)
        except asyncio.TimeoutError:
            return None

    async def _consume(self) -> None:
        logger.info("Starting tick consumer")
        interval = self.config.stats_log_interval_seconds
        last_log_time = self._clock()

        while True:
            batch = self.scheduler.flush_if_due()
            if batch is not None:
                self._hand_off(batch)

            if self._clock() - last_log_time >= interval:
                self._log_stats()
                last_log_time = self._clock()

            try:
                tick = await self._next_tick(interval - (self._clock() - last_log_time))
            except QueueClosed:
                break

            if tick is not None:
                try:
                    self._process_tick(tick)
                except Exception as e:
                    logger.error("Failed to process tick", error=str(e), exc_info=True)

        batch = self.scheduler.flush(FlushReason.TIMEOUT)
        if batch is not None:
            self._hand_off(batch)
        logger.info("Tick consumer stopped", ticks_consumed=self.stats["ticks_consumed"])

    def _process_tick(self, tick: Tick) -> None:
        self.stats["ticks_consumed"] += 1

        window = self.assembler.push(tick)
        if window is None:
            return
        self.stats["windows_emitted"] += 1

        batch = self.scheduler.add(window)
        if batch is not None:
            self._hand_off(batch)

    def _hand_off(self, batch: Batch) -> None:
        self.stats["batches_flushed"] += 1
        task = asyncio.create_task(self._process_batch(batch), name=f"batch-{batch.batch_id}")
        self._batch_tasks.add(task)
        task.add_done_callback(self._batch_tasks.discard)

    # Batch processing

    async def _process_batch(self, batch: Batch) -> None:
        if not self.readiness.can_score() or self.invoker is None:
            self.stats["batches_dropped"] += 1
            logger.warning(
                "Scorer not ready, dropping batch",
                batch_id=batch.batch_id,
                window_count=len(batch),
                readiness=self.readiness.status.value,
            )
            return

        try:
            scores = await self.invoker.invoke(batch)
        except ScoringError:
            # Already logged with full context by the invoker
            self.stats["scoring_errors"] += 1
            self.stats["batches_dropped"] += 1
            return

        try:
            alerts = evaluate(batch, scores, self.config.anomaly_threshold)
            self.stats["batches_scored"] += 1
            self.stats["alerts_produced"] += len(alerts)

            for alert in alerts:
                self.dispatcher.submit(alert)

            if alerts:
                logger.info(
                    "Anomalies detected",
                    batch_id=batch.batch_id,
                    window_count=len(batch),
                    alerts=len(alerts),
                    flush_reason=batch.flush_reason.value if batch.flush_reason else None,
                )
        except Exception as e:
            self.stats["batches_dropped"] += 1
            logger.error(
                "Batch processing failed",
                batch_id=batch.batch_id,
                window_count=len(batch),
                error=str(e),
                exc_info=True,
            )

    # Observability

    def snapshot(self) -> dict[str, Any]:
        """Counters from every stage plus queue depth and readiness"""
        status, reason = self.readiness.snapshot()
        return {
            **self.stats,
            "ticks_enqueued": self.gateway.stats["accepted"],
            "ticks_rejected_invalid": self.gateway.stats["rejected_invalid"],
            "ticks_rejected_backpressure": self.gateway.stats["rejected_backpressure"],
            "alerts_delivered": self.dispatcher.stats["delivered"],
            "alerts_dropped": self.dispatcher.stats["dropped"],
            "queue_depth": len(self.queue),
            "queue_capacity": self.queue.capacity,
            "open_batch_windows": self.scheduler.pending,
            "in_flight_inferences": self.invoker.in_flight if self.invoker else 0,
            "readiness": status.value,
            "readiness_reason": reason,
        }

    def _log_stats(self) -> None:
        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        rate = self.stats["ticks_consumed"] / elapsed if elapsed > 0 else 0
        logger.info(
            "Pipeline stats",
            rate_per_sec=round(rate, 2),
            elapsed_sec=round(elapsed, 1),
            **self.snapshot(),
        )
