"""
Best-effort alert delivery with exponential backoff.

Alerts are delivered at most once. Network failures, per-attempt timeouts,
5xx and 429 responses are retried up to ``max_retries`` more times; any other
non-2xx response drops the alert immediately. Failures are logged and never
reach the scoring path.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx
import structlog

from .errors import DispatchError
from .models import AlertMessage

logger = structlog.get_logger(__name__)

RETRYABLE_CLIENT_STATUSES = frozenset({429})


@dataclass
class BackoffPolicy:
    """Capped exponential backoff schedule"""

    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_retries: int = 5
    jitter: bool = False
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self):
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays must be >= 0")
        if self.multiplier < 1:
            raise ValueError(f"Backoff multiplier must be >= 1, got {self.multiplier}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)"""
        if retry < 1:
            raise ValueError(f"Retry number must be >= 1, got {retry}")
        delay = min(self.base_delay * self.multiplier ** (retry - 1), self.max_delay)
        if self.jitter:
            delay *= self.rng.uniform(0.5, 1.0)
        return delay

    def delays(self) -> list[float]:
        """Full delay schedule for an exhausted retry budget"""
        return [self.delay(k) for k in range(1, self.max_retries + 1)]


class DispatchOutcome(Enum):
    DELIVERED = "delivered"
    DROPPED = "dropped"


@dataclass
class DispatchResult:
    """What happened to one alert"""

    outcome: DispatchOutcome
    attempts: int
    delays: list[float] = field(default_factory=list)
    reason: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def delivered(self) -> bool:
        return self.outcome is DispatchOutcome.DELIVERED


class AlertDispatcher:
    """Delivers alert messages to the downstream endpoint

    dispatch() delivers one message inline. submit() hands a message to
    background workers started by start(), so slow retries never hold up
    the caller.
    """

    def __init__(
        self,
        endpoint: str,
        policy: Optional[BackoffPolicy] = None,
        timeout_seconds: float = 5.0,
        workers: int = 4,
        queue_size: int = 1000,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.endpoint = endpoint
        self.policy = policy or BackoffPolicy()
        self.timeout_seconds = timeout_seconds
        self.workers = workers
        self.queue_size = queue_size
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

        self._outbox: Optional[asyncio.Queue[AlertMessage]] = None
        self._tasks: list[asyncio.Task] = []

        self.stats = {
            "submitted": 0,
            "delivered": 0,
            "dropped": 0,
            "outbox_full": 0,
        }

    @classmethod
    def from_config(cls, config, **kwargs) -> "AlertDispatcher":
        """Build a dispatcher from a PipelineConfig"""
        policy = BackoffPolicy(
            base_delay=config.backoff_base_seconds,
            max_delay=config.backoff_max_seconds,
            max_retries=config.max_retries,
            jitter=config.backoff_jitter,
        )
        return cls(
            endpoint=config.alert_endpoint,
            policy=policy,
            timeout_seconds=config.dispatch_timeout_seconds,
            workers=config.dispatch_workers,
            queue_size=config.dispatch_queue_size,
            **kwargs,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def _attempt(
        self, message: AlertMessage, attempt: int
    ) -> tuple[bool, Optional[DispatchError]]:
        """Send once; error is None on success, retryable says whether to try again"""
        try:
            response = await self._get_client().post(
                self.endpoint, json=message.to_payload(), timeout=self.timeout_seconds
            )
        except httpx.TimeoutException as e:
            return True, DispatchError(f"Attempt timed out: {e!r}", attempts=attempt)
        except httpx.HTTPError as e:
            return True, DispatchError(f"Network error: {e!r}", attempts=attempt)

        status = response.status_code
        if 200 <= status < 300:
            return False, None
        if status >= 500 or status in RETRYABLE_CLIENT_STATUSES:
            return True, DispatchError(f"Retryable status {status}", attempt, status)
        return False, DispatchError(f"Non-retryable status {status}", attempt, status)

    async def dispatch(self, message: AlertMessage) -> DispatchResult:
        """Deliver one message, retrying per the backoff policy

        Returns:
            DispatchResult reporting delivered or dropped; never raises for
            delivery failures
        """
        delays: list[float] = []
        error: Optional[DispatchError] = None
        max_attempts = self.policy.max_retries + 1

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.policy.delay(attempt - 1)
                delays.append(delay)
                await self._sleep(delay)

            retryable, error = await self._attempt(message, attempt)

            if error is None:
                self.stats["delivered"] += 1
                logger.debug(
                    "Alert delivered",
                    window_sequence_id=message.window_sequence_id,
                    batch_id=message.batch_id,
                    attempts=attempt,
                )
                return DispatchResult(DispatchOutcome.DELIVERED, attempt, delays)

            if not retryable:
                break

            logger.warning(
                "Alert delivery attempt failed",
                window_sequence_id=message.window_sequence_id,
                batch_id=message.batch_id,
                attempt=attempt,
                max_attempts=max_attempts,
                error=error.reason,
            )

        self.stats["dropped"] += 1
        reason = (
            error.reason if not retryable else f"Retries exhausted after {attempt} attempts"
        )
        logger.error(
            "Alert dropped",
            window_sequence_id=message.window_sequence_id,
            batch_id=message.batch_id,
            attempts=attempt,
            status_code=error.status_code,
            reason=reason,
            last_error=error.reason,
        )
        return DispatchResult(
            DispatchOutcome.DROPPED,
            attempt,
            delays,
            reason=reason,
            status_code=error.status_code,
        )

    def start(self) -> None:
        """Start background delivery workers on the running loop"""
        if self._tasks:
            return
        self._outbox = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"alert-dispatch-{i}")
            for i in range(self.workers)
        ]
        logger.info(
            "Alert dispatcher started",
            endpoint=self.endpoint,
            workers=self.workers,
            max_retries=self.policy.max_retries,
        )

    def submit(self, message: AlertMessage) -> bool:
        """Queue a message for background delivery; False if it was dropped"""
        if self._outbox is None:
            raise RuntimeError("Dispatcher is not started")
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            self.stats["outbox_full"] += 1
            self.stats["dropped"] += 1
            logger.warning(
                "Alert outbox full, dropping alert",
                window_sequence_id=message.window_sequence_id,
                batch_id=message.batch_id,
                queue_size=self.queue_size,
            )
            return False
        self.stats["submitted"] += 1
        return True

    async def _worker(self, worker_id: int) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self.dispatch(message)
            except Exception as e:
                logger.error(
                    "Alert worker error",
                    worker_id=worker_id,
                    window_sequence_id=message.window_sequence_id,
                    error=str(e),
                    exc_info=True,
                )
            finally:
                self._outbox.task_done()

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """Drain queued alerts for up to grace_seconds, then stop workers"""
        if self._outbox is not None and self._tasks:
            try:
                await asyncio.wait_for(self._outbox.join(), grace_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Alert outbox not drained before shutdown",
                    pending=self._outbox.qsize(),
                )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

        logger.info(
            "Alert dispatcher stopped",
            delivered=self.stats["delivered"],
            dropped=self.stats["dropped"],
        )
