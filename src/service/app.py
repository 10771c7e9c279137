"""
FastAPI application exposing ingestion and health probes.

Endpoints:
    POST /data-enqueue   validate a tick payload and enqueue it (202)
    GET  /health/live    process liveness, no dependency checks
    GET  /health/ready   200 while the scorer is ready or degraded, else 503
    GET  /stats          pipeline counters
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from src.inference.errors import (
    Backpressure,
    LoadError,
    PayloadTooLarge,
    QueueClosed,
    ValidationError,
)
from src.inference.models import PipelineConfig
from src.inference.pipeline import InferencePipeline
from src.inference.readiness import SERVING_STATES

from .schemas import EnqueueResponse, LivenessResponse, ReadinessResponse, StatsResponse

logger = structlog.get_logger(__name__)

RETRY_AFTER_SECONDS = "1"


def create_app(
    config: Optional[PipelineConfig] = None,
    pipeline: Optional[InferencePipeline] = None,
) -> FastAPI:
    """Create the FastAPI application around a pipeline

    The pipeline is started and stopped by the application lifespan.
    """
    if pipeline is None:
        pipeline = InferencePipeline(config or PipelineConfig())
    config = pipeline.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Service starting", fail_fast_on_load_error=config.fail_fast_on_load_error)
        await pipeline.start()
        if config.fail_fast_on_load_error:
            try:
                await pipeline.wait_loaded()
            except LoadError:
                await pipeline.stop()
                raise
        try:
            yield
        finally:
            await pipeline.stop()

    app = FastAPI(title="Tick Inference Service", version="1.0.0", lifespan=lifespan)
    app.state.pipeline = pipeline

    @app.post("/data-enqueue", status_code=202, response_model=EnqueueResponse)
    async def data_enqueue(request: Request) -> EnqueueResponse:
        body = await request.body()
        try:
            pipeline.submit(body, request.headers.get("content-encoding"))
        except PayloadTooLarge as e:
            raise HTTPException(status_code=413, detail=str(e)) from e
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Backpressure as e:
            raise HTTPException(
                status_code=503,
                detail=str(e),
                headers={"Retry-After": RETRY_AFTER_SECONDS},
            ) from e
        except QueueClosed as e:
            raise HTTPException(status_code=503, detail="Service is shutting down") from e

        return EnqueueResponse(status="accepted", queue_depth=len(pipeline.queue))

    @app.get("/health/live", response_model=LivenessResponse)
    async def health_live() -> LivenessResponse:
        return LivenessResponse(status="alive")

    @app.get("/health/ready", response_model=ReadinessResponse)
    async def health_ready():
        status, reason = pipeline.readiness.snapshot()
        body = ReadinessResponse(status=status.value, reason=reason)
        if status in SERVING_STATES:
            return body
        return JSONResponse(status_code=503, content=body.model_dump())

    @app.get("/stats", response_model=StatsResponse)
    async def stats() -> StatsResponse:
        return StatsResponse(**pipeline.snapshot())

    return app
