"""
CLI for the streaming inference service.

Usage:
    python -m src.service.serve [options]
"""

import argparse
import logging
import os
import sys

import structlog
import uvicorn

from src.core.logger import setup_logging
from src.inference.models import PipelineConfig
from src.inference.scorers import list_scorers

from .app import create_app

logger = structlog.get_logger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    return float(value) if value else None


def parse_arguments(argv: list[str] | None = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Streaming tick inference service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Basic usage
        python -m src.service.serve

        # Small feature space, fast batches, custom alert endpoint
        python -m src.service.serve \\
            --num-features 1000 \\
            --batch-size 8 \\
            --alert-endpoint http://alerts:8080/alerts

        # Score with a trained boundary model
        python -m src.service.serve --scorer linear_boundary --model-path model.npz
        """,
    )

    # Server settings
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"), help="Bind host")
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("PORT", "8000")), help="Bind port"
    )

    # Stream shape
    parser.add_argument(
        "--num-features",
        type=int,
        default=int(os.getenv("NUM_FEATURES", "25000")),
        help="Features per tick (default: 25000)",
    )
    parser.add_argument(
        "--queue-capacity",
        type=int,
        default=int(os.getenv("QUEUE_CAPACITY", "100")),
        help="Ingestion queue capacity (default: 100)",
    )
    parser.add_argument(
        "--window-size",
        type=int,
        default=int(os.getenv("WINDOW_SIZE", "5")),
        help="Ticks per window (default: 5)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=int(os.getenv("BATCH_SIZE", "64")),
        help="Windows per batch (default: 64)",
    )
    parser.add_argument(
        "--tick-interval",
        type=float,
        default=float(os.getenv("TICK_INTERVAL_SECONDS", "1.0")),
        help="Expected seconds between ticks (default: 1.0)",
    )
    parser.add_argument(
        "--batch-timeout",
        type=float,
        default=_env_float("BATCH_TIMEOUT_SECONDS"),
        help="Max seconds a batch waits before flushing (default: tick interval x batch size)",
    )

    # Scoring
    parser.add_argument(
        "--scorer",
        default=os.getenv("SCORER", "linear_boundary"),
        choices=list_scorers(),
        help="Scorer (default: linear_boundary)",
    )
    parser.add_argument(
        "--model-path",
        default=os.getenv("MODEL_PATH"),
        help="Model parameters file for the scorer",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=float(os.getenv("ANOMALY_THRESHOLD", "0.9")),
        help="Inclusive anomaly score threshold (default: 0.9)",
    )
    parser.add_argument(
        "--prefer-accelerator",
        action="store_true",
        default=_env_bool("PREFER_ACCELERATOR"),
        help="Report degraded readiness when no accelerator is visible",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=int(os.getenv("WORKER_POOL_SIZE", "0")) or None,
        help="Scoring worker pool size (default: CPU count)",
    )
    parser.add_argument(
        "--scoring-timeout",
        type=float,
        default=float(os.getenv("SCORING_TIMEOUT_SECONDS", "30.0")),
        help="Scoring deadline in seconds (default: 30)",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=_env_bool("FAIL_FAST_ON_LOAD_ERROR"),
        help="Exit if the scorer fails to load",
    )

    # Alert dispatch
    parser.add_argument(
        "--alert-endpoint",
        default=os.getenv("ALERT_ENDPOINT", "http://localhost:8080/alerts"),
        help="Downstream alert endpoint URL",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=int(os.getenv("MAX_RETRIES", "5")),
        help="Additional delivery attempts per alert (default: 5)",
    )
    parser.add_argument(
        "--backoff-base",
        type=float,
        default=float(os.getenv("BACKOFF_BASE_SECONDS", "0.5")),
        help="First retry delay in seconds (default: 0.5)",
    )
    parser.add_argument(
        "--backoff-max",
        type=float,
        default=float(os.getenv("BACKOFF_MAX_SECONDS", "30.0")),
        help="Retry delay cap in seconds (default: 30)",
    )
    parser.add_argument(
        "--backoff-jitter",
        action="store_true",
        default=_env_bool("BACKOFF_JITTER"),
        help="Randomize retry delays",
    )
    parser.add_argument(
        "--dispatch-timeout",
        type=float,
        default=float(os.getenv("DISPATCH_TIMEOUT_SECONDS", "5.0")),
        help="Per-attempt delivery timeout in seconds (default: 5)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    """Build configuration from arguments"""
    scorer_config = {}
    if args.model_path:
        scorer_config["model_path"] = args.model_path

    return PipelineConfig(
        num_features=args.num_features,
        queue_capacity=args.queue_capacity,
        window_size=args.window_size,
        batch_size=args.batch_size,
        tick_interval_seconds=args.tick_interval,
        batch_timeout_seconds=args.batch_timeout,
        anomaly_threshold=args.threshold,
        scorer_name=args.scorer,
        scorer_config=scorer_config,
        prefer_accelerator=args.prefer_accelerator,
        worker_pool_size=args.workers,
        scoring_timeout_seconds=args.scoring_timeout,
        fail_fast_on_load_error=args.fail_fast,
        alert_endpoint=args.alert_endpoint,
        max_retries=args.max_retries,
        backoff_base_seconds=args.backoff_base,
        backoff_max_seconds=args.backoff_max,
        backoff_jitter=args.backoff_jitter,
        dispatch_timeout_seconds=args.dispatch_timeout,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level)

    logger.info("Starting inference service", host=args.host, port=args.port)

    try:
        config = build_config(args)
        app = create_app(config)
        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())

        logger.info("Service stopped")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Service failed", error=str(e), exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
