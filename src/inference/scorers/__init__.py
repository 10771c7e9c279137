"""
Scorer registry, factory and startup loader.
"""

import structlog

from ..errors import LoadError
from ..models import PipelineConfig, ReadinessStatus
from ..resources import ResourceMonitor
from .base import Scorer, describe, validate_batch
from .last_value import LastValueScorer
from .linear_boundary import LinearBoundaryScorer

logger = structlog.get_logger(__name__)

# Registry of available scorers
SCORER_REGISTRY = {
    "last_value": LastValueScorer,
    "linear_boundary": LinearBoundaryScorer,
}


def get_scorer(scorer_name: str, config: dict) -> Scorer:
    """Factory to create a scorer

    Args:
        scorer_name: Name of the scorer (e.g., 'linear_boundary')
        config: Configuration dict for the scorer

    Returns:
        Instance of the scorer

    Raises:
        ValueError: If scorer_name is not registered
    """
    if scorer_name not in SCORER_REGISTRY:
        available = ", ".join(SCORER_REGISTRY.keys())
        raise ValueError(f"Unknown scorer '{scorer_name}'. Available scorers: {available}")

    scorer_class = SCORER_REGISTRY[scorer_name]
    return scorer_class(config)


def list_scorers() -> list[str]:
    """List all available scorers"""
    return list(SCORER_REGISTRY.keys())


def load_scorer(
    config: PipelineConfig, monitor: ResourceMonitor
) -> tuple[Scorer, ReadinessStatus]:
    """Acquire the configured scorer and decide which ready state it earns

    Returns:
        The scorer and READY, or DEGRADED when an accelerator is preferred
        but not visible

    Raises:
        LoadError: If the scorer cannot be constructed
    """
    scorer_config = {"num_features": config.num_features, **config.scorer_config}
    try:
        scorer = get_scorer(config.scorer_name, scorer_config)
    except Exception as e:
        raise LoadError(f"Failed to load scorer '{config.scorer_name}': {e}") from e

    if config.prefer_accelerator and not monitor.accelerator_available():
        logger.warning("Preferred accelerator unavailable, scoring on CPU", scorer=describe(scorer))
        return scorer, ReadinessStatus.DEGRADED

    return scorer, ReadinessStatus.READY


__all__ = [
    "LastValueScorer",
    "LinearBoundaryScorer",
    "SCORER_REGISTRY",
    "Scorer",
    "describe",
    "get_scorer",
    "list_scorers",
    "load_scorer",
    "validate_batch",
]
