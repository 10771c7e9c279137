"""
Pass-through scorer for producers that already emit per-feature scores.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import structlog

from ..models import Batch, ScoreMatrix
from .base import validate_batch

logger = structlog.get_logger(__name__)


@dataclass
class LastValueConfig:
    """Configuration for the last-value scorer"""

    num_features: int = 25000


class LastValueScorer:
    """Scores each feature with its most recent value, clipped to [0, 1]"""

    def __init__(self, config: dict):
        self.config = LastValueConfig(**config)
        self._name = "last_value"
        logger.info("Last-value scorer initialized", num_features=self.config.num_features)

    @property
    def name(self) -> str:
        return self._name

    def get_config(self) -> dict[str, Any]:
        return {"num_features": self.config.num_features}

    def score(self, batch: Batch) -> ScoreMatrix:
        stacked = validate_batch(batch, self.config.num_features)
        newest = stacked[:, -1, :]
        return ScoreMatrix(per_window=np.clip(newest, 0.0, 1.0))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.get_config()})"
