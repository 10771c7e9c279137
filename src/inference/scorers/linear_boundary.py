"""
Per-feature linear one-class boundary scorer.

Each feature has a learned center and scale. A window is summarized by the mean
of each feature over its ticks, and the distance from the center is mapped to a
score in [0, 1):

    score = 1 - exp(-|mean - center| / scale)

Parameters are read from a ``.npz`` archive holding ``center`` and ``scale``
arrays of length ``num_features``. Without an archive the boundary is centered
at zero with unit scale.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import numpy as np
import structlog

from ..models import Batch, ScoreMatrix
from .base import validate_batch

logger = structlog.get_logger(__name__)


@dataclass
class LinearBoundaryConfig:
    """Configuration for the linear boundary scorer"""

    num_features: int = 25000
    model_path: Optional[str] = None  # .npz with 'center' and 'scale'
    min_scale: float = 1e-9  # floor applied to scale to avoid division by zero


class LinearBoundaryScorer:
    """Distance-from-center scorer with one boundary per feature"""

    def __init__(self, config: dict):
        self.config = LinearBoundaryConfig(**config)
        self._name = "linear_boundary"
        self.center, self.scale = self._load_parameters()

        logger.info(
            "Linear boundary scorer initialized",
            num_features=self.config.num_features,
            model_path=self.config.model_path,
        )

    @property
    def name(self) -> str:
        return self._name

    def get_config(self) -> dict[str, Any]:
        return {
            "num_features": self.config.num_features,
            "model_path": self.config.model_path,
            "min_scale": self.config.min_scale,
        }

    def _load_parameters(self) -> tuple[np.ndarray, np.ndarray]:
        n = self.config.num_features
        if self.config.model_path is None:
            return np.zeros(n), np.ones(n)

        path = Path(self.config.model_path)
        if not path.is_file():
            raise FileNotFoundError(f"Model file not found: {path}")

        with np.load(path) as archive:
            missing = {"center", "scale"} - set(archive.files)
            if missing:
                raise ValueError(f"Model file {path} missing arrays: {sorted(missing)}")
            center = np.asarray(archive["center"], dtype=np.float64)
            scale = np.asarray(archive["scale"], dtype=np.float64)

        for label, values in (("center", center), ("scale", scale)):
            if values.shape != (n,):
                raise ValueError(f"Model '{label}' has shape {values.shape}, expected ({n},)")

        return center, np.maximum(np.abs(scale), self.config.min_scale)

    def score(self, batch: Batch) -> ScoreMatrix:
        stacked = validate_batch(batch, self.config.num_features)
        window_means = stacked.mean(axis=1)
        distance = np.abs(window_means - self.center) / self.scale
        return ScoreMatrix(per_window=1.0 - np.exp(-distance))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.get_config()})"
