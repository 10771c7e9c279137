"""
Scorer capability consumed by the inference pipeline.

A scorer is any object exposing a ``name`` and a ``score(batch)`` method that
returns one row of per-feature scores per window. Pipeline code only relies on
this shape, so scorers are substituted by construction, not by subclassing.
"""

from typing import Any, Protocol, runtime_checkable

import numpy as np

from ..models import Batch, ScoreMatrix


@runtime_checkable
class Scorer(Protocol):
    """Turns a batch of windows into per-feature scores"""

    @property
    def name(self) -> str: ...

    def score(self, batch: Batch) -> ScoreMatrix: ...


def validate_batch(batch: Batch, num_features: int) -> np.ndarray:
    """Stack a batch and check it matches the scorer's feature count

    Returns:
        Array of shape (windows, window_size, num_features)

    Raises:
        ValueError: If the batch is empty or has the wrong feature count
    """
    if not batch.windows:
        raise ValueError("Cannot score an empty batch")

    stacked = batch.as_array()
    if stacked.shape[-1] != num_features:
        raise ValueError(
            f"Batch has {stacked.shape[-1]} features, scorer expects {num_features}"
        )
    return stacked


def describe(scorer: Any) -> str:
    """Human-readable scorer label for log records"""
    return getattr(scorer, "name", type(scorer).__name__)
