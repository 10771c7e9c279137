"""
Threshold policy turning score rows into alert messages.
"""

import numpy as np

from .models import AlertMessage, Batch, ScoreMatrix


def anomalous_features(scores: np.ndarray, threshold: float) -> tuple[tuple[int, float], ...]:
    """Return (index, score) for every feature at or above the threshold"""
    # NaN compares False, so missing scores are never anomalous
    indices = np.flatnonzero(scores >= threshold)
    return tuple((int(i), float(scores[i])) for i in indices)


def evaluate(batch: Batch, scores: ScoreMatrix, threshold: float = 0.9) -> list[AlertMessage]:
    """Build one alert per window that has at least one anomalous feature

    Args:
        batch: The batch the scores were produced from
        scores: One score row per window, in batch order
        threshold: Inclusive anomaly threshold

    Returns:
        Alerts in window order; windows without anomalies produce none

    Raises:
        ValueError: If the score rows do not line up with the batch windows
    """
    if len(scores) != len(batch):
        raise ValueError(f"Got {len(scores)} score rows for {len(batch)} windows")

    alerts = []
    for window, row in zip(batch.windows, scores.per_window):
        features = anomalous_features(row, threshold)
        if not features:
            continue
        alerts.append(
            AlertMessage(
                window_sequence_id=window.sequence_id,
                timestamp=window.timestamp,
                anomalous_features=features,
                batch_id=batch.batch_id,
            )
        )
    return alerts
