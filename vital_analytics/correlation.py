"""Pearson correlation between the two channels of a reading set."""
from __future__ import annotations

from datetime import timedelta
from typing import Optional, Sequence

import numpy as np

from .models import CorrelationResult, Reading, readings_tuple
from .readings import pair_metrics


def correlate(readings: Sequence[Reading]) -> Optional[CorrelationResult]:
    """Pearson coefficient of primary vs secondary over paired readings.

    Returns None with fewer than two paired readings or when either channel is
    constant, since the coefficient is undefined there.
    """

    paired = [r for r in readings_tuple(readings) if r.secondary_value is not None]
    if len(paired) < 2:
        return None

    a = np.array([float(r.primary_value) for r in paired], dtype=float)
    b = np.array([float(r.secondary_value) for r in paired], dtype=float)
    if a.max() == a.min() or b.max() == b.min():
        return None

    da = a - a.mean()
    db = b - b.mean()
    covariance = float((da * db).mean())
    std_a = float(np.sqrt((da * da).mean()))
    std_b = float(np.sqrt((db * db).mean()))
    if std_a == 0 or std_b == 0:
        return None

    coefficient = covariance / (std_a * std_b)
    return CorrelationResult(coefficient=float(np.clip(coefficient, -1.0, 1.0)), sample_size=len(paired))


def correlate_metrics(
    readings_a: Sequence[Reading],
    readings_b: Sequence[Reading],
    tolerance: timedelta = timedelta(minutes=5),
) -> Optional[CorrelationResult]:
    """Correlate the primary channels of two metrics aligned by timestamp."""

    return correlate(pair_metrics(readings_a, readings_b, tolerance))
