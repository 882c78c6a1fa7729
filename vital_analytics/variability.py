"""Within-window and cross-window variability metrics."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

import numpy as np

from .aggregator import channel_arrays
from .models import InvalidConfigurationError, Reading, VariabilityAggregate, VariabilityMetrics, Window, readings_tuple


def _standard_deviation(values: np.ndarray) -> float:
    # constant input must give exactly 0.0
    if values.max() == values.min():
        return 0.0
    return float(values.std(ddof=0))


def coefficient_of_variation(standard_deviation: float, mean: float) -> Optional[float]:
    """Standard deviation as a percentage of the mean; None when the mean is 0."""

    if mean == 0 or np.isnan(mean):
        return None
    return standard_deviation / mean * 100.0


def _dispersion(values: np.ndarray) -> Optional[tuple[float, float, Optional[float]]]:
    if values.size <= 1:
        return None
    sd = _standard_deviation(values)
    spread = float(values.max() - values.min())
    return sd, spread, coefficient_of_variation(sd, float(values.mean()))


def variability(window: Union[Window, Sequence[Reading]]) -> Optional[VariabilityMetrics]:
    """Population standard deviation, range and CV; None for fewer than two readings."""

    primary, secondary = channel_arrays(readings_tuple(window))
    primary_stats = _dispersion(primary)
    if primary_stats is None:
        return None
    sd, spread, cv = primary_stats

    secondary_stats = _dispersion(secondary)
    if secondary_stats is None:
        return VariabilityMetrics(count=int(primary.size), standard_deviation=sd, range=spread, coefficient_of_variation=cv)
    secondary_sd, secondary_spread, secondary_cv = secondary_stats
    return VariabilityMetrics(
        count=int(primary.size),
        standard_deviation=sd,
        range=spread,
        coefficient_of_variation=cv,
        secondary_standard_deviation=secondary_sd,
        secondary_range=secondary_spread,
        secondary_coefficient_of_variation=secondary_cv,
    )


def excessive_variability(
    windows: Iterable[Window],
    primary_threshold: float,
    secondary_threshold: Optional[float] = None,
) -> list[Window]:
    """Windows whose standard deviation exceeds a threshold on either channel.

    Windows with fewer than two readings are never flagged. Input order is kept.
    """

    flagged: list[Window] = []
    for window in windows:
        metrics = variability(window)
        if metrics is None:
            continue
        if metrics.standard_deviation > primary_threshold:
            flagged.append(window)
            continue
        if (
            secondary_threshold is not None
            and metrics.secondary_standard_deviation is not None
            and metrics.secondary_standard_deviation > secondary_threshold
        ):
            flagged.append(window)
    return flagged


def aggregate_variability(windows: Iterable[Window]) -> Optional[VariabilityAggregate]:
    """Average and maximum dispersion across windows holding two or more readings.

    The pooled coefficient of variation is the average standard deviation over
    the average window mean.
    """

    rows: list[tuple[VariabilityMetrics, float, Optional[float]]] = []
    for window in windows:
        metrics = variability(window)
        if metrics is None:
            continue
        primary, secondary = channel_arrays(window.readings)
        rows.append((metrics, float(primary.mean()), float(secondary.mean()) if secondary.size else None))
    if not rows:
        return None

    sds = np.array([metrics.standard_deviation for metrics, _, _ in rows])
    ranges = np.array([metrics.range for metrics, _, _ in rows])
    means = np.array([mean for _, mean, _ in rows])

    secondary_rows = [
        (metrics, mean)
        for metrics, _, mean in rows
        if metrics.secondary_standard_deviation is not None and mean is not None
    ]
    secondary_fields: dict[str, Optional[float]] = {}
    if secondary_rows:
        secondary_sds = np.array([metrics.secondary_standard_deviation for metrics, _ in secondary_rows])
        secondary_ranges = np.array([metrics.secondary_range for metrics, _ in secondary_rows])
        secondary_means = np.array([mean for _, mean in secondary_rows])
        secondary_fields = {
            "secondary_average_standard_deviation": float(secondary_sds.mean()),
            "secondary_max_standard_deviation": float(secondary_sds.max()),
            "secondary_average_range": float(secondary_ranges.mean()),
            "secondary_coefficient_of_variation": coefficient_of_variation(
                float(secondary_sds.mean()), float(secondary_means.mean())
            ),
        }

    return VariabilityAggregate(
        window_count=len(rows),
        average_standard_deviation=float(sds.mean()),
        max_standard_deviation=float(sds.max()),
        average_range=float(ranges.mean()),
        coefficient_of_variation=coefficient_of_variation(float(sds.mean()), float(means.mean())),
        **secondary_fields,
    )


def rr_interval_ms(bpm: np.ndarray) -> np.ndarray:
    """Beat-to-beat interval in milliseconds for heart rates in beats per minute."""

    return 60000.0 / bpm


def successive_difference_rms(
    window: Union[Window, Sequence[Reading]],
    *,
    basis: str = "value",
) -> Optional[float]:
    """Root mean square of successive differences of primary values, in reading order.

    ``basis="rr_interval"`` converts heart rates to beat intervals first, which
    gives the usual RMSSD in milliseconds; non-positive rates are skipped there.
    Returns None below two usable readings.
    """

    if basis not in ("value", "rr_interval"):
        raise InvalidConfigurationError(f"Unsupported successive-difference basis {basis!r}")
    values, _ = channel_arrays(readings_tuple(window))
    values = values[~np.isnan(values)]
    if basis == "rr_interval":
        values = rr_interval_ms(values[values > 0])
    if values.size < 2:
        return None
    return float(np.sqrt(np.mean(np.diff(values) ** 2)))
