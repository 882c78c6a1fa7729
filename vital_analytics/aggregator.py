"""Descriptive statistics over windows of readings."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

import numpy as np

from .models import DayToDayChange, Reading, Window, WindowSummary, readings_tuple
from .partition import Granularity, partition


def channel_arrays(readings: Sequence[Reading]) -> tuple[np.ndarray, np.ndarray]:
    """Return primary values and the secondary values that are present."""

    items = readings_tuple(readings)
    primary = np.array([float(r.primary_value) for r in items], dtype=float)
    secondary = np.array(
        [float(r.secondary_value) for r in items if r.secondary_value is not None],
        dtype=float,
    )
    return primary, secondary


def _mean(values: np.ndarray) -> Optional[float]:
    return float(values.mean()) if values.size else None


def channel_means(readings: Sequence[Reading]) -> tuple[Optional[float], Optional[float]]:
    """Mean of each channel; None where a channel has no values."""

    primary, secondary = channel_arrays(readings)
    return _mean(primary), _mean(secondary)


def summarize(window: Window) -> WindowSummary:
    """Mean/min/max per channel. Statistics stay None for an empty window."""

    primary, secondary = channel_arrays(window.readings)
    if not primary.size:
        return WindowSummary(window=window, count=0)

    secondary_stats: dict[str, float] = {}
    if secondary.size:
        secondary_stats = {
            "secondary_mean": float(secondary.mean()),
            "secondary_min": float(secondary.min()),
            "secondary_max": float(secondary.max()),
        }
    return WindowSummary(
        window=window,
        count=int(primary.size),
        mean=float(primary.mean()),
        min=float(primary.min()),
        max=float(primary.max()),
        **secondary_stats,
    )


def summarize_all(windows: Iterable[Window]) -> list[WindowSummary]:
    return [summarize(window) for window in windows]


def daily_summaries(readings: Sequence[Reading], *, local_timezone: str | None = None) -> list[WindowSummary]:
    """Convenience wrapper: one summary per local calendar day."""

    return summarize_all(partition(readings, Granularity.DAY, local_timezone=local_timezone))


def channel_ratio(summary: WindowSummary) -> Optional[float]:
    """Mean primary over mean secondary (systolic/diastolic ratio)."""

    if summary.count == 0 or summary.mean is None:
        return None
    if summary.secondary_mean is None or summary.secondary_mean == 0:
        return None
    return summary.mean / summary.secondary_mean


def day_to_day_changes(daily: Sequence[WindowSummary]) -> list[DayToDayChange]:
    """Absolute change in daily means between consecutive calendar days.

    Only days present in the data are paired, and only with the following
    calendar day; a missing day breaks the chain rather than pairing across
    the gap.
    """

    by_day: dict[date, WindowSummary] = {}
    for summary in daily:
        key = summary.window.key
        if not isinstance(key, date):
            raise ValueError("day_to_day_changes expects day-granularity summaries")
        if summary.count > 0:
            by_day[key] = summary

    changes: list[DayToDayChange] = []
    for day in sorted(by_day):
        following = by_day.get(day + timedelta(days=1))
        if following is None:
            continue
        current = by_day[day]
        secondary_change: Optional[float] = None
        if current.secondary_mean is not None and following.secondary_mean is not None:
            secondary_change = abs(following.secondary_mean - current.secondary_mean)
        changes.append(
            DayToDayChange(
                date=day,
                next_date=following.window.key,
                primary_change=abs(following.mean - current.mean),
                secondary_change=secondary_change,
            )
        )
    return changes
