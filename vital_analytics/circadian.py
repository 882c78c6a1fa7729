"""Time-of-day and context-tagged two-sample comparisons."""
from __future__ import annotations

from datetime import date, time
from typing import Callable, Optional, Sequence

import pandas as pd

from .aggregator import channel_means
from .categorizer import threshold_load
from .models import (
    CircadianComparison,
    InvalidConfigurationError,
    NocturnalAssessment,
    Reading,
    Thresholds,
    readings_tuple,
)
from .readings import PreparedReadings, TimeOfDayWindow, filter_time_window, prepare_readings

MORNING = "morning"
EVENING = "evening"
NIGHT = "night"
DAY = "day"
REST = "rest"
CLINICAL = "clinical"
HOME = "home"

WHITE_COAT_LIKELY = "likely_white_coat"
WHITE_COAT_POSSIBLE = "possible_white_coat"
WHITE_COAT_NONE = "no_white_coat_effect"


def compare_subsets(
    label_a: str,
    subset_a: Sequence[Reading],
    label_b: str,
    subset_b: Sequence[Reading],
    *,
    day: Optional[date] = None,
) -> Optional[CircadianComparison]:
    """Shared two-sample mean comparison; None when either subset is empty."""

    items_a = readings_tuple(subset_a)
    items_b = readings_tuple(subset_b)
    if not items_a or not items_b:
        return None

    mean_a, secondary_a = channel_means(items_a)
    mean_b, secondary_b = channel_means(items_b)
    secondary_difference: Optional[float] = None
    if secondary_a is not None and secondary_b is not None:
        secondary_difference = secondary_a - secondary_b
    return CircadianComparison(
        window_a_label=label_a,
        window_b_label=label_b,
        mean_a=mean_a,
        mean_b=mean_b,
        difference=mean_a - mean_b,
        sample_size_a=len(items_a),
        sample_size_b=len(items_b),
        secondary_mean_a=secondary_a,
        secondary_mean_b=secondary_b,
        secondary_difference=secondary_difference,
        date=day,
    )


def _split(
    prepared: PreparedReadings,
    window_a: TimeOfDayWindow,
    window_b: Optional[TimeOfDayWindow],
) -> tuple[pd.DataFrame, pd.DataFrame]:
    if window_b is not None and window_a.overlaps(window_b):
        raise InvalidConfigurationError(
            f"Time-of-day windows {window_a.label!r} and {window_b.label!r} overlap"
        )
    rows_a = filter_time_window(prepared, window_a)
    if window_b is None:
        return rows_a, prepared.frame.drop(index=rows_a.index)
    return rows_a, filter_time_window(prepared, window_b)


def compare_time_of_day(
    readings: Sequence[Reading],
    window_a: TimeOfDayWindow,
    window_b: Optional[TimeOfDayWindow] = None,
    *,
    local_timezone: str | None = None,
) -> Optional[CircadianComparison]:
    """Compare two clock-time windows; ``window_b=None`` means "every other reading".

    Overlapping windows raise InvalidConfigurationError.
    """

    prepared = prepare_readings(readings, local_timezone)
    rows_a, rows_b = _split(prepared, window_a, window_b)
    label_b = window_b.label if window_b is not None else REST
    return compare_subsets(window_a.label, prepared.select(rows_a), label_b, prepared.select(rows_b))


def daily_comparisons(
    readings: Sequence[Reading],
    window_a: TimeOfDayWindow,
    window_b: Optional[TimeOfDayWindow] = None,
    *,
    local_timezone: str | None = None,
) -> list[CircadianComparison]:
    """Per local date comparison, for dates where both windows hold readings."""

    prepared = prepare_readings(readings, local_timezone)
    if prepared.empty:
        return []
    rows_a, rows_b = _split(prepared, window_a, window_b)
    label_b = window_b.label if window_b is not None else REST

    by_day_b = {day: rows for day, rows in rows_b.groupby("local_date", sort=False)}
    results: list[CircadianComparison] = []
    for day, day_rows_a in rows_a.groupby("local_date", sort=True):
        day_rows_b = by_day_b.get(day)
        if day_rows_b is None:
            continue
        comparison = compare_subsets(
            window_a.label,
            prepared.select(day_rows_a),
            label_b,
            prepared.select(day_rows_b),
            day=day,
        )
        if comparison is not None:
            results.append(comparison)
    return results


def morning_vs_rest(
    readings: Sequence[Reading],
    morning_start: time,
    morning_end: time,
    *,
    local_timezone: str | None = None,
) -> Optional[CircadianComparison]:
    return compare_time_of_day(
        readings,
        TimeOfDayWindow(MORNING, morning_start, morning_end),
        None,
        local_timezone=local_timezone,
    )


def morning_vs_evening(
    readings: Sequence[Reading],
    morning_start: time,
    morning_end: time,
    evening_start: time,
    evening_end: time,
    *,
    local_timezone: str | None = None,
) -> Optional[CircadianComparison]:
    return compare_time_of_day(
        readings,
        TimeOfDayWindow(MORNING, morning_start, morning_end),
        TimeOfDayWindow(EVENING, evening_start, evening_end),
        local_timezone=local_timezone,
    )


def morning_surge(
    readings: Sequence[Reading],
    morning_start: time,
    morning_end: time,
    threshold: float,
    *,
    local_timezone: str | None = None,
) -> list[CircadianComparison]:
    """Days whose morning primary mean exceeds the rest of the day by more than ``threshold``."""

    daily = daily_comparisons(
        readings,
        TimeOfDayWindow(MORNING, morning_start, morning_end),
        None,
        local_timezone=local_timezone,
    )
    return [comparison for comparison in daily if comparison.difference > threshold]


def nocturnal(
    readings: Sequence[Reading],
    night_start: time,
    night_end: time,
    thresholds: Thresholds,
    *,
    local_timezone: str | None = None,
) -> Optional[NocturnalAssessment]:
    """Night means, night-vs-day comparison and the night breach rate.

    A night reading breaches when either channel is at or above its threshold.
    Returns None when there are no night readings.
    """

    prepared = prepare_readings(readings, local_timezone)
    night_rows, day_rows = _split(prepared, TimeOfDayWindow(NIGHT, night_start, night_end), None)
    night_readings = prepared.select(night_rows)
    load = threshold_load(night_readings, thresholds.primary, thresholds.secondary)
    if load is None:
        return None

    night_mean, night_secondary_mean = channel_means(night_readings)
    return NocturnalAssessment(
        night_count=len(night_readings),
        night_mean=night_mean,
        night_secondary_mean=night_secondary_mean,
        load=load,
        comparison=compare_subsets(NIGHT, night_readings, DAY, prepared.select(day_rows)),
    )


def tagged(tag: str) -> Callable[[Reading], bool]:
    """Predicate matching readings carrying ``tag``."""

    def _predicate(reading: Reading) -> bool:
        return reading.has_tag(tag)

    return _predicate


def clinical_vs_home(
    readings: Sequence[Reading],
    clinical: Callable[[Reading], bool] = tagged(CLINICAL),
    home: Callable[[Reading], bool] = tagged(HOME),
) -> Optional[CircadianComparison]:
    """Clinical-setting minus home readings, split by context predicates."""

    items = readings_tuple(readings)
    return compare_subsets(
        CLINICAL,
        [reading for reading in items if clinical(reading)],
        HOME,
        [reading for reading in items if home(reading)],
    )


def white_coat_assessment(
    comparison: Optional[CircadianComparison],
    likely: Thresholds,
    possible: Thresholds,
) -> Optional[str]:
    """Grade a clinical-vs-home comparison.

    ``likely`` and ``possible`` hold the minimum clinical-minus-home
    differences per channel; either channel reaching its value is enough.
    """

    if comparison is None:
        return None

    def _reaches(cut: Thresholds) -> bool:
        if comparison.difference >= cut.primary:
            return True
        return (
            cut.secondary is not None
            and comparison.secondary_difference is not None
            and comparison.secondary_difference >= cut.secondary
        )

    if _reaches(likely):
        return WHITE_COAT_LIKELY
    if _reaches(possible):
        return WHITE_COAT_POSSIBLE
    return WHITE_COAT_NONE
