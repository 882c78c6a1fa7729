from __future__ import annotations

import math
from datetime import datetime

import pytest

from vital_analytics.models import InvalidConfigurationError, Reading, Window
from vital_analytics.partition import Granularity, partition
from vital_analytics.variability import (
    aggregate_variability,
    coefficient_of_variation,
    excessive_variability,
    successive_difference_rms,
    variability,
)


def _bp(day: int, hour: int, systolic: float, diastolic: float | None = None) -> Reading:
    return Reading(datetime(2024, 1, day, hour, 0), systolic, diastolic)


def test_single_reading_has_no_variability():
    assert variability([_bp(1, 8, 120, 80)]) is None
    assert variability([]) is None


def test_identical_readings_have_zero_deviation():
    metrics = variability([_bp(1, 8, 120, 80), _bp(1, 9, 120, 80)])

    assert metrics is not None
    assert metrics.standard_deviation == 0.0
    assert metrics.range == 0.0
    assert metrics.coefficient_of_variation == 0.0
    assert metrics.secondary_standard_deviation == 0.0


def test_population_standard_deviation_and_cv():
    window = Window(
        "2024-01-01",
        datetime(2024, 1, 1),
        datetime(2024, 1, 2),
        (_bp(1, 8, 100, 60), _bp(1, 12, 110, 70), _bp(1, 20, 120, 80)),
    )
    metrics = variability(window)

    expected_sd = math.sqrt(200.0 / 3.0)
    assert metrics is not None
    assert metrics.count == 3
    assert metrics.standard_deviation == pytest.approx(expected_sd)
    assert metrics.range == pytest.approx(20.0)
    assert metrics.coefficient_of_variation == pytest.approx(expected_sd / 110.0 * 100.0)
    assert metrics.secondary_standard_deviation == pytest.approx(expected_sd)
    assert metrics.secondary_coefficient_of_variation == pytest.approx(expected_sd / 70.0 * 100.0)


def test_zero_mean_leaves_cv_undefined():
    metrics = variability([_bp(1, 8, -1.0), _bp(1, 9, 1.0)])

    assert metrics is not None
    assert metrics.standard_deviation == pytest.approx(1.0)
    assert metrics.coefficient_of_variation is None
    assert coefficient_of_variation(5.0, 0.0) is None


def _daily_windows() -> list[Window]:
    readings = [
        _bp(1, 8, 100, 70),
        _bp(1, 20, 140, 72),
        _bp(2, 8, 120, 60),
        _bp(2, 20, 122, 90),
        _bp(3, 8, 121, 75),
        _bp(3, 20, 123, 76),
        _bp(4, 8, 150, 95),
    ]
    return partition(readings, Granularity.DAY)


def test_excessive_variability_flags_either_channel_in_order():
    flagged = excessive_variability(_daily_windows(), 15.0, 10.0)
    assert [window.label for window in flagged] == ["2024-01-01", "2024-01-02"]


def test_excessive_variability_primary_only():
    flagged = excessive_variability(_daily_windows(), 15.0)
    assert [window.label for window in flagged] == ["2024-01-01"]


def test_aggregate_variability_skips_sparse_windows():
    readings = [
        _bp(1, 8, 100),
        _bp(1, 20, 140),
        _bp(2, 8, 120),
        _bp(2, 20, 122),
        _bp(3, 8, 150),
    ]
    aggregate = aggregate_variability(partition(readings, Granularity.DAY))

    assert aggregate is not None
    assert aggregate.window_count == 2
    assert aggregate.average_standard_deviation == pytest.approx(10.5)
    assert aggregate.max_standard_deviation == pytest.approx(20.0)
    assert aggregate.average_range == pytest.approx(21.0)
    assert aggregate.coefficient_of_variation == pytest.approx(10.5 / 120.5 * 100.0)
    assert aggregate.secondary_average_standard_deviation is None


def test_aggregate_variability_without_eligible_windows():
    assert aggregate_variability(partition([_bp(1, 8, 120)], Granularity.DAY)) is None
    assert aggregate_variability([]) is None


def test_successive_difference_rms_follows_reading_order():
    readings = [_bp(1, 8, 100), _bp(1, 9, 110), _bp(1, 10, 100), _bp(1, 11, 130)]

    assert successive_difference_rms(readings) == pytest.approx(math.sqrt((100 + 100 + 900) / 3))
    assert successive_difference_rms(readings[:1]) is None
    assert successive_difference_rms([]) is None


def test_successive_difference_rms_on_beat_intervals():
    readings = [_bp(1, 8, 60), _bp(1, 9, 75), _bp(1, 10, 60)]

    # 1000 ms, 800 ms, 1000 ms between beats
    assert successive_difference_rms(readings, basis="rr_interval") == pytest.approx(200.0)
    assert successive_difference_rms([_bp(1, 8, 0), _bp(1, 9, 60)], basis="rr_interval") is None


def test_successive_difference_rms_rejects_unknown_basis():
    with pytest.raises(InvalidConfigurationError):
        successive_difference_rms([_bp(1, 8, 60), _bp(1, 9, 70)], basis="seconds")
