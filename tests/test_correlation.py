from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from vital_analytics.correlation import correlate, correlate_metrics
from vital_analytics.models import Reading
from vital_analytics.readings import pair_metrics

_START = datetime(2024, 1, 1, 8, 0)


def _series(values, secondary=None, offset=timedelta(0)) -> list[Reading]:
    readings = []
    for idx, value in enumerate(values):
        second = None if secondary is None else secondary[idx]
        readings.append(Reading(_START + offset + timedelta(hours=idx), value, second))
    return readings


def test_perfect_linear_relation():
    primary = [110.0, 118.0, 125.0, 131.0, 142.0]
    result = correlate(_series(primary, [2 * value + 3 for value in primary]))

    assert result is not None
    assert result.coefficient == pytest.approx(1.0, abs=1e-9)
    assert result.sample_size == 5


def test_inverse_relation():
    primary = [1.0, 2.0, 3.0]
    result = correlate(_series(primary, [-value for value in primary]))

    assert result is not None
    assert result.coefficient == pytest.approx(-1.0, abs=1e-9)


def test_constant_channel_has_no_correlation():
    assert correlate(_series([110.0, 120.0, 130.0], [80.0, 80.0, 80.0])) is None
    assert correlate(_series([120.0, 120.0], [70.0, 90.0])) is None


def test_insufficient_pairs():
    assert correlate([]) is None
    assert correlate(_series([120.0], [80.0])) is None
    assert correlate(_series([120.0, 130.0])) is None


def test_unpaired_readings_are_ignored():
    readings = _series([110.0, 120.0, 130.0], [60.0, 70.0, 80.0]) + [Reading(_START + timedelta(days=1), 200.0)]
    result = correlate(readings)

    assert result is not None
    assert result.sample_size == 3


def test_correlate_metrics_aligns_by_timestamp():
    heart_rate = _series([60.0, 72.0, 65.0, 80.0])
    systolic = _series([120.0, 144.0, 130.0, 160.0], offset=timedelta(minutes=2))
    result = correlate_metrics(heart_rate, systolic)

    assert result is not None
    assert result.coefficient == pytest.approx(1.0, abs=1e-9)
    assert result.sample_size == 4


def test_correlate_metrics_outside_tolerance():
    heart_rate = _series([60.0, 72.0, 65.0])
    systolic = _series([120.0, 144.0, 130.0], offset=timedelta(minutes=10))
    assert correlate_metrics(heart_rate, systolic) is None


def test_pair_metrics_rejects_mixed_timezones():
    naive = _series([60.0, 70.0])
    aware = [Reading(_START.replace(tzinfo=timezone.utc), 120.0)]
    with pytest.raises(ValueError):
        pair_metrics(naive, aware)
