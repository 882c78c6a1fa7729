from __future__ import annotations

from datetime import date, datetime

import pytest

from vital_analytics.aggregator import (
    channel_ratio,
    daily_summaries,
    day_to_day_changes,
    summarize,
    summarize_all,
)
from vital_analytics.models import Reading, Window
from vital_analytics.partition import Granularity, partition


def _bp(day: int, hour: int, systolic: float, diastolic: float | None = None) -> Reading:
    return Reading(datetime(2024, 1, day, hour, 0), systolic, diastolic)


def test_summarize_reports_both_channels():
    window = Window(
        "2024-01-01",
        datetime(2024, 1, 1),
        datetime(2024, 1, 2),
        (_bp(1, 8, 120, 80), _bp(1, 12, 130, 70), _bp(1, 20, 110, 90)),
    )
    summary = summarize(window)

    assert summary.label == "2024-01-01"
    assert summary.count == 3
    assert summary.mean == pytest.approx(120.0)
    assert summary.min == 110.0
    assert summary.max == 130.0
    assert summary.secondary_mean == pytest.approx(80.0)
    assert summary.secondary_min == 70.0
    assert summary.secondary_max == 90.0


def test_summarize_empty_window_has_no_statistics():
    summary = summarize(Window("empty", datetime(2024, 1, 1), datetime(2024, 1, 2)))

    assert summary.count == 0
    assert summary.mean is None
    assert summary.secondary_mean is None


def test_summarize_single_channel_window():
    summary = summarize(Window("hr", datetime(2024, 1, 1), datetime(2024, 1, 2), (_bp(1, 8, 70), _bp(1, 9, 74))))

    assert summary.mean == pytest.approx(72.0)
    assert summary.secondary_mean is None


def test_daily_summaries_follow_calendar_days():
    readings = [_bp(1, 8, 120, 80), _bp(1, 20, 130, 84), _bp(2, 8, 110, 70)]
    summaries = daily_summaries(readings)

    assert [summary.label for summary in summaries] == ["2024-01-01", "2024-01-02"]
    assert [summary.mean for summary in summaries] == [pytest.approx(125.0), pytest.approx(110.0)]


def test_channel_ratio():
    summary = summarize(Window("d", datetime(2024, 1, 1), datetime(2024, 1, 2), (_bp(1, 8, 120, 80),)))
    assert channel_ratio(summary) == pytest.approx(1.5)

    single = summarize(Window("d", datetime(2024, 1, 1), datetime(2024, 1, 2), (_bp(1, 8, 120),)))
    assert channel_ratio(single) is None


def test_day_to_day_changes_skip_calendar_gaps():
    readings = [
        _bp(1, 8, 120, 80),
        _bp(2, 8, 130, 85),
        _bp(4, 8, 110, 70),
        _bp(5, 8, 105, 72),
    ]
    changes = day_to_day_changes(summarize_all(partition(readings, Granularity.DAY)))

    assert [(change.date, change.next_date) for change in changes] == [
        (date(2024, 1, 1), date(2024, 1, 2)),
        (date(2024, 1, 4), date(2024, 1, 5)),
    ]
    assert changes[0].primary_change == pytest.approx(10.0)
    assert changes[0].secondary_change == pytest.approx(5.0)
    assert changes[1].primary_change == pytest.approx(5.0)


def test_day_to_day_changes_need_daily_windows():
    hourly = summarize_all(partition([_bp(1, 8, 120), _bp(2, 9, 125)], Granularity.HOUR_OF_DAY))
    with pytest.raises(ValueError):
        day_to_day_changes(hourly)
