from __future__ import annotations

import copy
import json
from datetime import date, datetime, timedelta

import pytest

from vital_analytics.circadian import CLINICAL, HOME, WHITE_COAT_LIKELY
from vital_analytics.models import Reading
from vital_analytics.report import ReportBuilder, report_to_dict
from vital_analytics.schemas import DEFAULT_BLOOD_PRESSURE_CONFIG, heart_rate_config, parse_metric_config


class InMemorySource:
    def __init__(self, user_id: str, readings: list[Reading]) -> None:
        self._user_id = user_id
        self._readings = sorted(readings, key=lambda reading: reading.timestamp)
        self.calls = 0

    def fetch(self, user_id, metric_type, start, end):
        assert user_id == self._user_id
        self.calls += 1
        return [reading for reading in self._readings if start <= reading.timestamp < end]


def _history() -> list[Reading]:
    readings: list[Reading] = []
    for offset in range(3):
        day = datetime(2024, 1, 1) + timedelta(days=offset)
        readings.append(Reading(day.replace(hour=7), 145.0, 92.0, (HOME,)))
        readings.append(Reading(day.replace(hour=10), 128.0, 82.0, (HOME,)))
        readings.append(Reading(day.replace(hour=23), 122.0, 78.0, (HOME,)))
    readings.append(Reading(datetime(2024, 1, 1, 12), 160.0, 100.0, (CLINICAL,)))
    return readings


def _builder(source: InMemorySource) -> ReportBuilder:
    payload = copy.deepcopy(DEFAULT_BLOOD_PRESSURE_CONFIG)
    payload["medication"] = {"anchor_time": "08:00", "before_hours": 2, "after_hours": 6}
    return ReportBuilder(source, {"blood_pressure": parse_metric_config(payload)})


def test_report_combines_every_analysis():
    source = InMemorySource("user-1", _history())
    report = _builder(source).build("user-1", "blood_pressure", datetime(2024, 1, 1), datetime(2024, 1, 4))

    assert source.calls == 1
    assert report.reading_count == 10
    assert report.distribution.total == 10
    assert report.risk is not None
    assert [summary.label for summary in report.daily] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert [summary.label for summary in report.hourly] == ["07", "10", "12", "23"]
    assert len(report.monthly) == 1
    assert report.variability is not None
    assert report.correlation is not None
    assert report.pulse_pressure is not None
    assert report.pulse_pressure.count == 10
    assert report.risk.score == pytest.approx(2.2)
    assert report.risk.tier == "Increased Risk"
    assert report.pulse_pressure_distribution is not None
    assert report.pulse_pressure_distribution.categories["Normal"].count == 10
    assert [summary.label for summary in report.pulse_pressure_daily] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert report.pulse_pressure_daily[0].count == 4
    assert report.nocturnal is not None
    assert report.nocturnal.night_count == 3
    assert [comparison.date for comparison in report.morning_surge_days] == [
        date(2024, 1, 2),
        date(2024, 1, 3),
    ]
    assert report.white_coat == WHITE_COAT_LIKELY
    assert len(report.medication_daily) == 3
    assert report.medication_aggregate is not None
    assert report.medication_aggregate.before_mean == pytest.approx(145.0)
    assert report.medication_trend == pytest.approx(8.0)
    assert [(change.date, change.next_date) for change in report.day_to_day] == [
        (date(2024, 1, 1), date(2024, 1, 2)),
        (date(2024, 1, 2), date(2024, 1, 3)),
    ]


def test_report_on_empty_range():
    source = InMemorySource("user-1", _history())
    report = _builder(source).build("user-1", "blood_pressure", datetime(2025, 1, 1), datetime(2025, 2, 1))

    assert report.reading_count == 0
    assert report.distribution.is_empty
    assert report.risk is None
    assert report.daily == []
    assert report.correlation is None
    assert report.pulse_pressure is None
    assert report.pulse_pressure_daily == ()
    assert report.pulse_pressure_distribution.is_empty
    assert report.successive_difference_rms is None
    assert report.nocturnal is None
    assert report.medication_aggregate is None
    assert report.white_coat is None


def test_report_pulse_pressure_categories_and_daily_trend():
    readings = [
        Reading(datetime(2024, 1, 1, 8), 150.0, 90.0),
        Reading(datetime(2024, 1, 1, 9), 150.0, 89.0),
        Reading(datetime(2024, 1, 1, 10), 120.0, 81.0),
        Reading(datetime(2024, 1, 2, 8), 120.0, 80.0),
        Reading(datetime(2024, 1, 2, 9), 165.0, 105.0),
    ]
    source = InMemorySource("user-1", readings)
    report = _builder(source).build("user-1", "blood_pressure", datetime(2024, 1, 1), datetime(2024, 1, 3))

    categories = report.pulse_pressure_distribution.categories
    assert {name: stats.count for name, stats in categories.items()} == {"Low": 1, "Normal": 3, "High": 1}
    assert [summary.count for summary in report.pulse_pressure_daily] == [3, 2]
    assert report.pulse_pressure_daily[1].mean == pytest.approx(50.0)


def test_severe_readings_report_very_high_risk():
    readings = [Reading(datetime(2024, 1, 1, hour), 165.0, 105.0) for hour in (8, 12, 20)]
    source = InMemorySource("user-1", readings)
    report = _builder(source).build("user-1", "blood_pressure", datetime(2024, 1, 1), datetime(2024, 1, 2))

    assert report.distribution.categories["Hypertension Stage 2"].count == 3
    assert report.risk.score == pytest.approx(4.0)
    assert report.risk.tier == "Very High Risk"


def test_heart_rate_report_uses_zones_and_beat_interval_rms():
    readings = [
        Reading(datetime(2024, 1, 1, 8), 60.0),
        Reading(datetime(2024, 1, 1, 9), 75.0),
        Reading(datetime(2024, 1, 1, 10), 60.0),
        Reading(datetime(2024, 1, 1, 11), 130.0),
    ]
    source = InMemorySource("user-1", readings)
    builder = ReportBuilder(source, {"heart_rate": heart_rate_config(max_heart_rate=200)})
    report = builder.build("user-1", "heart_rate", datetime(2024, 1, 1), datetime(2024, 1, 2))

    counts = {name: stats.count for name, stats in report.distribution.categories.items()}
    assert counts == {"Below Zone 1": 3, "Zone 2": 1}
    assert report.risk is None
    assert report.pulse_pressure is None
    assert report.pulse_pressure_distribution is None
    assert report.pulse_pressure_daily == ()
    expected_ms = [1000.0, 800.0, 1000.0, 60000.0 / 130.0]
    diffs = [b - a for a, b in zip(expected_ms, expected_ms[1:])]
    assert report.successive_difference_rms == pytest.approx((sum(d * d for d in diffs) / 3) ** 0.5)


def test_unknown_metric_raises():
    source = InMemorySource("user-1", _history())
    with pytest.raises(KeyError):
        _builder(source).build("user-1", "glucose", datetime(2024, 1, 1), datetime(2024, 1, 4))


def test_report_is_idempotent():
    source = InMemorySource("user-1", _history())
    builder = _builder(source)
    start, end = datetime(2024, 1, 1), datetime(2024, 1, 4)

    assert builder.build("user-1", "blood_pressure", start, end) == builder.build("user-1", "blood_pressure", start, end)


def test_report_to_dict_is_json_serializable():
    source = InMemorySource("user-1", _history())
    report = _builder(source).build("user-1", "blood_pressure", datetime(2024, 1, 1), datetime(2024, 1, 4))
    payload = report_to_dict(report)

    text = json.dumps(payload)
    assert json.loads(text)["metric"] == "blood_pressure"
    assert payload["start"] == "2024-01-01T00:00:00"
    assert payload["daily"][0]["window"] == {
        "label": "2024-01-01",
        "start": "2024-01-01T00:00:00",
        "end": "2024-01-02T00:00:00",
        "count": 4,
    }
    assert payload["distribution"]["total"] == 10
    assert payload["medication_daily"][0]["date"] == "2024-01-01"
