"""Compose every analyzer into a single per-metric report."""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Mapping, Optional, Protocol, Sequence

from . import aggregator, categorizer, circadian, correlation, medication, risk, variability
from .models import (
    CategoryDistribution,
    CircadianComparison,
    CorrelationResult,
    DayToDayChange,
    MedicationEffect,
    NocturnalAssessment,
    Reading,
    RiskAssessment,
    ThresholdLoad,
    VariabilityAggregate,
    Window,
    WindowSummary,
)
from .partition import Granularity, partition
from .readings import pulse_pressure
from .schemas import MetricConfig

logger = logging.getLogger(__name__)


class ReadingSource(Protocol):
    """Storage collaborator returning timestamp-ordered readings."""

    def fetch(self, user_id: str, metric_type: str, start: datetime, end: datetime) -> Sequence[Reading]:
        ...


@dataclass(frozen=True)
class MetricReport:
    """Plain-data bundle of every analysis for one metric and time range."""

    user_id: str
    metric: str
    start: datetime
    end: datetime
    reading_count: int
    distribution: CategoryDistribution
    risk: Optional[RiskAssessment] = None
    load: Optional[ThresholdLoad] = None
    hourly: Sequence[WindowSummary] = field(default_factory=tuple)
    daily: Sequence[WindowSummary] = field(default_factory=tuple)
    weekday: Sequence[WindowSummary] = field(default_factory=tuple)
    weekly: Sequence[WindowSummary] = field(default_factory=tuple)
    monthly: Sequence[WindowSummary] = field(default_factory=tuple)
    variability: Optional[VariabilityAggregate] = None
    excessive_variability_days: Sequence[str] = field(default_factory=tuple)
    day_to_day: Sequence[DayToDayChange] = field(default_factory=tuple)
    correlation: Optional[CorrelationResult] = None
    pulse_pressure: Optional[WindowSummary] = None
    pulse_pressure_distribution: Optional[CategoryDistribution] = None
    pulse_pressure_daily: Sequence[WindowSummary] = field(default_factory=tuple)
    successive_difference_rms: Optional[float] = None
    morning_vs_rest: Optional[CircadianComparison] = None
    morning_vs_evening: Optional[CircadianComparison] = None
    morning_surge_days: Sequence[CircadianComparison] = field(default_factory=tuple)
    nocturnal: Optional[NocturnalAssessment] = None
    clinical_vs_home: Optional[CircadianComparison] = None
    white_coat: Optional[str] = None
    medication_daily: Sequence[MedicationEffect] = field(default_factory=tuple)
    medication_aggregate: Optional[MedicationEffect] = None
    medication_trend: Optional[float] = None


class ReportBuilder:
    """Fetches readings through a ReadingSource and runs the configured analyses.

    Usage::

        builder = ReportBuilder(source, {"blood_pressure": blood_pressure_config()})
        report = builder.build("user-1", "blood_pressure", start, end)
    """

    def __init__(self, source: ReadingSource, configs: Mapping[str, MetricConfig]) -> None:
        self._source = source
        self._configs = dict(configs)
        self._schemas = {metric: config.categories.to_schema() for metric, config in self._configs.items()}
        self._risk_schemas = {
            metric: config.risk_categories.to_schema()
            for metric, config in self._configs.items()
            if config.risk_categories is not None
        }
        self._pulse_pressure_schemas = {
            metric: config.pulse_pressure_categories.to_schema()
            for metric, config in self._configs.items()
            if config.pulse_pressure_categories is not None
        }
        self._scales = {
            metric: config.risk.to_scale()
            for metric, config in self._configs.items()
            if config.risk is not None
        }

    @property
    def metrics(self) -> tuple[str, ...]:
        return tuple(self._configs)

    def build(self, user_id: str, metric_type: str, start: datetime, end: datetime) -> MetricReport:
        if metric_type not in self._configs:
            raise KeyError(f"No configuration for metric {metric_type!r}")
        readings = tuple(self._source.fetch(user_id, metric_type, start, end))
        logger.debug("Building %s report for %s with %d readings", metric_type, user_id, len(readings))
        return self.analyze(user_id, metric_type, start, end, readings)

    def analyze(
        self,
        user_id: str,
        metric_type: str,
        start: datetime,
        end: datetime,
        readings: Sequence[Reading],
    ) -> MetricReport:
        """Run every analysis on already-fetched readings."""

        config = self._configs[metric_type]
        schema = self._schemas[metric_type]
        tz = config.local_timezone

        dist = categorizer.distribution(readings, schema)
        scale = self._scales.get(metric_type)
        assessment = None
        if scale is not None:
            risk_schema = self._risk_schemas.get(metric_type)
            risk_dist = dist if risk_schema is None else categorizer.distribution(readings, risk_schema)
            assessment = risk.score(risk_dist, scale)

        derived_pulse_pressure = pulse_pressure(readings)
        pulse_pressure_schema = self._pulse_pressure_schemas.get(metric_type)
        pulse_pressure_dist = None
        if pulse_pressure_schema is not None:
            pulse_pressure_dist = categorizer.distribution(derived_pulse_pressure, pulse_pressure_schema)

        daily_windows = partition(readings, Granularity.DAY, local_timezone=tz)
        daily = aggregator.summarize_all(daily_windows)

        excessive: list[Window] = []
        if config.variability_thresholds is not None:
            excessive = variability.excessive_variability(
                daily_windows,
                config.variability_thresholds.primary,
                config.variability_thresholds.secondary,
            )

        load = None
        if config.load_thresholds is not None:
            load = categorizer.threshold_load(
                readings,
                config.load_thresholds.primary,
                config.load_thresholds.secondary,
            )

        windows = config.circadian
        nocturnal = None
        if windows.nocturnal_high is not None:
            nocturnal = circadian.nocturnal(
                readings,
                windows.night_start,
                windows.night_end,
                windows.nocturnal_high.to_thresholds(),
                local_timezone=tz,
            )
        surge_days: list[CircadianComparison] = []
        if windows.morning_surge_threshold is not None:
            surge_days = circadian.morning_surge(
                readings,
                windows.morning_start,
                windows.morning_end,
                windows.morning_surge_threshold,
                local_timezone=tz,
            )
        clinical = circadian.clinical_vs_home(readings)
        white_coat = None
        if windows.white_coat_likely is not None and windows.white_coat_possible is not None:
            white_coat = circadian.white_coat_assessment(
                clinical,
                windows.white_coat_likely.to_thresholds(),
                windows.white_coat_possible.to_thresholds(),
            )

        medication_daily: list[MedicationEffect] = []
        medication_aggregate = None
        if config.medication is not None:
            spec = config.medication.to_spec()
            medication_daily = medication.medication_effect(
                readings, spec.anchor_time, spec.before_span, spec.after_span, local_timezone=tz
            )
            medication_aggregate = medication.aggregate_effect(
                readings, spec.anchor_time, spec.before_span, spec.after_span, local_timezone=tz
            )

        return MetricReport(
            user_id=user_id,
            metric=metric_type,
            start=start,
            end=end,
            reading_count=len(readings),
            distribution=dist,
            risk=assessment,
            load=load,
            hourly=aggregator.summarize_all(partition(readings, Granularity.HOUR_OF_DAY, local_timezone=tz)),
            daily=daily,
            weekday=aggregator.summarize_all(partition(readings, Granularity.DAY_OF_WEEK, local_timezone=tz)),
            weekly=aggregator.summarize_all(partition(readings, Granularity.WEEK, local_timezone=tz)),
            monthly=aggregator.summarize_all(partition(readings, Granularity.MONTH, local_timezone=tz)),
            variability=variability.aggregate_variability(daily_windows),
            excessive_variability_days=tuple(window.label for window in excessive),
            day_to_day=aggregator.day_to_day_changes(daily),
            correlation=correlation.correlate(readings),
            pulse_pressure=_pulse_pressure_summary(derived_pulse_pressure, start, end),
            pulse_pressure_distribution=pulse_pressure_dist,
            pulse_pressure_daily=tuple(aggregator.daily_summaries(derived_pulse_pressure, local_timezone=tz)),
            successive_difference_rms=variability.successive_difference_rms(
                readings, basis=config.successive_difference
            ),
            morning_vs_rest=circadian.morning_vs_rest(
                readings, windows.morning_start, windows.morning_end, local_timezone=tz
            ),
            morning_vs_evening=circadian.morning_vs_evening(
                readings,
                windows.morning_start,
                windows.morning_end,
                windows.evening_start,
                windows.evening_end,
                local_timezone=tz,
            ),
            morning_surge_days=tuple(surge_days),
            nocturnal=nocturnal,
            clinical_vs_home=clinical,
            white_coat=white_coat,
            medication_daily=tuple(medication_daily),
            medication_aggregate=medication_aggregate,
            medication_trend=medication.effect_trend(medication_daily),
        )


def _pulse_pressure_summary(derived: Sequence[Reading], start: datetime, end: datetime) -> Optional[WindowSummary]:
    if not derived:
        return None
    return aggregator.summarize(Window("pulse_pressure", start, end, derived))


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Window):
        return {
            "label": value.label,
            "start": value.start.isoformat(),
            "end": value.end.isoformat(),
            "count": value.count,
        }
    if isinstance(value, CategoryDistribution):
        return {
            "total": value.total,
            "categories": {name: _to_jsonable(stats) for name, stats in value.categories.items()},
        }
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): _to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


def report_to_dict(report: MetricReport) -> dict[str, Any]:
    """Serialize a report to JSON-compatible primitives."""

    return _to_jsonable(report)
