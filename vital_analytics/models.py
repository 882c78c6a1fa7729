"""Core data models for vital-sign analytics."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterator, Mapping, Optional, Sequence

UNKNOWN_CATEGORY = "Unknown"


class InvalidConfigurationError(ValueError):
    """Raised when a schema, window spec or scale is malformed at setup time."""


@dataclass(frozen=True)
class Reading:
    """Single measurement with an optional paired channel."""

    timestamp: datetime
    primary_value: float
    secondary_value: Optional[float] = None
    tags: tuple[str, ...] = ()

    @property
    def is_paired(self) -> bool:
        return self.secondary_value is not None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(frozen=True)
class Window:
    """Labeled subset of a reading sequence.

    ``start``/``end`` are local wall-clock instants. Calendar windows are
    half-open ``[start, end)``; hour-of-day and day-of-week windows span their
    earliest and latest member readings.
    """

    label: str
    start: datetime
    end: datetime
    readings: tuple[Reading, ...] = ()
    key: Any = None

    @property
    def count(self) -> int:
        return len(self.readings)

    def __iter__(self) -> Iterator[Reading]:
        return iter(self.readings)


@dataclass(frozen=True)
class WindowSummary:
    """Descriptive statistics for one window; stats are None when empty."""

    window: Window
    count: int
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    secondary_mean: Optional[float] = None
    secondary_min: Optional[float] = None
    secondary_max: Optional[float] = None

    @property
    def label(self) -> str:
        return self.window.label


@dataclass(frozen=True)
class ChannelStats:
    mean: float
    min: float
    max: float


@dataclass(frozen=True)
class CategoryStats:
    """Count, share and channel statistics for one category."""

    name: str
    rank: Optional[int]
    count: int
    percentage: float
    primary: ChannelStats
    secondary: Optional[ChannelStats] = None


@dataclass(frozen=True)
class CategoryDistribution:
    """Per-category breakdown, ordered by rule rank (Unknown last)."""

    categories: Mapping[str, CategoryStats] = field(default_factory=dict)
    total: int = 0

    def __getitem__(self, name: str) -> CategoryStats:
        return self.categories[name]

    def __contains__(self, name: object) -> bool:
        return name in self.categories

    def __iter__(self) -> Iterator[str]:
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def percentages(self) -> dict[str, float]:
        return {name: stats.percentage for name, stats in self.categories.items()}


@dataclass(frozen=True)
class Thresholds:
    """Per-channel cut-off pair; ``secondary`` is optional for single-channel metrics."""

    primary: float
    secondary: Optional[float] = None


@dataclass(frozen=True)
class ThresholdLoad:
    """Share of readings at or above clinical thresholds."""

    total: int
    primary_high_count: int
    primary_load_percent: float
    secondary_high_count: Optional[int] = None
    secondary_load_percent: Optional[float] = None
    either_high_count: int = 0
    either_load_percent: float = 0.0


@dataclass(frozen=True)
class VariabilityMetrics:
    """Dispersion of a single window. Never built for fewer than two points."""

    count: int
    standard_deviation: float
    range: float
    coefficient_of_variation: Optional[float]
    secondary_standard_deviation: Optional[float] = None
    secondary_range: Optional[float] = None
    secondary_coefficient_of_variation: Optional[float] = None


@dataclass(frozen=True)
class VariabilityAggregate:
    """Variability pooled across windows with at least two readings."""

    window_count: int
    average_standard_deviation: float
    max_standard_deviation: float
    average_range: float
    coefficient_of_variation: Optional[float]
    secondary_average_standard_deviation: Optional[float] = None
    secondary_max_standard_deviation: Optional[float] = None
    secondary_average_range: Optional[float] = None
    secondary_coefficient_of_variation: Optional[float] = None


@dataclass(frozen=True)
class DayToDayChange:
    """Absolute change in daily mean between two consecutive calendar days."""

    date: date
    next_date: date
    primary_change: float
    secondary_change: Optional[float] = None


@dataclass(frozen=True)
class CorrelationResult:
    coefficient: float
    sample_size: int


@dataclass(frozen=True)
class CircadianComparison:
    """Two-sample mean comparison; ``difference = mean_a - mean_b``."""

    window_a_label: str
    window_b_label: str
    mean_a: float
    mean_b: float
    difference: float
    sample_size_a: int
    sample_size_b: int
    secondary_mean_a: Optional[float] = None
    secondary_mean_b: Optional[float] = None
    secondary_difference: Optional[float] = None
    date: Optional[date] = None


@dataclass(frozen=True)
class NocturnalAssessment:
    """Night-time means plus the night threshold-breach rate."""

    night_count: int
    night_mean: float
    night_secondary_mean: Optional[float]
    load: ThresholdLoad
    comparison: Optional[CircadianComparison] = None

    @property
    def percent_high(self) -> float:
        return self.load.either_load_percent


@dataclass(frozen=True)
class MedicationEffect:
    """Before/after comparison around an anchor time; ``date`` is None for aggregates."""

    date: Optional[date]
    before_mean: float
    after_mean: float
    reduction: float
    sample_size_before: int
    sample_size_after: int
    secondary_before_mean: Optional[float] = None
    secondary_after_mean: Optional[float] = None
    secondary_reduction: Optional[float] = None


@dataclass(frozen=True)
class RiskAssessment:
    score: float
    tier: str
    sample_size: int


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidConfigurationError(
                f"DateRange start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, date):
            return False
        return self.start <= value <= self.end


def readings_tuple(readings: Sequence[Reading] | None) -> tuple[Reading, ...]:
    """Return readings as an immutable tuple."""

    if readings is None:
        return ()
    if isinstance(readings, Window):
        return readings.readings
    return tuple(readings)
