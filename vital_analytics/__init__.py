"""Vital-sign time-series analytics library."""

from .categorizer import Band, CategoryRule, CategorySchema, categorize, distribution, threshold_load
from .models import (
    UNKNOWN_CATEGORY,
    CategoryDistribution,
    CategoryStats,
    ChannelStats,
    CircadianComparison,
    CorrelationResult,
    DateRange,
    DayToDayChange,
    InvalidConfigurationError,
    MedicationEffect,
    NocturnalAssessment,
    Reading,
    RiskAssessment,
    ThresholdLoad,
    Thresholds,
    VariabilityAggregate,
    VariabilityMetrics,
    Window,
    WindowSummary,
)
from .partition import BeforeAfter, Granularity, partition
from .readings import TimeOfDayWindow
from .report import MetricReport, ReadingSource, ReportBuilder, report_to_dict
from .risk import RiskScale, RiskTier, score
from .schemas import MetricConfig, blood_pressure_config, heart_rate_config, load_metric_configs, parse_metric_config
from .variability import successive_difference_rms

__all__ = [
    "Band",
    "BeforeAfter",
    "CategoryDistribution",
    "CategoryRule",
    "CategorySchema",
    "CategoryStats",
    "ChannelStats",
    "CircadianComparison",
    "CorrelationResult",
    "DateRange",
    "DayToDayChange",
    "Granularity",
    "InvalidConfigurationError",
    "MedicationEffect",
    "MetricConfig",
    "MetricReport",
    "NocturnalAssessment",
    "Reading",
    "ReadingSource",
    "ReportBuilder",
    "RiskAssessment",
    "RiskScale",
    "RiskTier",
    "ThresholdLoad",
    "Thresholds",
    "TimeOfDayWindow",
    "UNKNOWN_CATEGORY",
    "VariabilityAggregate",
    "VariabilityMetrics",
    "Window",
    "WindowSummary",
    "blood_pressure_config",
    "categorize",
    "distribution",
    "heart_rate_config",
    "load_metric_configs",
    "parse_metric_config",
    "partition",
    "report_to_dict",
    "score",
    "successive_difference_rms",
    "threshold_load",
]
