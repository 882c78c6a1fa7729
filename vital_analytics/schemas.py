"""
Declarative clinical configuration: category bands, risk tiers and thresholds.

Guideline data lives here as validated configuration rather than in the
analyzers, so a new guideline version is a new JSON document, not a code change.
"""
from __future__ import annotations

import json
from datetime import time, timedelta
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .categorizer import Band, CategoryRule, CategorySchema
from .models import InvalidConfigurationError, Thresholds
from .partition import BeforeAfter
from .risk import RiskScale, RiskTier


class BandConfig(BaseModel):
    """
    One named category band. Bounds are lower-inclusive and upper-exclusive
    unless ``upper_inclusive`` is set.
    """
    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="Category name")
    rank: int = Field(description="Evaluation order; lower ranks are tried first")
    primary_min: Optional[float] = Field(default=None, description="Inclusive lower bound on the primary channel")
    primary_max: Optional[float] = Field(default=None, description="Exclusive upper bound on the primary channel")
    secondary_min: Optional[float] = Field(default=None, description="Inclusive lower bound on the secondary channel")
    secondary_max: Optional[float] = Field(default=None, description="Exclusive upper bound on the secondary channel")
    combine: Literal["all", "any"] = Field(default="all", description="Whether every or any bounded channel must match")
    upper_inclusive: bool = Field(default=False, description="Treat both upper bounds as inclusive")
    catch_all: bool = Field(default=False, description="Matches every reading; bounds must be omitted")

    def _bounds(self, lower: Optional[float], upper: Optional[float]) -> Optional[tuple[Optional[float], Optional[float]]]:
        if lower is None and upper is None:
            return None
        return (lower, upper)

    def to_rule(self) -> CategoryRule:
        primary = self._bounds(self.primary_min, self.primary_max)
        secondary = self._bounds(self.secondary_min, self.secondary_max)
        if self.catch_all:
            if primary is not None or secondary is not None:
                raise InvalidConfigurationError(f"Catch-all band {self.name!r} must not declare bounds")
            return CategoryRule.fallback(self.name, self.rank)
        band = Band(primary=primary, secondary=secondary, combine=self.combine, upper_inclusive=self.upper_inclusive)
        return CategoryRule(name=self.name, predicate=band, rank=self.rank)


class SchemaConfig(BaseModel):
    """
    Category schema for one metric.
    """
    model_config = ConfigDict(extra="forbid")

    metric: str = Field(description="Metric type the schema applies to")
    version: str = Field(default="1.0.0", description="Guideline version")
    bands: List[BandConfig] = Field(description="Category bands")

    def to_schema(self) -> CategorySchema:
        return CategorySchema(
            rules=tuple(band.to_rule() for band in self.bands),
            metric=self.metric,
            version=self.version,
        )


class RiskTierConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(description="Tier name")
    lower: float = Field(description="Inclusive lower score bound")
    upper: Optional[float] = Field(default=None, description="Exclusive upper score bound; omitted for the last tier")


class RiskScaleConfig(BaseModel):
    """
    Category weights and score tiers.
    """
    model_config = ConfigDict(extra="forbid")

    weights: Dict[str, float] = Field(description="Weight per category name")
    tiers: List[RiskTierConfig] = Field(description="Contiguous, ascending score tiers")
    excluded: List[str] = Field(default_factory=list, description="Categories left out of the score")

    def to_scale(self) -> RiskScale:
        return RiskScale(
            weights=self.weights,
            tiers=tuple(RiskTier(tier.name, tier.lower, tier.upper) for tier in self.tiers),
            excluded=tuple(self.excluded),
        )


class ThresholdConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    primary: float = Field(description="Primary channel threshold")
    secondary: Optional[float] = Field(default=None, description="Secondary channel threshold")

    def to_thresholds(self) -> Thresholds:
        return Thresholds(primary=self.primary, secondary=self.secondary)


class CircadianConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    morning_start: time = Field(default=time(6, 0), description="Morning window start")
    morning_end: time = Field(default=time(10, 0), description="Morning window end")
    evening_start: time = Field(default=time(18, 0), description="Evening window start")
    evening_end: time = Field(default=time(22, 0), description="Evening window end")
    night_start: time = Field(default=time(22, 0), description="Night window start")
    night_end: time = Field(default=time(6, 0), description="Night window end")
    nocturnal_high: Optional[ThresholdConfig] = Field(default=None, description="Night breach thresholds")
    morning_surge_threshold: Optional[float] = Field(default=None, description="Morning minus rest-of-day surge cut-off")
    white_coat_likely: Optional[ThresholdConfig] = Field(default=None, description="Clinical minus home difference for a likely effect")
    white_coat_possible: Optional[ThresholdConfig] = Field(default=None, description="Clinical minus home difference for a possible effect")


class MedicationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    anchor_time: time = Field(description="Daily medication time")
    before_hours: float = Field(default=2.0, description="Hours before the anchor")
    after_hours: float = Field(default=6.0, description="Hours after the anchor")

    def to_spec(self) -> BeforeAfter:
        return BeforeAfter(
            anchor_time=self.anchor_time,
            before_span=timedelta(hours=self.before_hours),
            after_span=timedelta(hours=self.after_hours),
        )


class MetricConfig(BaseModel):
    """
    Everything the analytics need to know about one metric family.
    """
    model_config = ConfigDict(extra="forbid")

    metric: str = Field(description="Metric type, e.g. blood_pressure")
    categories: SchemaConfig = Field(description="Category schema")
    risk_categories: Optional[SchemaConfig] = Field(
        default=None, description="Finer schema the risk weights apply to; defaults to the category schema"
    )
    risk: Optional[RiskScaleConfig] = Field(default=None, description="Risk scale")
    pulse_pressure_categories: Optional[SchemaConfig] = Field(
        default=None, description="Schema for primary minus secondary; paired metrics only"
    )
    successive_difference: Literal["value", "rr_interval"] = Field(
        default="value",
        description="Series the successive-difference RMS runs over; rr_interval converts bpm to beat intervals in ms",
    )
    load_thresholds: Optional[ThresholdConfig] = Field(default=None, description="Threshold load cut-offs")
    variability_thresholds: Optional[ThresholdConfig] = Field(default=None, description="Excessive variability cut-offs")
    circadian: CircadianConfig = Field(default_factory=CircadianConfig, description="Circadian windows")
    medication: Optional[MedicationConfig] = Field(default=None, description="Medication timing")
    local_timezone: Optional[str] = Field(default=None, description="IANA timezone for local-time projection")


# Stage 2 closes at 180/120 inclusive, so Crisis only takes values above it.
DEFAULT_BLOOD_PRESSURE_CONFIG: dict[str, Any] = {
    "metric": "blood_pressure",
    "categories": {
        "metric": "blood_pressure",
        "version": "acc-aha-2017",
        "bands": [
            {"name": "Normal", "rank": 1, "primary_max": 120, "secondary_max": 80},
            {"name": "Elevated", "rank": 2, "primary_min": 120, "primary_max": 130, "secondary_max": 80},
            {
                "name": "Hypertension Stage 1",
                "rank": 3,
                "primary_min": 130,
                "primary_max": 140,
                "secondary_min": 80,
                "secondary_max": 90,
                "combine": "any",
            },
            {
                "name": "Hypertension Stage 2",
                "rank": 4,
                "primary_min": 140,
                "primary_max": 180,
                "secondary_min": 90,
                "secondary_max": 120,
                "combine": "any",
                "upper_inclusive": True,
            },
            {
                "name": "Hypertensive Crisis",
                "rank": 5,
                "primary_min": 180,
                "secondary_min": 120,
                "combine": "any",
            },
            {"name": "Unclassified", "rank": 99, "catch_all": True},
        ],
    },
    "risk_categories": {
        "metric": "blood_pressure",
        "version": "acc-aha-2017-risk",
        "bands": [
            {"name": "Normal", "rank": 1, "primary_max": 120, "secondary_max": 80},
            {"name": "Elevated", "rank": 2, "primary_min": 120, "primary_max": 130, "secondary_max": 80},
            {
                "name": "Hypertension Stage 1",
                "rank": 3,
                "primary_min": 130,
                "primary_max": 140,
                "secondary_min": 80,
                "secondary_max": 90,
                "combine": "any",
            },
            {
                "name": "Hypertension Stage 2",
                "rank": 4,
                "primary_min": 140,
                "primary_max": 160,
                "secondary_min": 90,
                "secondary_max": 100,
                "combine": "any",
            },
            {
                "name": "Severe Hypertension",
                "rank": 5,
                "primary_min": 160,
                "primary_max": 180,
                "secondary_min": 100,
                "secondary_max": 120,
                "combine": "any",
                "upper_inclusive": True,
            },
            {
                "name": "Hypertensive Crisis",
                "rank": 6,
                "primary_min": 180,
                "secondary_min": 120,
                "combine": "any",
            },
            {"name": "Unclassified", "rank": 99, "catch_all": True},
        ],
    },
    "risk": {
        "weights": {
            "Normal": 0,
            "Elevated": 1,
            "Hypertension Stage 1": 2,
            "Hypertension Stage 2": 3,
            "Severe Hypertension": 4,
            "Hypertensive Crisis": 5,
        },
        "tiers": [
            {"name": "Low Risk", "lower": 0.0, "upper": 0.5},
            {"name": "Moderate Risk", "lower": 0.5, "upper": 1.5},
            {"name": "Increased Risk", "lower": 1.5, "upper": 2.5},
            {"name": "High Risk", "lower": 2.5, "upper": 3.5},
            {"name": "Very High Risk", "lower": 3.5, "upper": 4.5},
            {"name": "Severe Risk", "lower": 4.5},
        ],
        "excluded": ["Unclassified"],
    },
    "pulse_pressure_categories": {
        "metric": "pulse_pressure",
        "bands": [
            {"name": "Low", "rank": 1, "primary_max": 40},
            {"name": "Normal", "rank": 2, "primary_min": 40, "primary_max": 60, "upper_inclusive": True},
            {"name": "High", "rank": 3, "primary_min": 60},
            {"name": "Unclassified", "rank": 99, "catch_all": True},
        ],
    },
    "load_thresholds": {"primary": 140, "secondary": 90},
    "variability_thresholds": {"primary": 15.0, "secondary": 10.0},
    "circadian": {
        "nocturnal_high": {"primary": 120, "secondary": 70},
        "morning_surge_threshold": 15.0,
        "white_coat_likely": {"primary": 20, "secondary": 10},
        "white_coat_possible": {"primary": 10, "secondary": 5},
    },
}

DEFAULT_MAX_HEART_RATE = 190.0

# Tenths of the maximum heart rate.
_HEART_RATE_ZONES = (
    ("Zone 1", 5, 6),
    ("Zone 2", 6, 7),
    ("Zone 3", 7, 8),
    ("Zone 4", 8, 9),
)


def heart_rate_zone_bands(max_heart_rate: float = DEFAULT_MAX_HEART_RATE) -> list[dict[str, Any]]:
    """Training-zone bands as fractions of the maximum heart rate.

    Zones 1-4 include their upper edge; a value on an edge belongs to the
    lower zone, and Zone 5 starts above 90% of the maximum.
    """

    if max_heart_rate <= 0:
        raise InvalidConfigurationError(f"max_heart_rate must be positive, got {max_heart_rate}")
    bands: list[dict[str, Any]] = [
        {"name": "Below Zone 1", "rank": 1, "primary_max": max_heart_rate * 5 / 10},
    ]
    for rank, (name, low, high) in enumerate(_HEART_RATE_ZONES, start=2):
        bands.append(
            {
                "name": name,
                "rank": rank,
                "primary_min": max_heart_rate * low / 10,
                "primary_max": max_heart_rate * high / 10,
                "upper_inclusive": True,
            }
        )
    bands.append({"name": "Zone 5", "rank": len(bands) + 1, "primary_min": max_heart_rate * 9 / 10})
    bands.append({"name": "Unclassified", "rank": 99, "catch_all": True})
    return bands


def default_heart_rate_config(max_heart_rate: float = DEFAULT_MAX_HEART_RATE) -> dict[str, Any]:
    return {
        "metric": "heart_rate",
        "categories": {
            "metric": "heart_rate",
            "version": f"zones-max-{max_heart_rate:g}",
            "bands": heart_rate_zone_bands(max_heart_rate),
        },
        "successive_difference": "rr_interval",
    }


def parse_metric_config(payload: Mapping[str, Any]) -> MetricConfig:
    """Validate a raw mapping; malformed documents raise InvalidConfigurationError."""

    try:
        return MetricConfig.model_validate(payload)
    except ValidationError as exc:
        raise InvalidConfigurationError(f"Invalid metric configuration: {exc}") from exc


def blood_pressure_config() -> MetricConfig:
    return parse_metric_config(DEFAULT_BLOOD_PRESSURE_CONFIG)


def heart_rate_config(max_heart_rate: float = DEFAULT_MAX_HEART_RATE) -> MetricConfig:
    return parse_metric_config(default_heart_rate_config(max_heart_rate))


def load_metric_configs(path: Path) -> dict[str, MetricConfig]:
    """Read one config object or a list of them from a JSON file, keyed by metric."""

    with Path(path).open() as handle:
        payload = json.load(handle)
    documents = payload if isinstance(payload, list) else [payload]
    configs: dict[str, MetricConfig] = {}
    for document in documents:
        if not isinstance(document, Mapping):
            raise InvalidConfigurationError(f"Metric configuration entries must be objects, got {type(document).__name__}")
        config = parse_metric_config(document)
        if config.metric in configs:
            raise InvalidConfigurationError(f"Metric {config.metric!r} configured twice in {path}")
        configs[config.metric] = config
    return configs
