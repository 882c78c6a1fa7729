"""Rank-ordered threshold classification of readings."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .models import (
    UNKNOWN_CATEGORY,
    CategoryDistribution,
    CategoryStats,
    ChannelStats,
    InvalidConfigurationError,
    Reading,
    ThresholdLoad,
    readings_tuple,
)

Predicate = Callable[[Reading], bool]

_COMBINE_MODES = ("all", "any")


def _always(reading: Reading) -> bool:
    return True


@dataclass(frozen=True)
class Band:
    """Threshold predicate over one or both channels.

    Bounds are ``(lower, upper)`` pairs, lower-inclusive and upper-exclusive;
    ``None`` leaves that side open. ``upper_inclusive`` closes the upper side
    for guideline ranges written as "140 to 180", where the next band starts
    above 180. With ``combine="all"`` every bounded channel must match, with
    ``"any"`` one is enough. A bounded secondary channel never matches a
    reading without a secondary value.
    """

    primary: Optional[tuple[Optional[float], Optional[float]]] = None
    secondary: Optional[tuple[Optional[float], Optional[float]]] = None
    combine: str = "all"
    upper_inclusive: bool = False

    def __post_init__(self) -> None:
        if self.combine not in _COMBINE_MODES:
            raise InvalidConfigurationError(f"Unsupported band combine mode {self.combine!r}")
        if self.primary is None and self.secondary is None:
            raise InvalidConfigurationError("Band must bound at least one channel")
        for bounds in (self.primary, self.secondary):
            if bounds is None:
                continue
            lower, upper = bounds
            if lower is not None and upper is not None and lower >= upper:
                raise InvalidConfigurationError(f"Band bounds must satisfy lower < upper, got {bounds}")

    def _within(self, value: Optional[float], bounds: tuple[Optional[float], Optional[float]]) -> bool:
        if value is None or math.isnan(value):
            return False
        lower, upper = bounds
        if lower is not None and value < lower:
            return False
        if upper is not None:
            if value > upper or (value == upper and not self.upper_inclusive):
                return False
        return True

    def __call__(self, reading: Reading) -> bool:
        checks: list[bool] = []
        if self.primary is not None:
            checks.append(self._within(reading.primary_value, self.primary))
        if self.secondary is not None:
            checks.append(self._within(reading.secondary_value, self.secondary))
        return all(checks) if self.combine == "all" else any(checks)


@dataclass(frozen=True)
class CategoryRule:
    name: str
    predicate: Predicate
    rank: int
    catch_all: bool = False

    @classmethod
    def fallback(cls, name: str, rank: int) -> "CategoryRule":
        """Rule that matches every reading."""

        return cls(name=name, predicate=_always, rank=rank, catch_all=True)

    def matches(self, reading: Reading) -> bool:
        return bool(self.predicate(reading))


@dataclass(frozen=True)
class CategorySchema:
    """Ordered, total set of category rules for one metric."""

    rules: tuple[CategoryRule, ...]
    metric: str = ""
    version: str = "1.0.0"
    _ranks: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        rules = tuple(sorted(self.rules, key=lambda rule: rule.rank))
        if not rules:
            raise InvalidConfigurationError(f"Category schema {self.metric!r} has no rules")
        names = [rule.name for rule in rules]
        if len(set(names)) != len(names):
            raise InvalidConfigurationError(f"Category schema {self.metric!r} repeats a category name")
        ranks = [rule.rank for rule in rules]
        if len(set(ranks)) != len(ranks):
            raise InvalidConfigurationError(f"Category schema {self.metric!r} repeats a rank")
        if not any(rule.catch_all for rule in rules):
            raise InvalidConfigurationError(f"Category schema {self.metric!r} must include a catch-all rule")
        if UNKNOWN_CATEGORY in names:
            raise InvalidConfigurationError(f"{UNKNOWN_CATEGORY!r} is reserved for unmatched readings")
        object.__setattr__(self, "rules", rules)
        object.__setattr__(self, "_ranks", {rule.name: rule.rank for rule in rules})

    @property
    def category_names(self) -> tuple[str, ...]:
        return tuple(rule.name for rule in self.rules)

    def rank_of(self, name: str) -> Optional[int]:
        return self._ranks.get(name)

    def categorize(self, reading: Reading) -> str:
        for rule in self.rules:
            if rule.matches(reading):
                return rule.name
        return UNKNOWN_CATEGORY


def categorize(reading: Reading, schema: CategorySchema) -> str:
    """Return the first matching category name in ascending rank order."""

    return schema.categorize(reading)


def _channel_stats(values: pd.Series) -> Optional[ChannelStats]:
    values = values.dropna()
    if values.empty:
        return None
    return ChannelStats(mean=float(values.mean()), min=float(values.min()), max=float(values.max()))


def distribution(readings: Sequence[Reading], schema: CategorySchema) -> CategoryDistribution:
    """Count, share and channel statistics per category.

    Categories without readings are omitted; the result is empty for empty
    input.
    """

    items = readings_tuple(readings)
    if not items:
        return CategoryDistribution()

    frame = pd.DataFrame(
        {
            "category": [schema.categorize(reading) for reading in items],
            "primary": np.array([float(r.primary_value) for r in items], dtype=float),
            "secondary": np.array(
                [np.nan if r.secondary_value is None else float(r.secondary_value) for r in items],
                dtype=float,
            ),
        }
    )
    total = len(frame)
    order = list(schema.category_names) + [UNKNOWN_CATEGORY]
    grouped = {name: rows for name, rows in frame.groupby("category", sort=False)}

    categories: dict[str, CategoryStats] = {}
    for name in order:
        rows = grouped.get(name)
        if rows is None:
            continue
        count = len(rows)
        categories[name] = CategoryStats(
            name=name,
            rank=schema.rank_of(name),
            count=count,
            percentage=count * 100.0 / total,
            primary=ChannelStats(
                mean=float(rows["primary"].mean()),
                min=float(rows["primary"].min()),
                max=float(rows["primary"].max()),
            ),
            secondary=_channel_stats(rows["secondary"]),
        )
    return CategoryDistribution(categories=categories, total=total)


def threshold_load(
    readings: Sequence[Reading],
    primary_threshold: float,
    secondary_threshold: Optional[float] = None,
) -> Optional[ThresholdLoad]:
    """Share of readings at or above each threshold; None for empty input."""

    items = readings_tuple(readings)
    if not items:
        return None

    primary = np.array([float(r.primary_value) for r in items], dtype=float)
    primary_high = primary >= primary_threshold
    total = len(items)

    secondary_count: Optional[int] = None
    secondary_percent: Optional[float] = None
    either_high = primary_high
    if secondary_threshold is not None:
        secondary = np.array(
            [np.nan if r.secondary_value is None else float(r.secondary_value) for r in items],
            dtype=float,
        )
        secondary_high = np.nan_to_num(secondary, nan=-np.inf) >= secondary_threshold
        secondary_count = int(secondary_high.sum())
        secondary_percent = secondary_count * 100.0 / total
        either_high = primary_high | secondary_high

    either_count = int(either_high.sum())
    return ThresholdLoad(
        total=total,
        primary_high_count=int(primary_high.sum()),
        primary_load_percent=int(primary_high.sum()) * 100.0 / total,
        secondary_high_count=secondary_count,
        secondary_load_percent=secondary_percent,
        either_high_count=either_count,
        either_load_percent=either_count * 100.0 / total,
    )


def isolated_primary(
    readings: Iterable[Reading],
    primary_threshold: float,
    secondary_threshold: float,
) -> tuple[Reading, ...]:
    """Paired readings high on the primary channel only (isolated systolic)."""

    return tuple(
        reading
        for reading in readings
        if reading.secondary_value is not None
        and reading.primary_value >= primary_threshold
        and reading.secondary_value < secondary_threshold
    )


def isolated_secondary(
    readings: Iterable[Reading],
    primary_threshold: float,
    secondary_threshold: float,
) -> tuple[Reading, ...]:
    """Paired readings high on the secondary channel only (isolated diastolic)."""

    return tuple(
        reading
        for reading in readings
        if reading.secondary_value is not None
        and reading.primary_value < primary_threshold
        and reading.secondary_value >= secondary_threshold
    )
