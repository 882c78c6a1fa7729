"""Partition reading sequences into calendar or anchored windows."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Sequence, Union

import pandas as pd

from .models import InvalidConfigurationError, Reading, Window
from .readings import PreparedReadings, prepare_readings

logger = logging.getLogger(__name__)

BEFORE = "before"
AFTER = "after"


class Granularity(str, Enum):
    """Calendar bucketing schemes.

    Day-of-week keys use Sunday = 0 ... Saturday = 6. Weeks start on Monday.

    Week labels are ``%Y-%W`` of the week's Monday, so a week that straddles
    New Year keeps the old year: 2025-01-01 falls in "2024-53". This differs
    from SQLite's ``strftime('%Y-%W')`` of the reading itself, which gives
    "2025-00" for that date.
    """

    HOUR_OF_DAY = "hour_of_day"
    DAY = "day"
    DAY_OF_WEEK = "day_of_week"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class BeforeAfter:
    """Windows anchored to a recurring clock time on each calendar day."""

    anchor_time: time
    before_span: timedelta
    after_span: timedelta

    def __post_init__(self) -> None:
        if self.before_span <= timedelta(0):
            raise InvalidConfigurationError("before_span must be positive")
        if self.after_span <= timedelta(0):
            raise InvalidConfigurationError("after_span must be positive")

    def anchor_on(self, day: date) -> datetime:
        return datetime.combine(day, self.anchor_time)

    def bounds(self, day: date) -> tuple[tuple[datetime, datetime], tuple[datetime, datetime]]:
        """Return ``(before_start, anchor), (anchor, after_end)`` for ``day``."""

        anchor = self.anchor_on(day)
        return (anchor - self.before_span, anchor), (anchor, anchor + self.after_span)


@dataclass(frozen=True)
class AnchoredDay:
    day: date
    before: Window
    after: Window


GranularitySpec = Union[Granularity, BeforeAfter, str]


def partition(
    readings: Sequence[Reading],
    granularity: GranularitySpec,
    *,
    local_timezone: str | None = None,
) -> list[Window]:
    """Split ``readings`` into windows ordered by their natural key.

    Empty input yields an empty list. Calendar windows never overlap;
    ``BeforeAfter`` yields a before and an after window for every day on which
    either of them holds a reading.
    """

    prepared = prepare_readings(readings, local_timezone)
    if prepared.empty:
        return []

    if isinstance(granularity, BeforeAfter):
        windows: list[Window] = []
        for anchored in anchored_days(prepared, granularity):
            windows.append(anchored.before)
            windows.append(anchored.after)
        return windows

    scheme = Granularity(granularity)
    frame = prepared.frame
    keys = _calendar_keys(frame, scheme)
    windows = [
        _calendar_window(scheme, key, rows, prepared)
        for key, rows in frame.groupby(keys, sort=True)
    ]
    logger.debug("Partitioned %d readings into %d %s windows", len(frame), len(windows), scheme.value)
    return windows


def anchored_days(prepared: PreparedReadings, spec: BeforeAfter) -> list[AnchoredDay]:
    """Return before/after windows per anchor day, skipping days with no data."""

    frame = prepared.frame
    if frame.empty:
        return []

    local = frame["local_time"]
    first_day = (local.min() - spec.after_span).date()
    last_day = (local.max() + spec.before_span).date()

    results: list[AnchoredDay] = []
    day = first_day
    while day <= last_day:
        (before_start, anchor), (_, after_end) = spec.bounds(day)
        before_rows = frame.loc[(local >= before_start) & (local < anchor)]
        after_rows = frame.loc[(local >= anchor) & (local < after_end)]
        if not before_rows.empty or not after_rows.empty:
            results.append(
                AnchoredDay(
                    day=day,
                    before=Window(
                        label=f"{day.isoformat()}/{BEFORE}",
                        start=before_start,
                        end=anchor,
                        readings=prepared.select(before_rows),
                        key=(day, 0),
                    ),
                    after=Window(
                        label=f"{day.isoformat()}/{AFTER}",
                        start=anchor,
                        end=after_end,
                        readings=prepared.select(after_rows),
                        key=(day, 1),
                    ),
                )
            )
        day += timedelta(days=1)
    return results


def _calendar_keys(frame: pd.DataFrame, scheme: Granularity) -> pd.Series:
    local = frame["local_time"]
    if scheme is Granularity.HOUR_OF_DAY:
        return local.dt.hour
    if scheme is Granularity.DAY:
        return frame["local_date"]
    if scheme is Granularity.DAY_OF_WEEK:
        # pandas uses Monday = 0; shift to Sunday = 0
        return (local.dt.dayofweek + 1) % 7
    midnight = local.dt.normalize()
    if scheme is Granularity.WEEK:
        return (midnight - pd.to_timedelta(local.dt.dayofweek, unit="D")).dt.date
    return (midnight - pd.to_timedelta(local.dt.day - 1, unit="D")).dt.date


def _calendar_window(
    scheme: Granularity,
    key: object,
    rows: pd.DataFrame,
    prepared: PreparedReadings,
) -> Window:
    members = prepared.select(rows)
    if scheme in (Granularity.HOUR_OF_DAY, Granularity.DAY_OF_WEEK):
        value = int(key)
        label = f"{value:02d}" if scheme is Granularity.HOUR_OF_DAY else str(value)
        return Window(
            label=label,
            start=rows["local_time"].min().to_pydatetime(),
            end=rows["local_time"].max().to_pydatetime(),
            readings=members,
            key=value,
        )

    first_day: date = key  # type: ignore[assignment]
    start = datetime.combine(first_day, time.min)
    if scheme is Granularity.DAY:
        return Window(first_day.isoformat(), start, start + timedelta(days=1), members, first_day)
    if scheme is Granularity.WEEK:
        return Window(first_day.strftime("%Y-%W"), start, start + timedelta(days=7), members, first_day)

    next_month = date(first_day.year + first_day.month // 12, first_day.month % 12 + 1, 1)
    return Window(
        f"{first_day.year:04d}-{first_day.month:02d}",
        start,
        datetime.combine(next_month, time.min),
        members,
        first_day,
    )
