"""Shared reading preparation and time-of-day utilities."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo

from .models import InvalidConfigurationError, Reading, readings_tuple

_COLUMNS = ["position", "local_time", "local_date", "primary", "secondary"]


@dataclass(frozen=True)
class PreparedReadings:
    """Readings normalized into a frame keyed by their original position."""

    frame: pd.DataFrame
    readings: tuple[Reading, ...]
    timezone: str | None = None

    @property
    def empty(self) -> bool:
        return self.frame.empty

    def select(self, rows: pd.DataFrame) -> tuple[Reading, ...]:
        """Map a slice of ``frame`` back to the original Reading objects."""

        return tuple(self.readings[int(pos)] for pos in rows["position"])


@dataclass(frozen=True)
class TimeOfDayWindow:
    """Clock-time window ``[start, end)``; wraps midnight when start > end."""

    label: str
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start == self.end:
            raise InvalidConfigurationError(
                f"Time-of-day window {self.label!r} has zero length ({self.start.isoformat()})"
            )

    @property
    def wraps_midnight(self) -> bool:
        return self.start > self.end

    def contains(self, moment: time) -> bool:
        if self.wraps_midnight:
            return moment >= self.start or moment < self.end
        return self.start <= moment < self.end

    def overlaps(self, other: "TimeOfDayWindow") -> bool:
        # two arcs on the clock intersect iff one holds the start of the other
        return self.contains(other.start) or other.contains(self.start)


def _since_midnight(value: time) -> pd.Timedelta:
    return pd.Timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


def _local_times(stamps: Sequence[datetime], local_timezone: str | None) -> pd.DatetimeIndex:
    """Project timestamps onto naive local wall-clock time."""

    aware = [ts.tzinfo is not None and ts.utcoffset() is not None for ts in stamps]
    if any(aware) and not all(aware):
        raise ValueError("Readings mix timezone-aware and naive timestamps")
    if not all(aware):
        return pd.DatetimeIndex(pd.to_datetime(list(stamps)))
    if local_timezone is None:
        # keep each reading's own wall-clock time
        return pd.DatetimeIndex(pd.to_datetime([ts.replace(tzinfo=None) for ts in stamps]))
    converted = pd.DatetimeIndex(pd.to_datetime(list(stamps), utc=True))
    return converted.tz_convert(ZoneInfo(local_timezone)).tz_localize(None)


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "position": pd.Series(dtype="int64"),
            "local_time": pd.Series(dtype="datetime64[ns]"),
            "local_date": pd.Series(dtype="object"),
            "primary": pd.Series(dtype="float64"),
            "secondary": pd.Series(dtype="float64"),
        },
        columns=_COLUMNS,
    )


def prepare_readings(
    readings: Sequence[Reading],
    local_timezone: str | None = None,
) -> PreparedReadings:
    """Return a normalized dataframe for window and channel computations.

    Timezone-aware timestamps are converted to ``local_timezone`` when given;
    naive timestamps are taken as local wall-clock time already.
    """

    items = readings_tuple(readings)
    if not items:
        return PreparedReadings(_empty_frame(), items, local_timezone)

    local = _local_times([r.timestamp for r in items], local_timezone)
    frame = pd.DataFrame(
        {
            "position": np.arange(len(items), dtype="int64"),
            "local_time": local.to_numpy(),
            "primary": np.array([float(r.primary_value) for r in items], dtype=float),
            "secondary": np.array(
                [np.nan if r.secondary_value is None else float(r.secondary_value) for r in items],
                dtype=float,
            ),
        }
    )
    frame["local_date"] = frame["local_time"].dt.date
    return PreparedReadings(frame[_COLUMNS], items, local_timezone)


def filter_time_window(prepared: PreparedReadings, window: TimeOfDayWindow) -> pd.DataFrame:
    """Slice the prepared frame to a local time-of-day window.

    The end bound is exclusive. When the window wraps past midnight, entries at
    or after ``start`` or before ``end`` are included.
    """

    frame = prepared.frame
    if frame.empty:
        return frame

    offset = frame["local_time"] - frame["local_time"].dt.normalize()
    start = _since_midnight(window.start)
    end = _since_midnight(window.end)
    if window.wraps_midnight:
        mask = (offset >= start) | (offset < end)
    else:
        mask = (offset >= start) & (offset < end)
    return frame.loc[mask]


def filter_time_of_day(
    readings: Sequence[Reading],
    window: TimeOfDayWindow,
    *,
    local_timezone: str | None = None,
) -> tuple[Reading, ...]:
    """Return the readings whose local clock time falls inside ``window``."""

    prepared = prepare_readings(readings, local_timezone)
    return prepared.select(filter_time_window(prepared, window))


def derive_channel(
    readings: Sequence[Reading],
    combine: Callable[[float, float], Optional[float]],
) -> tuple[Reading, ...]:
    """Build single-channel readings from the paired channels of ``readings``.

    Unpaired readings are skipped, as are readings where ``combine`` yields None.
    """

    derived: list[Reading] = []
    for reading in readings_tuple(readings):
        if reading.secondary_value is None:
            continue
        value = combine(float(reading.primary_value), float(reading.secondary_value))
        if value is None:
            continue
        derived.append(Reading(timestamp=reading.timestamp, primary_value=value, tags=reading.tags))
    return tuple(derived)


def pulse_pressure(readings: Sequence[Reading]) -> tuple[Reading, ...]:
    """Primary minus secondary channel (systolic - diastolic)."""

    return derive_channel(readings, lambda primary, secondary: primary - secondary)


def pair_metrics(
    readings_a: Sequence[Reading],
    readings_b: Sequence[Reading],
    tolerance: timedelta = timedelta(minutes=5),
) -> tuple[Reading, ...]:
    """Align two metric series by nearest timestamp.

    Each reading of ``readings_a`` is paired with the nearest reading of
    ``readings_b`` within ``tolerance``. The result carries ``a`` as the primary
    channel and ``b`` as the secondary channel, in ``a``'s timestamp order.
    """

    left_items = readings_tuple(readings_a)
    right_items = readings_tuple(readings_b)
    if not left_items or not right_items:
        return ()

    left = pd.DataFrame(
        {
            "timestamp": _instants([r.timestamp for r in left_items]),
            "a_position": np.arange(len(left_items), dtype="int64"),
        }
    )
    right = pd.DataFrame(
        {
            "timestamp": _instants([r.timestamp for r in right_items]),
            "b_value": np.array([float(r.primary_value) for r in right_items], dtype=float),
        }
    )
    if (left["timestamp"].dt.tz is None) != (right["timestamp"].dt.tz is None):
        raise ValueError("Cannot pair naive timestamps with timezone-aware timestamps")

    merged = pd.merge_asof(
        left.sort_values("timestamp", kind="mergesort"),
        right.sort_values("timestamp", kind="mergesort"),
        on="timestamp",
        direction="nearest",
        tolerance=pd.Timedelta(tolerance),
    )
    merged = merged.dropna(subset=["b_value"]).sort_values("a_position", kind="mergesort")

    paired: list[Reading] = []
    for position, b_value in zip(merged["a_position"], merged["b_value"]):
        source = left_items[int(position)]
        paired.append(
            Reading(
                timestamp=source.timestamp,
                primary_value=float(source.primary_value),
                secondary_value=float(b_value),
                tags=source.tags,
            )
        )
    return tuple(paired)


def _instants(stamps: Sequence[datetime]) -> pd.Series:
    aware = [ts.tzinfo is not None and ts.utcoffset() is not None for ts in stamps]
    if any(aware) and not all(aware):
        raise ValueError("Readings mix timezone-aware and naive timestamps")
    return pd.Series(pd.to_datetime(list(stamps), utc=all(aware)))
