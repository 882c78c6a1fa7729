"""Before/after comparisons around a recurring medication time."""
from __future__ import annotations

from datetime import date, time, timedelta
from typing import Optional, Sequence

import numpy as np

from .aggregator import channel_means
from .models import DateRange, MedicationEffect, Reading
from .partition import AnchoredDay, BeforeAfter, anchored_days
from .readings import prepare_readings


def _effect(
    day: Optional[date],
    before: Sequence[Reading],
    after: Sequence[Reading],
) -> Optional[MedicationEffect]:
    if not before or not after:
        return None
    before_mean, secondary_before = channel_means(before)
    after_mean, secondary_after = channel_means(after)
    secondary_reduction: Optional[float] = None
    if secondary_before is not None and secondary_after is not None:
        secondary_reduction = secondary_before - secondary_after
    return MedicationEffect(
        date=day,
        before_mean=before_mean,
        after_mean=after_mean,
        reduction=before_mean - after_mean,
        sample_size_before=len(before),
        sample_size_after=len(after),
        secondary_before_mean=secondary_before,
        secondary_after_mean=secondary_after,
        secondary_reduction=secondary_reduction,
    )


def _paired_days(
    readings: Sequence[Reading],
    anchor_time: time,
    before_span: timedelta,
    after_span: timedelta,
    date_range: Optional[DateRange],
    local_timezone: str | None,
) -> list[AnchoredDay]:
    spec = BeforeAfter(anchor_time, before_span, after_span)
    days = anchored_days(prepare_readings(readings, local_timezone), spec)
    return [
        anchored
        for anchored in days
        if anchored.before.readings
        and anchored.after.readings
        and (date_range is None or anchored.day in date_range)
    ]


def medication_effect(
    readings: Sequence[Reading],
    anchor_time: time,
    before_span: timedelta,
    after_span: timedelta,
    date_range: Optional[DateRange] = None,
    *,
    local_timezone: str | None = None,
) -> list[MedicationEffect]:
    """One effect per anchor day on which both windows hold readings.

    Before is ``[anchor - before_span, anchor)`` and after is
    ``[anchor, anchor + after_span)`` on each day. ``reduction`` is positive
    when the metric decreased after the anchor.
    """

    effects: list[MedicationEffect] = []
    for anchored in _paired_days(readings, anchor_time, before_span, after_span, date_range, local_timezone):
        effect = _effect(anchored.day, anchored.before.readings, anchored.after.readings)
        if effect is not None:
            effects.append(effect)
    return effects


def aggregate_effect(
    readings: Sequence[Reading],
    anchor_time: time,
    before_span: timedelta,
    after_span: timedelta,
    date_range: Optional[DateRange] = None,
    *,
    local_timezone: str | None = None,
) -> Optional[MedicationEffect]:
    """Pool before and after readings of every contributing day.

    Days with an empty before or after window are left out, as in
    ``medication_effect``. Returns None when no day contributes.
    """

    paired = _paired_days(readings, anchor_time, before_span, after_span, date_range, local_timezone)
    before = [reading for anchored in paired for reading in anchored.before.readings]
    after = [reading for anchored in paired for reading in anchored.after.readings]
    return _effect(None, before, after)


def effect_trend(effects: Sequence[MedicationEffect]) -> Optional[float]:
    """Least-squares slope of the daily primary reduction, per day.

    Positive means the effect grows over time. None with fewer than two days.
    """

    dated = [effect for effect in effects if effect.date is not None]
    if len(dated) < 2:
        return None
    origin = min(effect.date for effect in dated)
    x = np.array([(effect.date - origin).days for effect in dated], dtype=float)
    y = np.array([effect.reduction for effect in dated], dtype=float)
    if x.max() == x.min():
        return None
    slope = np.polyfit(x, y, 1)[0]
    return float(slope)
