"""Metric aggregation: pre-bucketed statistics → dated chart values.

The data source has already collapsed raw samples into fixed-width buckets
(a sum or an average per bucket).  This module turns those buckets into
:class:`DatedValue` points:

  - picks the scalar for the metric's aggregation kind (absent → 0.0)
  - labels each point by day, or by day + hour for finer buckets
  - orders points by timestamp
  - for cumulative metrics, optionally fills missing hours/days with zeros

Zero-filling models sensor dropout as "no activity happened", which is only
meaningful for cumulative quantities such as steps or energy.  Average
metrics (heart rate, body mass) keep their gaps.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, Sequence, Union

import numpy as np

from healthsnap import timeutil
from healthsnap.metrics import (
    REGISTRY,
    AggregationKind,
    Frequency,
    Metric,
    MetricRegistry,
)

logger = logging.getLogger(__name__)

# Bucket widths eligible for zero-filling
DENSIFIABLE = frozenset({Frequency.HOUR, Frequency.DAY})


@dataclass(frozen=True)
class DatedValue:
    """One chart point.

    ``ms`` (epoch milliseconds) is the sort key; ``date`` is a display label
    and may be lossy (hour-level labels for minute buckets).
    """

    date: str
    ms: int
    unit: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        return f"DatedValue({self.date} {self.ms} {self.value} {self.unit})"


@dataclass(frozen=True)
class BucketStatistic:
    """A single bucket as reported by the data source."""

    start: datetime
    sum_quantity: float | None = None
    average_quantity: float | None = None

    def quantity(self, kind: AggregationKind) -> float | None:
        if kind == AggregationKind.SUM:
            return self.sum_quantity
        return self.average_quantity


StatisticLike = Union[BucketStatistic, tuple[datetime, Union[float, None]]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_label(dt: datetime, frequency: Frequency, tz: tzinfo | None = None) -> str:
    """Day label for day/week buckets, day + hour label otherwise."""
    if frequency in (Frequency.DAY, Frequency.WEEK):
        return timeutil.ymd(dt, tz)
    return timeutil.ymdh(dt, tz)


def _resolve(stat: StatisticLike, kind: AggregationKind) -> tuple[datetime, float]:
    if isinstance(stat, BucketStatistic):
        start, quantity = stat.start, stat.quantity(kind)
    else:
        start, quantity = stat
    if quantity is None or math.isnan(quantity):
        return start, 0.0
    return start, float(quantity)


def should_fill_gaps(
    metric: Metric,
    frequency: Frequency,
    fill_gaps: bool | None = None,
) -> bool:
    """Whether zero-filling applies to *metric* at *frequency*.

    *fill_gaps* overrides the metric's configured default, but never turns
    it on for average metrics or for minute/week buckets.
    """
    wanted = metric.fill_gaps if fill_gaps is None else fill_gaps
    return wanted and metric.is_cumulative and frequency in DENSIFIABLE


def _instant(ms: int, tz: tzinfo | None) -> datetime:
    # from_milliseconds drops the sub-second part; filled points keep it
    return timeutil.from_milliseconds(ms, tz) + timedelta(milliseconds=ms % 1000)


def _ordered(values: list[DatedValue], metric_id: str) -> list[DatedValue]:
    """Sort by timestamp and drop repeated bucket timestamps (first wins)."""
    if len(values) < 2:
        return values

    ms = np.fromiter((v.ms for v in values), dtype=np.int64, count=len(values))
    order = np.argsort(ms, kind="stable")
    keep = np.ones(len(order), dtype=bool)
    keep[1:] = np.diff(ms[order]) != 0

    dropped = int(np.sum(~keep))
    if dropped:
        logger.warning(
            "%s: dropped %d bucket(s) with a repeated start time", metric_id, dropped
        )
    return [values[int(i)] for i in order[keep]]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def densify(
    values: Sequence[DatedValue],
    frequency: Frequency,
    tz: tzinfo | None = None,
) -> list[DatedValue]:
    """Insert zero-valued points for every missing hour or day.

    Args:
        values: Timestamp-ascending points.
        frequency: Bucket width of *values*; only HOUR and DAY are filled.
        tz: Zone for calendar-day steps and labels.

    Returns:
        A new list with no gaps between the first and last point.  Already
        dense input comes back unchanged.
    """
    if len(values) < 2 or frequency not in DENSIFIABLE:
        return list(values)

    if frequency == Frequency.HOUR:
        between, step = timeutil.hours_between, timeutil.hours_after
    else:
        between, step = timeutil.days_between, timeutil.days_after

    result: list[DatedValue] = [values[0]]
    for current, following in zip(values, values[1:]):
        current_dt = _instant(current.ms, tz)
        following_dt = _instant(following.ms, tz)
        missing = between(current_dt, following_dt, tz) - 1
        for delta in range(1, missing + 1):
            point = step(current_dt, delta, tz)
            result.append(DatedValue(
                date=format_label(point, frequency, tz),
                ms=timeutil.to_milliseconds(point, tz),
                unit=current.unit,
                value=0.0,
            ))
        result.append(following)

    return result


def aggregate(
    metric_id: str,
    statistics: Iterable[StatisticLike],
    frequency: Frequency | str | None = None,
    fill_gaps: bool | None = None,
    *,
    registry: MetricRegistry = REGISTRY,
    tz: tzinfo | None = None,
) -> list[DatedValue]:
    """Convert bucketed statistics for one metric into chart points.

    Args:
        metric_id: Registry id, e.g. ``"stepCount"``.
        statistics: Buckets from the data source, either
            :class:`BucketStatistic` objects or ``(start, value)`` pairs.
        frequency: Bucket width of *statistics*; defaults to the metric's.
        fill_gaps: Override the metric's zero-fill setting.
        registry: Metric catalogue to resolve *metric_id* against.
        tz: Local zone for labels and calendar days.

    Returns:
        Timestamp-ascending points, one per bucket, carrying the metric unit.

    Raises:
        MetricNotFound: If *metric_id* is not registered.
    """
    metric = registry.lookup(metric_id)
    freq = Frequency(frequency) if frequency is not None else metric.frequency

    values: list[DatedValue] = []
    for stat in statistics:
        start, quantity = _resolve(stat, metric.aggregation)
        values.append(DatedValue(
            date=format_label(start, freq, tz),
            ms=timeutil.to_milliseconds(start, tz),
            unit=metric.unit,
            value=quantity,
        ))

    values = _ordered(values, metric_id)

    if should_fill_gaps(metric, freq, fill_gaps):
        values = densify(values, freq, tz)

    return values
