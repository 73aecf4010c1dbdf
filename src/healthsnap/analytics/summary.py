"""Per-night sleep summaries and chart-series statistics.

Pulls the segmenter's :class:`SleepDay` map into JSON-friendly
:class:`SleepMetrics` rows and the three sleep chart series, and computes
the min/max/mean figures a chart needs to size its y-axis.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import date, tzinfo
from typing import Any, Mapping, Sequence

import numpy as np

from healthsnap import timeutil
from healthsnap.analytics.aggregate import DatedValue
from healthsnap.analytics.sleep import SleepDay
from healthsnap.metrics import PERCENT_UNIT

SECONDS_PER_HOUR = 3600.0

# Minimum relative spread before a chart may start its y-axis at the minimum
MIN_SCALE_SPREAD = 0.1


@dataclass
class SleepMetrics:
    """One night's sleep summary."""

    ymd: str  # night, e.g. "2024-03-04"
    duration: float  # hours asleep
    interruption_count: int
    interruption_seconds: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"SleepMetrics({self.ymd}: {self.duration:.2f}h, "
            f"interruptions={self.interruption_count}/{self.interruption_seconds}s)"
        )


def project(sleep_days: Mapping[date, SleepDay]) -> list[SleepMetrics]:
    """Flatten a night → :class:`SleepDay` map into rows, oldest night first."""
    return [
        SleepMetrics(
            ymd=night.isoformat(),
            duration=sleep_days[night].total_seconds / SECONDS_PER_HOUR,
            interruption_count=sleep_days[night].interruption_count,
            interruption_seconds=sleep_days[night].interruption_seconds,
        )
        for night in sorted(sleep_days)
    ]


@dataclass
class SleepSeries:
    """The three sleep chart series, one point per night."""

    duration: list[DatedValue] = field(default_factory=list)
    interruption_count: list[DatedValue] = field(default_factory=list)
    interruption_minutes: list[DatedValue] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "duration": [v.to_dict() for v in self.duration],
            "interruption_count": [v.to_dict() for v in self.interruption_count],
            "interruption_minutes": [v.to_dict() for v in self.interruption_minutes],
        }


def sleep_series(
    sleep_days: Mapping[date, SleepDay],
    tz: tzinfo | None = None,
) -> SleepSeries:
    """Build sleep duration (hours) and interruption count/minutes series."""
    series = SleepSeries()
    for night in sorted(sleep_days):
        sleep_day = sleep_days[night]
        midnight = timeutil.at_midnight(night, tz)
        label = timeutil.ymdhms(midnight, tz)
        ms = timeutil.to_milliseconds(midnight, tz)

        series.duration.append(DatedValue(
            date=label, ms=ms, unit="hour",
            value=sleep_day.total_seconds / SECONDS_PER_HOUR,
        ))
        series.interruption_count.append(DatedValue(
            date=label, ms=ms, unit="count",
            value=float(sleep_day.interruption_count),
        ))
        series.interruption_minutes.append(DatedValue(
            date=label, ms=ms, unit="min",
            value=sleep_day.interruption_seconds / 60.0,
        ))
    return series


# ---------------------------------------------------------------------------
# Series statistics
# ---------------------------------------------------------------------------


@dataclass
class SeriesStats:
    """Summary figures for one chart series."""

    count: int
    min: float
    max: float
    mean: float
    can_scale_y_axis: bool

    def __repr__(self) -> str:
        return (
            f"SeriesStats(n={self.count}, min={self.min:.2f}, "
            f"max={self.max:.2f}, mean={self.mean:.2f})"
        )


def series_stats(values: Sequence[DatedValue]) -> SeriesStats:
    """Min, max and mean of a series, plus whether the y-axis can be tightened.

    A chart may start its y-axis at the series minimum only when the values
    are not percentages and spread at least 10% relative to a positive
    minimum; otherwise the axis starts at zero.
    """
    if len(values) == 0:
        return SeriesStats(count=0, min=0.0, max=0.0, mean=0.0, can_scale_y_axis=False)

    arr = np.asarray([v.value for v in values], dtype=np.float64)
    lo = float(np.min(arr))
    hi = float(np.max(arr))

    scalable = (
        values[0].unit != PERCENT_UNIT
        and lo > 0
        and (hi - lo) / lo >= MIN_SCALE_SPREAD
    )

    return SeriesStats(
        count=len(arr),
        min=lo,
        max=hi,
        mean=round(float(np.mean(arr)), 4),
        can_scale_y_axis=scalable,
    )
