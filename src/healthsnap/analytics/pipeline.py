"""Analytics service: wire a data source into the aggregation and sleep code.

:class:`HealthSnapshotService` is the single entry point an application
uses.  It owns no mutable state between calls: each method queries the
injected :class:`~healthsnap.source.DataSource`, runs the pure analytics
functions and returns plain values.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone, tzinfo
from enum import Enum

from healthsnap import timeutil
from healthsnap.analytics.aggregate import DatedValue, aggregate
from healthsnap.analytics.sleep import SleepDay, segment
from healthsnap.analytics.summary import SleepMetrics, SleepSeries, project, sleep_series
from healthsnap.config import Settings, get_settings
from healthsnap.metrics import REGISTRY, Frequency, MetricRegistry
from healthsnap.source import DataSource, StatisticsRequest

logger = logging.getLogger(__name__)


class TimeSpan(str, Enum):
    """Chart time spans and the bucket width each one uses."""

    DAY = "1 Day"
    WEEK = "1 Week"
    MONTH = "1 Month"


def time_span_window(
    span: TimeSpan | str,
    now: datetime,
    tz: tzinfo | None = None,
) -> tuple[datetime, Frequency]:
    """Start date and bucket width for a chart time span.

    1 Day → hourly from yesterday's midnight; 1 Week → daily from seven days
    ago; 1 Month → daily from one month ago.  All starts are local midnight.
    """
    span = TimeSpan(span)
    today = timeutil.start_of_day(now, tz)
    if span == TimeSpan.DAY:
        return timeutil.yesterday(today, tz), Frequency.HOUR
    if span == TimeSpan.WEEK:
        return timeutil.days_before(today, 7, tz), Frequency.DAY
    return timeutil.months_before(today, 1, tz), Frequency.DAY


class HealthSnapshotService:
    """Query-and-transform facade over a :class:`DataSource`.

    Args:
        source: Where statistics and sleep samples come from.
        registry: Metric catalogue (defaults to the built-in one).
        settings: Time zone, sleep rollover hour and default window.
    """

    def __init__(
        self,
        source: DataSource,
        registry: MetricRegistry = REGISTRY,
        settings: Settings | None = None,
    ) -> None:
        self.source = source
        self.registry = registry
        self.settings = settings if settings is not None else get_settings()

    @property
    def tz(self) -> tzinfo:
        return self.settings.tzinfo

    def _now(self, now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(timezone.utc).astimezone(self.tz)
        return timeutil.to_local(now, self.tz)

    def _window(
        self,
        start: datetime | None,
        end: datetime | None,
    ) -> tuple[datetime, datetime]:
        end = self._now(end)
        if start is None:
            start = timeutil.days_before(end, self.settings.default_window_days, self.tz)
        return timeutil.to_local(start, self.tz), end

    # -- quantity metrics --------------------------------------------------

    def metric_series(
        self,
        metric_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        frequency: Frequency | str | None = None,
        fill_gaps: bool | None = None,
    ) -> list[DatedValue]:
        """Chart points for *metric_id* over ``[start, end)``.

        *end* defaults to now and *start* to ``default_window_days`` before
        *end*.  *frequency* defaults to the metric's own bucket width.

        Raises:
            MetricNotFound: If *metric_id* is not registered.
        """
        metric = self.registry.lookup(metric_id)
        freq = Frequency(frequency) if frequency is not None else metric.frequency
        start, end = self._window(start, end)

        request = StatisticsRequest(
            metric_id=metric.id,
            start=start,
            end=end,
            frequency=freq,
            aggregation=metric.aggregation,
        )
        statistics = self.source.query_statistics(request)
        logger.debug("%s: %d bucket(s) from source", metric_id, len(statistics))

        return aggregate(
            metric_id,
            statistics,
            frequency=freq,
            fill_gaps=fill_gaps,
            registry=self.registry,
            tz=self.tz,
        )

    def metric_series_for_span(
        self,
        metric_id: str,
        span: TimeSpan | str,
        now: datetime | None = None,
    ) -> list[DatedValue]:
        """Chart points for a picker time span ending now."""
        now = self._now(now)
        start, frequency = time_span_window(span, now, self.tz)
        return self.metric_series(metric_id, start=start, end=now, frequency=frequency)

    def quantity_today(self, metric_id: str, now: datetime | None = None) -> float:
        """Today's value for *metric_id* (one day bucket since local midnight)."""
        now = self._now(now)
        values = self.metric_series(
            metric_id,
            start=timeutil.start_of_day(now, self.tz),
            end=now,
            frequency=Frequency.DAY,
            fill_gaps=False,
        )
        return values[0].value if values else 0.0

    def snapshot(self, now: datetime | None = None) -> dict[str, float]:
        """Today's steps and walking/running distance."""
        return {
            "stepCount": self.quantity_today("stepCount", now),
            "distanceWalkingRunning": self.quantity_today("distanceWalkingRunning", now),
        }

    # -- sleep -------------------------------------------------------------

    def sleep_days(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[date, SleepDay]:
        start, end = self._window(start, end)
        samples = self.source.query_sleep_samples(start, end)
        logger.debug("sleep: %d sample(s) from source", len(samples))
        return segment(
            samples,
            rollover_hour=self.settings.sleep_rollover_hour,
            tz=self.tz,
        )

    def sleep_metrics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[SleepMetrics]:
        """Per-night sleep summaries, oldest first."""
        return project(self.sleep_days(start, end))

    def sleep_series(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> SleepSeries:
        """Sleep duration and interruption chart series."""
        return sleep_series(self.sleep_days(start, end), tz=self.tz)
