"""Analytics engine for turning health-store data into chart-ready values.

Modules:
    aggregate -- Bucketed statistics → dated values, zero-filling
    sleep     -- Sleep-stage segmentation into nights
    summary   -- Per-night sleep rows, sleep series, series statistics
    pipeline  -- HealthSnapshotService wiring a data source to the above
                 (import it from healthsnap.analytics.pipeline)
"""

from healthsnap.analytics.aggregate import (
    BucketStatistic,
    DatedValue,
    aggregate,
    densify,
    format_label,
)
from healthsnap.analytics.sleep import (
    SleepDay,
    SleepSample,
    SleepStage,
    day_key,
    dedupe,
    resolve_stage,
    segment,
)
from healthsnap.analytics.summary import (
    SeriesStats,
    SleepMetrics,
    SleepSeries,
    project,
    series_stats,
    sleep_series,
)

__all__ = [
    # aggregate
    "BucketStatistic",
    "DatedValue",
    "aggregate",
    "densify",
    "format_label",
    # sleep
    "SleepDay",
    "SleepSample",
    "SleepStage",
    "day_key",
    "dedupe",
    "resolve_stage",
    "segment",
    # summary
    "SeriesStats",
    "SleepMetrics",
    "SleepSeries",
    "project",
    "series_stats",
    "sleep_series",
]
