"""Data sources: where bucketed statistics and sleep samples come from.

The analytics core never talks to a health store directly.  It asks a
:class:`DataSource` for

  - bucketed statistics for one metric over ``[start, end)`` at a given
    bucket width, and
  - the chronological sleep samples starting in ``[start, end)``.

Two implementations live here: :class:`InMemorySource`, which hands back
pre-fetched batches (used by tests and embedding applications), and
:class:`JsonExportSource`, which reads a health export file and does the
bucketing itself.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

import numpy as np

from healthsnap import timeutil
from healthsnap.analytics.aggregate import BucketStatistic
from healthsnap.analytics.sleep import STAGE_METADATA_KEY, SleepSample, resolve_stage
from healthsnap.metrics import AggregationKind, Frequency

logger = logging.getLogger(__name__)


class ExportFormatError(ValueError):
    """Raised when an export file does not have the expected shape."""


@dataclass(frozen=True)
class StatisticsRequest:
    """A bucketed-statistics query for one metric."""

    metric_id: str
    start: datetime
    end: datetime
    frequency: Frequency
    aggregation: AggregationKind


class DataSource(Protocol):
    """Anything that can answer statistics and sleep queries."""

    def query_statistics(self, request: StatisticsRequest) -> list[BucketStatistic]:
        ...

    def query_sleep_samples(self, start: datetime, end: datetime) -> list[SleepSample]:
        ...


def _within(dt: datetime, start: datetime, end: datetime, tz: tzinfo | None) -> bool:
    local = timeutil.to_local(dt, tz)
    return timeutil.to_local(start, tz) <= local < timeutil.to_local(end, tz)


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------


class InMemorySource:
    """Serves pre-fetched batches.

    Statistics are assumed to already be at whatever bucket width the caller
    asks for; only the time window is applied.  Every request is recorded in
    :attr:`requests`.
    """

    def __init__(
        self,
        statistics: Mapping[str, Sequence[BucketStatistic]] | None = None,
        sleep_samples: Sequence[SleepSample] | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.statistics = {k: list(v) for k, v in (statistics or {}).items()}
        self.sleep_samples = list(sleep_samples or [])
        self.tz = tz
        self.requests: list[StatisticsRequest] = []

    def query_statistics(self, request: StatisticsRequest) -> list[BucketStatistic]:
        self.requests.append(request)
        return [
            stat for stat in self.statistics.get(request.metric_id, [])
            if _within(stat.start, request.start, request.end, self.tz)
        ]

    def query_sleep_samples(self, start: datetime, end: datetime) -> list[SleepSample]:
        return [s for s in self.sleep_samples if _within(s.start, start, end, self.tz)]


# ---------------------------------------------------------------------------
# JSON export source
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuantitySample:
    """A raw (unbucketed) quantity reading from an export.

    Readings are bucketed by start time, so the end time is not kept.
    """

    start: datetime
    value: float


def parse_instant(text: Any, tz: tzinfo | None = None) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as local time."""
    if not isinstance(text, str):
        raise ExportFormatError(f"expected an ISO timestamp, got {text!r}")
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ExportFormatError(f"invalid timestamp {text!r}") from exc
    return timeutil.to_local(dt, tz)


def bucket_start(dt: datetime, frequency: Frequency, tz: tzinfo | None = None) -> datetime:
    """Start of the calendar-aligned bucket containing *dt*.

    Week buckets are anchored on Monday midnight.
    """
    local = timeutil.to_local(dt, tz)
    if frequency == Frequency.MINUTE:
        return local.replace(second=0, microsecond=0)
    if frequency == Frequency.HOUR:
        return local.replace(minute=0, second=0, microsecond=0)
    if frequency == Frequency.DAY:
        return timeutil.start_of_day(local, tz)
    return timeutil.monday_at_midnight(local, tz)


def bucket_samples(
    samples: Sequence[QuantitySample],
    frequency: Frequency,
    tz: tzinfo | None = None,
) -> list[BucketStatistic]:
    """Collapse raw readings into per-bucket sums and averages.

    Each reading is attributed to the bucket containing its start time.
    Buckets with no readings are omitted, as a health store would.
    """
    if len(samples) == 0:
        return []

    starts = [bucket_start(s.start, frequency, tz) for s in samples]
    ms = np.asarray([timeutil.to_milliseconds(b) for b in starts], dtype=np.int64)
    values = np.asarray([s.value for s in samples], dtype=np.float64)

    keys, first_index, inverse = np.unique(ms, return_index=True, return_inverse=True)
    sums = np.bincount(inverse, weights=values, minlength=len(keys))
    counts = np.bincount(inverse, minlength=len(keys))

    return [
        BucketStatistic(
            start=starts[int(first_index[i])],
            sum_quantity=float(sums[i]),
            average_quantity=float(sums[i] / counts[i]),
        )
        for i in range(len(keys))
    ]


class JsonExportSource:
    """Reads a health export of the form::

        {
          "quantities": {
            "stepCount": [{"start": "...", "end": "...", "value": 120}, ...]
          },
          "sleep": [
            {"start": "...", "end": "...", "stage": "Light"},
            {"start": "...", "end": "...", "value": 2},
            ...
          ]
        }

    Quantity readings are bucketed by ``start``; ``end`` may be present but
    is ignored.  Sleep entries carry either a ``stage`` label, a platform
    category ``value`` code, or a ``metadata`` mapping with a
    ``"Sleep Stage"`` key.
    """

    def __init__(self, payload: Mapping[str, Any], tz: tzinfo | None = None) -> None:
        if not isinstance(payload, Mapping):
            raise ExportFormatError("export must be a JSON object")
        self.tz = tz
        self.quantities = self._parse_quantities(payload.get("quantities", {}))
        self.sleep_samples = self._parse_sleep(payload.get("sleep", []))

    @classmethod
    def from_file(cls, path: str | Path, tz: tzinfo | None = None) -> JsonExportSource:
        path = Path(path)
        try:
            with open(path) as f:
                payload = json.load(f)
        except json.JSONDecodeError as exc:
            raise ExportFormatError(f"{path.name}: invalid JSON ({exc})") from exc
        return cls(payload, tz=tz)

    # -- parsing -----------------------------------------------------------

    def _parse_quantities(self, raw: Any) -> dict[str, list[QuantitySample]]:
        if not isinstance(raw, Mapping):
            raise ExportFormatError("'quantities' must be an object keyed by metric id")
        quantities: dict[str, list[QuantitySample]] = {}
        for metric_id, entries in raw.items():
            if not isinstance(entries, list):
                raise ExportFormatError(
                    f"{metric_id}: expected a list of readings, got {entries!r}"
                )
            samples = []
            for entry in entries:
                try:
                    value = float(entry["value"])
                    start = parse_instant(entry["start"], self.tz)
                except (KeyError, TypeError, ValueError) as exc:
                    raise ExportFormatError(f"{metric_id}: malformed entry {entry!r}") from exc
                samples.append(QuantitySample(start=start, value=value))
            quantities[metric_id] = samples
        return quantities

    def _parse_sleep(self, raw: Any) -> list[SleepSample]:
        if not isinstance(raw, list):
            raise ExportFormatError("'sleep' must be a list")
        samples = []
        for entry in raw:
            try:
                metadata = dict(entry.get("metadata") or {})
                if "stage" in entry:
                    metadata[STAGE_METADATA_KEY] = entry["stage"]
                stage = resolve_stage(metadata, entry.get("value"))
                start = parse_instant(entry["start"], self.tz)
                end = parse_instant(entry["end"], self.tz)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise ExportFormatError(f"malformed sleep entry {entry!r}") from exc
            samples.append(SleepSample(start=start, end=end, stage=stage, metadata=metadata))
        # Segmentation needs ascending start order
        samples.sort(key=lambda s: s.start)
        return samples

    # -- DataSource --------------------------------------------------------

    def query_statistics(self, request: StatisticsRequest) -> list[BucketStatistic]:
        samples = [
            s for s in self.quantities.get(request.metric_id, [])
            if _within(s.start, request.start, request.end, self.tz)
        ]
        logger.debug(
            "%s: %d sample(s) in window, bucketing by %s",
            request.metric_id, len(samples), request.frequency.value,
        )
        return bucket_samples(samples, request.frequency, self.tz)

    def query_sleep_samples(self, start: datetime, end: datetime) -> list[SleepSample]:
        return [s for s in self.sleep_samples if _within(s.start, start, end, self.tz)]
