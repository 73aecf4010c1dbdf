"""Sleep segmentation: staged sleep intervals → per-night summaries.

A sleep tracker reports a night as a chronological run of intervals, each
labelled with a stage (Awake, Light, Deep, REM).  Segmentation:

  1. drops back-to-back duplicates (same stage, same start and end);
  2. assigns each interval to the night it belongs to: intervals starting
     before the rollover hour (10 AM by default) count toward the previous
     calendar day, so a night that crosses midnight stays in one bucket;
  3. accumulates stage durations, interruptions and the two latency fields
     into one :class:`SleepDay` per night.

An interruption is an Awake interval whose start touches the end of the
previous interval and whose end touches the start of the next one, with
both neighbours asleep.  Adjacency is exact; there is no clock-skew
tolerance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Mapping, Sequence

from healthsnap import timeutil

logger = logging.getLogger(__name__)

# Hour of day (local) before which a sample belongs to the previous night
ROLLOVER_HOUR = 10

# Vendor metadata key carrying the stage label (Withings and others)
STAGE_METADATA_KEY = "Sleep Stage"


class SleepStage(str, Enum):
    """Sleep stage label attached to an interval."""

    NONE = ""
    AWAKE = "Awake"
    LIGHT = "Light"
    DEEP = "Deep"
    REM = "REM"

    @property
    def is_asleep(self) -> bool:
        return self in (SleepStage.LIGHT, SleepStage.DEEP, SleepStage.REM)


# Platform sleep-analysis category codes
_CATEGORY_STAGES = {
    0: SleepStage.NONE,  # in bed
    1: SleepStage.NONE,  # asleep, unspecified
    2: SleepStage.AWAKE,
    3: SleepStage.LIGHT,  # "core" sleep
    4: SleepStage.DEEP,
    5: SleepStage.REM,
}

_LABEL_STAGES = {stage.value.lower(): stage for stage in SleepStage}
_LABEL_STAGES["none"] = SleepStage.NONE


def _category_code(value: Any) -> int:
    # bool is an int subclass but never a category code
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"sleep category code must be an integer, got {value!r}")


def resolve_stage(
    metadata: Mapping[str, Any] | None = None,
    value: int | None = None,
) -> SleepStage:
    """Work out the stage of a raw sleep sample.

    The vendor ``"Sleep Stage"`` metadata string wins when present;
    otherwise the platform category code is used.  Unknown labels and
    codes resolve to :attr:`SleepStage.NONE`.

    Raises:
        ValueError: If *value* is used and is not an integral number.
    """
    label = (metadata or {}).get(STAGE_METADATA_KEY)
    if isinstance(label, str):
        stage = _LABEL_STAGES.get(label.strip().lower())
        if stage is not None:
            return stage
        logger.warning("unknown sleep stage label %r", label)
        return SleepStage.NONE

    if value is not None:
        return _CATEGORY_STAGES.get(_category_code(value), SleepStage.NONE)

    return SleepStage.NONE


@dataclass(frozen=True)
class SleepSample:
    """One staged interval from a sleep tracker."""

    start: datetime
    end: datetime
    stage: SleepStage
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def seconds(self) -> int:
        """Duration in whole seconds, clamped at zero."""
        seconds = timeutil.seconds_between(self.start, self.end)
        if seconds < 0:
            logger.warning(
                "sleep sample ends before it starts (%s → %s); using 0s",
                self.start.isoformat(), self.end.isoformat(),
            )
            return 0
        return seconds

    def same_as(self, other: SleepSample) -> bool:
        """Exact (stage, start, end) equality."""
        return (
            self.stage == other.stage
            and self.start == other.start
            and self.end == other.end
        )


@dataclass
class SleepDay:
    """Accumulated sleep for one night (all counters in seconds)."""

    light_seconds: int = 0
    deep_seconds: int = 0
    rem_seconds: int = 0
    interruption_count: int = 0
    interruption_seconds: int = 0
    time_to_sleep_seconds: int = 0
    time_to_out_of_bed_seconds: int = 0

    @property
    def total_seconds(self) -> int:
        return self.light_seconds + self.deep_seconds + self.rem_seconds

    def add_stage(self, stage: SleepStage, seconds: int) -> None:
        if stage == SleepStage.LIGHT:
            self.light_seconds += seconds
        elif stage == SleepStage.DEEP:
            self.deep_seconds += seconds
        elif stage == SleepStage.REM:
            self.rem_seconds += seconds

    def __repr__(self) -> str:
        return (
            f"SleepDay(total={self.total_seconds}s, "
            f"light={self.light_seconds}s, deep={self.deep_seconds}s, "
            f"rem={self.rem_seconds}s, "
            f"interruptions={self.interruption_count}/{self.interruption_seconds}s)"
        )


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def dedupe(samples: Sequence[SleepSample]) -> list[SleepSample]:
    """Drop samples identical to the one immediately before them.

    Some sources emit the same Awake interval twice in a row; the first
    copy is kept.
    """
    if not samples:
        return []

    deduped = [samples[0]]
    for previous, sample in zip(samples, samples[1:]):
        if not sample.same_as(previous):
            deduped.append(sample)
    return deduped


def day_key(
    start: datetime,
    rollover_hour: int = ROLLOVER_HOUR,
    tz: tzinfo | None = None,
) -> date:
    """The night a sample starting at *start* belongs to."""
    local = timeutil.to_local(start, tz)
    if local.hour < rollover_hour:
        return local.date() - timedelta(days=1)
    return local.date()


def _is_interruption(
    previous: SleepSample | None,
    sample: SleepSample,
    following: SleepSample | None,
) -> bool:
    if previous is None or following is None:
        return False
    if previous.end != sample.start or sample.end != following.start:
        return False
    return previous.stage.is_asleep and following.stage.is_asleep


def segment(
    samples: Sequence[SleepSample],
    *,
    rollover_hour: int = ROLLOVER_HOUR,
    tz: tzinfo | None = None,
) -> dict[date, SleepDay]:
    """Segment chronological sleep samples into nights.

    Args:
        samples: Samples in ascending start order.
        rollover_hour: Local hour before which a sample counts toward the
            previous calendar day.
        tz: Local zone for the day boundary.

    Returns:
        Mapping from night (calendar date) to its :class:`SleepDay`, in the
        order nights were first seen.  Empty input gives an empty mapping.
    """
    sleep_days: dict[date, SleepDay] = {}
    deduped = dedupe(samples)

    # State of the last sample with a known stage
    previous: SleepSample | None = None
    previous_key: date | None = None
    previous_seconds = 0

    for index, sample in enumerate(deduped):
        stage = sample.stage
        if stage == SleepStage.NONE:
            continue

        seconds = sample.seconds
        key = day_key(sample.start, rollover_hour, tz)

        sleep_day = sleep_days.get(key)
        if sleep_day is None:
            # Leaving the previous night: its last asleep interval is the
            # time it took to get out of bed.
            if previous is not None and previous.stage.is_asleep:
                previous_day = sleep_days.get(previous_key)
                if previous_day is not None:
                    previous_day.time_to_out_of_bed_seconds = previous_seconds

            sleep_day = SleepDay()
            sleep_days[key] = sleep_day
            if stage == SleepStage.AWAKE:
                sleep_day.time_to_sleep_seconds = seconds

        if stage == SleepStage.AWAKE:
            following = deduped[index + 1] if index + 1 < len(deduped) else None
            if _is_interruption(previous, sample, following):
                sleep_day.interruption_count += 1
                sleep_day.interruption_seconds += seconds
        else:
            sleep_day.add_stage(stage, seconds)

        previous = sample
        previous_key = key
        previous_seconds = seconds

    return sleep_days
