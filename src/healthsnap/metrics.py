"""Metric registry: the static catalogue of supported quantity metrics.

Each entry records the unit values are reported in, how the data source
should aggregate a bucket (cumulative sum or discrete average), the default
bucket width, whether a lower value is the better outcome, and whether
missing buckets should be filled with zeros.

The catalogue is a plain table of records, loaded once into a read-only
:class:`MetricRegistry`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Iterable, Iterator


class AggregationKind(str, Enum):
    """How a data source collapses samples inside one bucket."""

    SUM = "sum"
    AVERAGE = "average"


class Frequency(str, Enum):
    """Bucket width for a statistics query."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"

    @property
    def interval(self) -> timedelta:
        return _INTERVALS[self]


_INTERVALS = {
    Frequency.MINUTE: timedelta(minutes=1),
    Frequency.HOUR: timedelta(hours=1),
    Frequency.DAY: timedelta(days=1),
    Frequency.WEEK: timedelta(days=7),
}


class MetricNotFound(LookupError):
    """Raised when a metric id is not in the registry."""

    def __init__(self, metric_id: str) -> None:
        super().__init__(f"metric {metric_id} not found")
        self.metric_id = metric_id


@dataclass(frozen=True)
class Metric:
    """A registered quantity metric."""

    id: str
    display_name: str
    unit: str
    aggregation: AggregationKind
    frequency: Frequency = Frequency.DAY
    lower_is_better: bool = False
    fill_gaps: bool = False

    @property
    def is_cumulative(self) -> bool:
        return self.aggregation == AggregationKind.SUM


# ---------------------------------------------------------------------------
# Display names
# ---------------------------------------------------------------------------

_TITLE_OVERRIDES = {
    "bodyMass": "Weight",
    "vo2Max": "VO2 Max",
}


def display_name(metric_id: str) -> str:
    """Turn a camel-case metric id into a title: ``stepCount`` → ``Step Count``."""
    if metric_id in _TITLE_OVERRIDES:
        return _TITLE_OVERRIDES[metric_id]
    words = re.sub(r"(?<!^)(?=[A-Z])", " ", metric_id)
    return words[:1].upper() + words[1:]


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

SUM = AggregationKind.SUM
AVG = AggregationKind.AVERAGE

# (id, unit, aggregation, frequency, lower_is_better, fill_gaps)
METRIC_TABLE: tuple[tuple[str, str, AggregationKind, Frequency, bool, bool], ...] = (
    ("activeEnergyBurned", "kcal", SUM, Frequency.HOUR, False, True),
    ("appleExerciseTime", "min", SUM, Frequency.DAY, False, True),
    ("appleMoveTime", "kcal", SUM, Frequency.DAY, False, True),
    ("appleStandTime", "min", SUM, Frequency.DAY, False, True),
    ("appleWalkingSteadiness", "%", AVG, Frequency.DAY, False, False),
    ("basalEnergyBurned", "kcal", SUM, Frequency.HOUR, False, True),
    ("bodyFatPercentage", "%", AVG, Frequency.DAY, True, False),
    ("bodyMass", "lb", AVG, Frequency.DAY, True, False),
    ("bodyMassIndex", "count", AVG, Frequency.DAY, True, False),
    ("distanceCycling", "mi", SUM, Frequency.DAY, False, True),
    ("distanceWalkingRunning", "mi", SUM, Frequency.DAY, False, True),
    ("distanceWheelchair", "mi", SUM, Frequency.DAY, False, True),
    ("environmentalAudioExposure", "dBASPL", AVG, Frequency.DAY, True, False),
    ("flightsClimbed", "count", SUM, Frequency.DAY, False, True),
    ("headphoneAudioExposure", "dBASPL", AVG, Frequency.DAY, True, False),
    ("heartRate", "count/min", AVG, Frequency.MINUTE, True, False),
    ("heartRateVariabilitySDNN", "ms", AVG, Frequency.DAY, True, False),
    ("leanBodyMass", "lb", AVG, Frequency.DAY, True, False),
    ("numberOfTimesFallen", "count", SUM, Frequency.DAY, True, False),
    ("oxygenSaturation", "%", AVG, Frequency.DAY, False, False),
    ("pushCount", "count", SUM, Frequency.HOUR, False, True),
    ("respiratoryRate", "count/min", AVG, Frequency.DAY, True, False),
    ("restingHeartRate", "count/min", AVG, Frequency.DAY, True, False),
    ("sixMinuteWalkTestDistance", "m", AVG, Frequency.DAY, False, False),
    ("stairAscentSpeed", "ft/s", AVG, Frequency.DAY, False, False),
    ("stairDescentSpeed", "ft/s", AVG, Frequency.DAY, False, False),
    ("stepCount", "count", SUM, Frequency.HOUR, False, True),
    # Reported as "Cardio Fitness" by most health apps
    ("vo2Max", "mL/(kg*min)", AVG, Frequency.DAY, False, False),
    ("walkingAsymmetryPercentage", "%", AVG, Frequency.DAY, True, False),
    ("walkingDoubleSupportPercentage", "%", AVG, Frequency.DAY, True, False),
    ("walkingHeartRateAverage", "count/min", AVG, Frequency.DAY, True, False),
    ("walkingSpeed", "m/s", AVG, Frequency.HOUR, False, False),
    ("walkingStepLength", "in", AVG, Frequency.DAY, False, False),
)


class MetricRegistry:
    """Read-only mapping from metric id to :class:`Metric`."""

    def __init__(self, metrics: Iterable[Metric]) -> None:
        self._metrics: dict[str, Metric] = {}
        for metric in metrics:
            if metric.id in self._metrics:
                raise ValueError(f"duplicate metric id: {metric.id}")
            self._metrics[metric.id] = metric

    @classmethod
    def from_table(
        cls,
        table: Iterable[tuple[str, str, AggregationKind, Frequency, bool, bool]],
    ) -> MetricRegistry:
        return cls(
            Metric(
                id=metric_id,
                display_name=display_name(metric_id),
                unit=unit,
                aggregation=aggregation,
                frequency=frequency,
                lower_is_better=lower_is_better,
                fill_gaps=fill_gaps,
            )
            for metric_id, unit, aggregation, frequency, lower_is_better, fill_gaps in table
        )

    def lookup(self, metric_id: str) -> Metric:
        """Return the metric for *metric_id*.

        Raises:
            MetricNotFound: If the id is not registered.
        """
        try:
            return self._metrics[metric_id]
        except KeyError:
            raise MetricNotFound(metric_id) from None

    def sorted(self) -> list[Metric]:
        """Metrics ordered by display name."""
        return sorted(self._metrics.values(), key=lambda m: m.display_name)

    def __contains__(self, metric_id: object) -> bool:
        return metric_id in self._metrics

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._metrics.values())

    def __len__(self) -> int:
        return len(self._metrics)

    def __repr__(self) -> str:
        return f"MetricRegistry({len(self)} metrics)"


REGISTRY = MetricRegistry.from_table(METRIC_TABLE)


def lookup(metric_id: str) -> Metric:
    """Look *metric_id* up in the default registry."""
    return REGISTRY.lookup(metric_id)


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------

INTEGER_UNITS = frozenset({"count", "kcal"})
PERCENT_UNIT = "%"


def format_value(metric: Metric, value: float) -> str:
    """Render *value* the way a chart tooltip shows it."""
    if metric.unit in INTEGER_UNITS:
        return f"{int(value):,}"
    if metric.unit == PERCENT_UNIT:
        return f"{value * 100:.2f}%"
    return f"{value:.2f}"
