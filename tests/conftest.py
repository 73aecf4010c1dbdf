"""Shared fixtures and helpers for the healthsnap test suite."""

from __future__ import annotations

import json
from datetime import datetime, timezone, tzinfo
from pathlib import Path

import pytest

from healthsnap.analytics.aggregate import BucketStatistic
from healthsnap.analytics.sleep import SleepSample, SleepStage
from healthsnap.config import get_settings

UTC = timezone.utc


@pytest.fixture(autouse=True)
def _utc_settings(monkeypatch):
    """Pin the configured zone to UTC and drop the cached settings."""
    monkeypatch.setenv("HEALTHSNAP_TIMEZONE", "UTC")
    monkeypatch.delenv("HEALTHSNAP_SLEEP_ROLLOVER_HOUR", raising=False)
    monkeypatch.delenv("HEALTHSNAP_DEFAULT_WINDOW_DAYS", raising=False)
    monkeypatch.delenv("HEALTHSNAP_LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def at(
    year: int = 2024,
    month: int = 3,
    day: int = 5,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    tz: tzinfo = UTC,
) -> datetime:
    """Aware datetime, defaulting to 2024-03-05 00:00 UTC."""
    return datetime(year, month, day, hour, minute, second, tzinfo=tz)


def staged(stage: SleepStage, start: datetime, end: datetime, **metadata) -> SleepSample:
    """Build a SleepSample."""
    return SleepSample(start=start, end=end, stage=stage, metadata=metadata)


def sums(*pairs: tuple[datetime, float | None]) -> list[BucketStatistic]:
    """Buckets carrying only a cumulative sum."""
    return [BucketStatistic(start=start, sum_quantity=value) for start, value in pairs]


def averages(*pairs: tuple[datetime, float | None]) -> list[BucketStatistic]:
    """Buckets carrying only a discrete average."""
    return [BucketStatistic(start=start, average_quantity=value) for start, value in pairs]


# ---------------------------------------------------------------------------
# Export file helpers
# ---------------------------------------------------------------------------


def write_export(
    path: Path,
    quantities: dict[str, list[dict]] | None = None,
    sleep_entries: list[dict] | None = None,
) -> Path:
    """Write a JSON health export to *path*."""
    payload = {
        "quantities": quantities or {},
        "sleep": sleep_entries or [],
    }
    with open(path, "w") as f:
        json.dump(payload, f)
    return path


def quantity_entry(start: str, value: float, end: str | None = None) -> dict:
    return {"start": start, "end": end or start, "value": value}


def sleep_entry(start: str, end: str, stage: str) -> dict:
    return {"start": start, "end": end, "stage": stage}
