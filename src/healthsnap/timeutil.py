"""Calendar arithmetic and date formatting.

Every function works on timezone-aware datetimes.  A naive datetime is
taken to be wall-clock time in the local zone, which is either the *tz*
argument or the configured default (see :mod:`healthsnap.config`).

Day-level arithmetic follows the wall clock (adding a day across a DST
change lands on the same local time), while hour-level arithmetic is
absolute elapsed time.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo

from healthsnap.config import get_settings


def local_zone(tz: tzinfo | None = None) -> tzinfo:
    """Return *tz*, or the configured local zone when it is None."""
    return tz if tz is not None else get_settings().tzinfo


def to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Express *dt* in the local zone (naive values are assumed local)."""
    zone = local_zone(tz)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=zone)
    return dt.astimezone(zone)


def _utc(dt: datetime, tz: tzinfo | None = None) -> datetime:
    return to_local(dt, tz).astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Day boundaries
# ---------------------------------------------------------------------------


def at_midnight(day: date, tz: tzinfo | None = None) -> datetime:
    """Local midnight at the start of *day*."""
    return datetime(day.year, day.month, day.day, tzinfo=local_zone(tz))


def start_of_day(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Local midnight of the calendar day containing *dt*."""
    return at_midnight(to_local(dt, tz).date(), tz)


def yesterday(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Local midnight of the day before *dt*."""
    return days_before(start_of_day(dt, tz), 1, tz)


def tomorrow(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Local midnight of the day after *dt*."""
    return days_after(start_of_day(dt, tz), 1, tz)


def monday_at_midnight(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Start of the ISO week (Monday 00:00 local) containing *dt*."""
    midnight = start_of_day(dt, tz)
    return days_before(midnight, midnight.weekday(), tz)


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def days_after(dt: datetime, days: int, tz: tzinfo | None = None) -> datetime:
    # aware + timedelta is wall-clock arithmetic in Python
    return to_local(dt, tz) + timedelta(days=days)


def days_before(dt: datetime, days: int, tz: tzinfo | None = None) -> datetime:
    return days_after(dt, -days, tz)


def weeks_before(dt: datetime, weeks: int, tz: tzinfo | None = None) -> datetime:
    return days_before(dt, 7 * weeks, tz)


def hours_after(dt: datetime, hours: int, tz: tzinfo | None = None) -> datetime:
    local = to_local(dt, tz)
    return (local.astimezone(timezone.utc) + timedelta(hours=hours)).astimezone(
        local.tzinfo
    )


def hours_before(dt: datetime, hours: int, tz: tzinfo | None = None) -> datetime:
    return hours_after(dt, -hours, tz)


def months_before(dt: datetime, months: int, tz: tzinfo | None = None) -> datetime:
    """Shift *dt* back by calendar months, clamping the day of month.

    ``months_before(2024-03-31, 1)`` is 2024-02-29.
    """
    local = to_local(dt, tz)
    index = local.year * 12 + (local.month - 1) - months
    year, month0 = divmod(index, 12)
    month = month0 + 1
    day = min(local.day, calendar.monthrange(year, month)[1])
    return local.replace(year=year, month=month, day=day)


def _truncate(value: float) -> int:
    return int(value)  # toward zero, like calendar component differences


def days_between(start: datetime, end: datetime, tz: tzinfo | None = None) -> int:
    """Whole calendar days elapsed from *start* to *end* (wall clock)."""
    a = to_local(start, tz).replace(tzinfo=None)
    b = to_local(end, tz).replace(tzinfo=None)
    return _truncate((b - a).total_seconds() / 86400.0)


def hours_between(start: datetime, end: datetime, tz: tzinfo | None = None) -> int:
    """Whole hours elapsed from *start* to *end*."""
    return _truncate((_utc(end, tz) - _utc(start, tz)).total_seconds() / 3600.0)


def seconds_between(start: datetime, end: datetime, tz: tzinfo | None = None) -> int:
    """Whole seconds elapsed from *start* to *end* (may be negative)."""
    return _truncate((_utc(end, tz) - _utc(start, tz)).total_seconds())


# ---------------------------------------------------------------------------
# Epoch milliseconds
# ---------------------------------------------------------------------------


def to_milliseconds(dt: datetime, tz: tzinfo | None = None) -> int:
    return round(to_local(dt, tz).timestamp() * 1000.0)


def from_milliseconds(ms: int, tz: tzinfo | None = None) -> datetime:
    """Inverse of :func:`to_milliseconds`; sub-second precision is dropped."""
    return datetime.fromtimestamp(ms // 1000, tz=local_zone(tz))


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _clock(hour: int) -> tuple[int, str]:
    return (hour % 12 or 12), ("AM" if hour < 12 else "PM")


def ymd(dt: datetime, tz: tzinfo | None = None) -> str:
    """``2024-03-05``"""
    return f"{to_local(dt, tz):%Y-%m-%d}"


def ymdh(dt: datetime, tz: tzinfo | None = None) -> str:
    """``2024-03-05 9 AM``"""
    local = to_local(dt, tz)
    hour, suffix = _clock(local.hour)
    return f"{local:%Y-%m-%d} {hour} {suffix}"


def ymdhm(dt: datetime, tz: tzinfo | None = None) -> str:
    """``2024-03-05 9:07 AM``"""
    local = to_local(dt, tz)
    hour, suffix = _clock(local.hour)
    return f"{local:%Y-%m-%d} {hour}:{local.minute:02d} {suffix}"


def ymdhms(dt: datetime, tz: tzinfo | None = None) -> str:
    """``2024-03-05 09:07:30 AM``"""
    local = to_local(dt, tz)
    hour, suffix = _clock(local.hour)
    return f"{local:%Y-%m-%d} {hour:02d}:{local.minute:02d}:{local.second:02d} {suffix}"


def md(dt: datetime, tz: tzinfo | None = None) -> str:
    """``3/5``"""
    local = to_local(dt, tz)
    return f"{local.month}/{local.day}"


def hour_label(dt: datetime, tz: tzinfo | None = None) -> str:
    """``9AM``"""
    hour, suffix = _clock(to_local(dt, tz).hour)
    return f"{hour}{suffix}"


def time_label(dt: datetime, tz: tzinfo | None = None) -> str:
    """``9:07:30 AM``"""
    local = to_local(dt, tz)
    hour, suffix = _clock(local.hour)
    return f"{hour}:{local.minute:02d}:{local.second:02d} {suffix}"
