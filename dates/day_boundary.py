"""Timezone-aware calendar day helpers.

A DayKey is a plain ``datetime.date``: the calendar day as the user sees it,
with no time of day and no zone. Instants are timezone-aware ``datetime``
values in UTC; naive datetimes are read as UTC.

Every function that needs a zone takes the IANA name explicitly; there is no
default timezone.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


DayKey = date

_DAY_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_START_OF_DAY = time(0, 0, 0, 0)
_END_OF_DAY = time(23, 59, 59, 999000)
_MIDDAY = time(12, 0, 0, 0)


class InvalidTimezone(ValueError):
    """Unknown or malformed IANA timezone identifier."""

    def __init__(self, name: object) -> None:
        super().__init__(f"Unknown timezone: {name!r}")
        self.name = name


class InvalidDayKey(ValueError):
    """Calendar components or a YYYY-MM-DD string that do not name a real day."""


@dataclass(frozen=True)
class DayRange:
    day_key: DayKey
    timezone: str
    start: datetime
    end: datetime


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA zone; fail closed with InvalidTimezone, never fall back to UTC."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezone(name)
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        # ValueError covers keys zoneinfo refuses outright (absolute paths, ".."),
        # OSError covers region directories such as "America"
        raise InvalidTimezone(name) from exc


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _local_to_utc(day_key: DayKey, at: time, zone: ZoneInfo, *, fold: int = 0) -> datetime:
    local = datetime.combine(day_key, at, tzinfo=zone).replace(fold=fold)
    return local.astimezone(timezone.utc)


def day_key_from_calendar_components(year: int, month: int, day: int) -> DayKey:
    """Build a DayKey from explicit fields; the result's fields equal the inputs."""
    try:
        return date(int(year), int(month), int(day))
    except (TypeError, ValueError) as exc:
        raise InvalidDayKey(f"Invalid calendar date: {year}-{month}-{day}") from exc


def parse_day_key(value: str) -> DayKey:
    """Parse a strict ``YYYY-MM-DD`` string by its digits.

    The string is never turned into an instant first, so the result cannot be
    shifted into a neighbouring day by a server or request timezone.
    """
    m = _DAY_KEY_RE.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise InvalidDayKey(f"Expected YYYY-MM-DD, got {value!r}")
    return day_key_from_calendar_components(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def format_day_key(day_key: DayKey) -> str:
    return f"{day_key.year:04d}-{day_key.month:02d}-{day_key.day:02d}"


def day_key_for_instant(instant: datetime, tz_name: str) -> DayKey:
    """Local calendar date of ``instant`` in ``tz_name``."""
    zone = resolve_timezone(tz_name)
    return _as_utc(instant).astimezone(zone).date()


def day_range_for(instant: datetime, tz_name: str) -> DayRange:
    """UTC bounds of the local calendar day containing ``instant``.

    - start: local 00:00:00.000 of that day (first occurrence when ambiguous)
    - end: local 23:59:59.999 of that day (last occurrence when ambiguous)

    On DST transition days the span is 23 or 25 hours of elapsed time; the
    bounds still follow local midnight rather than a fixed 24h window.
    """
    zone = resolve_timezone(tz_name)
    day_key = _as_utc(instant).astimezone(zone).date()
    start = _local_to_utc(day_key, _START_OF_DAY, zone, fold=0)
    end = _local_to_utc(day_key, _END_OF_DAY, zone, fold=1)
    return DayRange(day_key=day_key, timezone=tz_name, start=start, end=end)


def normalize_to_user_midday(day_key: DayKey, tz_name: str) -> datetime:
    """Representative UTC instant for a DayKey: local noon in ``tz_name``.

    Noon sits twelve hours from either day edge, so an hour of offset or DST
    error downstream still lands on the same calendar day.
    """
    zone = resolve_timezone(tz_name)
    return _local_to_utc(day_key, _MIDDAY, zone)


def month_days(year: int, month: int) -> List[DayKey]:
    """Every DayKey of a calendar month, ascending."""
    first = day_key_from_calendar_components(year, month, 1)
    last_day = calendar.monthrange(first.year, first.month)[1]
    return [first + timedelta(days=i) for i in range(last_day)]


def iter_day_keys(start: DayKey, end: DayKey) -> List[DayKey]:
    """Inclusive list of days from start to end; empty when end < start."""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def to_utc_iso(instant: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z."""
    return _as_utc(instant).isoformat(timespec="milliseconds").replace("+00:00", "Z")
