from __future__ import annotations

import os
import sys
import time
from datetime import date, datetime, timedelta, timezone

import pytest


ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from dates.day_boundary import (  # noqa: E402
    InvalidDayKey,
    InvalidTimezone,
    day_key_for_instant,
    day_key_from_calendar_components,
    day_range_for,
    format_day_key,
    iter_day_keys,
    month_days,
    normalize_to_user_midday,
    parse_day_key,
    resolve_timezone,
    to_utc_iso,
)


ZONES = [
    "UTC",
    "America/El_Salvador",
    "America/New_York",
    "America/St_Johns",
    "Asia/Kathmandu",
    "Australia/Lord_Howe",
    "Pacific/Kiritimati",
    "Pacific/Pago_Pago",
]
DAYS = ["2024-02-29", "2025-01-01", "2025-03-09", "2025-03-30", "2025-11-02", "2025-12-31"]


def test_el_salvador_day_range():
    r = day_range_for(datetime(2025, 3, 15, 18, 0, tzinfo=timezone.utc), "America/El_Salvador")
    assert r.day_key == date(2025, 3, 15)
    assert to_utc_iso(r.start) == "2025-03-15T06:00:00.000Z"
    assert to_utc_iso(r.end) == "2025-03-16T05:59:59.999Z"

    # 03:00Z on the 16th is still the evening of the 15th locally
    late = day_range_for(datetime(2025, 3, 16, 3, 0, tzinfo=timezone.utc), "America/El_Salvador")
    assert late == r


def test_non_whole_hour_offset():
    r = day_range_for(normalize_to_user_midday(date(2025, 3, 15), "Asia/Kathmandu"), "Asia/Kathmandu")
    assert to_utc_iso(r.start) == "2025-03-14T18:15:00.000Z"
    assert to_utc_iso(r.end) == "2025-03-15T18:14:59.999Z"


@pytest.mark.parametrize("tz_name", ZONES)
@pytest.mark.parametrize("day", DAYS)
def test_midday_round_trip_keeps_the_day(tz_name, day):
    y, m, d = (int(p) for p in day.split("-"))
    key = day_key_from_calendar_components(y, m, d)
    r = day_range_for(normalize_to_user_midday(key, tz_name), tz_name)
    assert format_day_key(r.day_key) == day
    assert r.start < r.end


def test_round_trip_ignores_server_local_timezone(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    monkeypatch.setenv("TZ", "Pacific/Kiritimati")
    time.tzset()
    try:
        key = parse_day_key("2025-03-15")
        r = day_range_for(normalize_to_user_midday(key, "Pacific/Pago_Pago"), "Pacific/Pago_Pago")
        assert format_day_key(r.day_key) == "2025-03-15"
    finally:
        monkeypatch.undo()
        time.tzset()


def test_spring_forward_day_is_23_hours():
    r = day_range_for(normalize_to_user_midday(date(2025, 3, 9), "America/New_York"), "America/New_York")
    assert to_utc_iso(r.start) == "2025-03-09T05:00:00.000Z"
    assert to_utc_iso(r.end) == "2025-03-10T03:59:59.999Z"
    assert r.end > r.start
    assert r.end - r.start == timedelta(hours=23) - timedelta(milliseconds=1)


def test_fall_back_day_is_25_hours():
    r = day_range_for(normalize_to_user_midday(date(2025, 11, 2), "America/New_York"), "America/New_York")
    assert to_utc_iso(r.start) == "2025-11-02T04:00:00.000Z"
    assert to_utc_iso(r.end) == "2025-11-03T04:59:59.999Z"
    assert r.end - r.start == timedelta(hours=25) - timedelta(milliseconds=1)


def test_midday_anchor():
    assert normalize_to_user_midday(date(2025, 3, 15), "America/El_Salvador") == datetime(
        2025, 3, 15, 18, 0, tzinfo=timezone.utc
    )


@pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "", "   ", "../../etc/passwd", None, "America", "Europe"])
def test_unknown_timezone_fails_closed(name):
    with pytest.raises(InvalidTimezone):
        resolve_timezone(name)
    with pytest.raises(InvalidTimezone):
        day_range_for(datetime(2025, 3, 15, tzinfo=timezone.utc), name)


def test_invalid_timezone_is_a_value_error():
    with pytest.raises(ValueError):
        normalize_to_user_midday(date(2025, 3, 15), "Not/AZone")


def test_parse_day_key_uses_the_digits():
    assert parse_day_key("2025-03-15") == date(2025, 3, 15)
    assert parse_day_key(" 2024-02-29 ") == date(2024, 2, 29)


@pytest.mark.parametrize(
    "raw",
    ["2025-3-15", "2025-03-15T00:00:00Z", "15/03/2025", "2025-02-30", "2023-02-29", "", "yesterday", 20250315],
)
def test_parse_day_key_rejects(raw):
    with pytest.raises(InvalidDayKey):
        parse_day_key(raw)


def test_calendar_components_validation():
    assert day_key_from_calendar_components(2025, 12, 31) == date(2025, 12, 31)
    with pytest.raises(InvalidDayKey):
        day_key_from_calendar_components(2025, 13, 1)


def test_format_day_key_pads():
    assert format_day_key(date(987, 1, 2)) == "0987-01-02"


def test_day_key_for_instant_reads_naive_as_utc():
    assert day_key_for_instant(datetime(2025, 3, 16, 3, 0), "America/El_Salvador") == date(2025, 3, 15)
    assert day_key_for_instant(datetime(2025, 3, 16, 3, 0), "UTC") == date(2025, 3, 16)


def test_month_days():
    feb = month_days(2024, 2)
    assert len(feb) == 29
    assert feb[0] == date(2024, 2, 1)
    assert feb[-1] == date(2024, 2, 29)
    assert len(month_days(2023, 2)) == 28
    assert len(month_days(2025, 12)) == 31
    with pytest.raises(InvalidDayKey):
        month_days(2025, 13)


def test_iter_day_keys():
    assert iter_day_keys(date(2025, 3, 14), date(2025, 3, 16)) == [
        date(2025, 3, 14),
        date(2025, 3, 15),
        date(2025, 3, 16),
    ]
    assert iter_day_keys(date(2025, 3, 16), date(2025, 3, 14)) == []
