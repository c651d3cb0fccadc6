"""Read-only reports printed as JSON, using the same shapes as the HTTP API."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from api.serialize import budget_summary_json, day_range_json, entry_json, habit_json, percent
from budget.normalizer import InvalidAmount, InvalidFrequency
from budget.summary import get_budget_summary
from config import CURRENCY_SYMBOL
from dates.day_boundary import InvalidDayKey, InvalidTimezone, format_day_key, parse_day_key
from habits.daily import get_daily_view
from habits.errors import MultipleEntriesForDay
from habits.monthly import get_monthly_data
from localdb.records import SqliteRecordStore


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _zone_or_stored(store: SqliteRecordStore, user_id: str, tz_name: Optional[str]) -> Optional[str]:
    if tz_name:
        return tz_name
    stored = store.get_user_timezone(user_id)
    if not stored:
        print(f"[error] No timezone given and none stored for user {user_id!r}; pass --tz")
    return stored


def budget_summary(db_path: Path, user_id: str) -> int:
    store = SqliteRecordStore(db_path)
    try:
        summary = get_budget_summary(user_id, store=store)
    except (InvalidAmount, InvalidFrequency) as e:
        print(f"[error] Invalid stored budget row: {e}")
        return 1
    out = budget_summary_json(summary)
    out["currency_symbol"] = CURRENCY_SYMBOL
    _emit(out)
    return 0


def habits_day(db_path: Path, user_id: str, day: str, tz_name: Optional[str] = None) -> int:
    store = SqliteRecordStore(db_path)
    tz_name = _zone_or_stored(store, user_id, tz_name)
    if not tz_name:
        return 2
    try:
        view = get_daily_view(user_id, parse_day_key(day), tz_name, store=store)
    except (InvalidDayKey, InvalidTimezone) as e:
        print(f"[error] {e}")
        return 2
    except MultipleEntriesForDay as e:
        print(f"[error] {e}")
        return 1
    _emit(
        {
            "date": format_day_key(view.day_key),
            "range": day_range_json(view.day_range),
            "habits": [
                {
                    "habit": habit_json(row.habit),
                    "entry": entry_json(row.entry),
                    "weekly_percentage": percent(row.weekly_percentage),
                    "weekly_completed": row.weekly_completed,
                    "weekly_total": row.weekly_total,
                }
                for row in view.habits
            ],
        }
    )
    return 0


def habits_month(db_path: Path, user_id: str, year: int, month: int, tz_name: Optional[str] = None) -> int:
    store = SqliteRecordStore(db_path)
    tz_name = _zone_or_stored(store, user_id, tz_name)
    if not tz_name:
        return 2
    try:
        rows = get_monthly_data(user_id, year, month, tz_name, store=store)
    except (InvalidDayKey, InvalidTimezone) as e:
        print(f"[error] {e}")
        return 2
    except MultipleEntriesForDay as e:
        print(f"[error] {e}")
        return 1
    _emit(
        [
            {
                "date": format_day_key(r.day_key),
                "completed_count": r.completed_count,
                "total_count": r.total_count,
            }
            for r in rows
        ]
    )
    return 0
