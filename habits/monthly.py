from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from dates.day_boundary import (
    DayKey,
    DayRange,
    day_range_for,
    month_days,
    normalize_to_user_midday,
    resolve_timezone,
)
from habits.daily import index_entries_by_day
from localdb.records import SqliteRecordStore


@dataclass(frozen=True)
class HabitDayDetail:
    habit_id: int
    habit_title: str
    completed: bool


@dataclass(frozen=True)
class MonthlyHabitDay:
    day_key: DayKey
    day_range: DayRange
    completed_count: int
    total_count: int
    habits: List[HabitDayDetail]


def get_monthly_data(
    user_id: str,
    year: int,
    month: int,
    tz_name: str,
    *,
    store: Optional[SqliteRecordStore] = None,
) -> List[MonthlyHabitDay]:
    """One row per calendar day of (year, month), day 1 first.

    Entries for the whole month come from a single range query and are
    grouped by day in memory.
    """
    store = store or SqliteRecordStore()
    resolve_timezone(tz_name)
    days = month_days(year, month)

    habits = store.list_active_habits(user_id)
    habit_ids = {h.id for h in habits}
    entries = [
        e
        for e in store.find_habit_entries(user_id, None, days[0], days[-1])
        if e.habit_id in habit_ids
    ]
    index = index_entries_by_day(entries)

    rows: List[MonthlyHabitDay] = []
    for day in days:
        details = []
        for habit in habits:
            e = index.get((habit.id, day))
            details.append(
                HabitDayDetail(habit_id=habit.id, habit_title=habit.title, completed=bool(e and e.completed))
            )
        rows.append(
            MonthlyHabitDay(
                day_key=day,
                day_range=day_range_for(normalize_to_user_midday(day, tz_name), tz_name),
                completed_count=sum(1 for d in details if d.completed),
                total_count=len(habits),
                habits=details,
            )
        )
    return rows
