from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from config import WEEKLY_WINDOW_DAYS
from dates.day_boundary import (
    DayKey,
    DayRange,
    day_key_for_instant,
    day_range_for,
    iter_day_keys,
    normalize_to_user_midday,
)
from habits.errors import HabitNotFound, MultipleEntriesForDay
from localdb.records import Habit, HabitEntry, SqliteRecordStore


logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class HabitDayStatus:
    habit: Habit
    entry: Optional[HabitEntry]
    weekly_percentage: float
    weekly_completed: int
    weekly_total: int


@dataclass(frozen=True)
class DailyHabitView:
    day_key: DayKey
    day_range: DayRange
    habits: List[HabitDayStatus]


def index_entries_by_day(entries: Iterable[HabitEntry]) -> Dict[Tuple[int, DayKey], HabitEntry]:
    """Map (habit_id, day_key) -> entry.

    A second row for the same key means the store's one-entry-per-day
    invariant is broken; raise instead of picking one.
    """
    index: Dict[Tuple[int, DayKey], HabitEntry] = {}
    counts: Dict[Tuple[int, DayKey], int] = {}
    for e in entries:
        key = (e.habit_id, e.day_key)
        counts[key] = counts.get(key, 0) + 1
        index[key] = e
    for (habit_id, day_key), n in counts.items():
        if n > 1:
            raise MultipleEntriesForDay(habit_id, day_key, n)
    return index


def _weekly_progress(
    habit: Habit,
    index: Dict[Tuple[int, DayKey], HabitEntry],
    *,
    day_key: DayKey,
    today: DayKey,
    tz_name: str,
) -> Tuple[int, int]:
    """(completed, eligible) over the trailing window ending at day_key.

    Eligible days are those inside the window that have already happened and
    are not before the habit's local creation day.
    """
    window_start = day_key - timedelta(days=WEEKLY_WINDOW_DAYS - 1)
    created_day = day_key_for_instant(habit.created_at, tz_name)
    first = max(window_start, created_day)
    last = min(day_key, today)
    days = iter_day_keys(first, last)
    completed = 0
    for d in days:
        e = index.get((habit.id, d))
        if e is not None and e.completed:
            completed += 1
    return completed, len(days)


def get_daily_view(
    user_id: str,
    day_key: DayKey,
    tz_name: str,
    *,
    store: Optional[SqliteRecordStore] = None,
    now: Optional[datetime] = None,
) -> DailyHabitView:
    """Active habits for one local day with their entry and trailing-week progress."""
    store = store or SqliteRecordStore()
    now = now or datetime.now(timezone.utc)

    # Re-derive the UTC bounds from local noon so the range always belongs to day_key
    day_range = day_range_for(normalize_to_user_midday(day_key, tz_name), tz_name)
    today = day_key_for_instant(now, tz_name)

    habits = store.list_active_habits(user_id)
    window_start = day_key - timedelta(days=WEEKLY_WINDOW_DAYS - 1)
    habit_ids = {h.id for h in habits}
    entries = [
        e
        for e in store.find_habit_entries(user_id, None, window_start, day_key)
        if e.habit_id in habit_ids
    ]
    index = index_entries_by_day(entries)

    rows: List[HabitDayStatus] = []
    for habit in habits:
        completed, total = _weekly_progress(habit, index, day_key=day_key, today=today, tz_name=tz_name)
        pct = (completed / total * 100.0) if total > 0 else 0.0
        rows.append(
            HabitDayStatus(
                habit=habit,
                entry=index.get((habit.id, day_key)),
                weekly_percentage=pct,
                weekly_completed=completed,
                weekly_total=total,
            )
        )
    return DailyHabitView(day_key=day_key, day_range=day_range, habits=rows)


def log_entry(
    habit_id: int,
    user_id: str,
    instant: date | datetime,
    completed: bool,
    notes: Optional[str] = None,
    *,
    store: Optional[SqliteRecordStore] = None,
    now: Optional[datetime] = None,
) -> HabitEntry:
    """Create or update the single entry for (habit, day).

    ``instant`` must already be expressed in the user's local time (or be a
    plain date); its own calendar fields are the DayKey, with no zone math.
    """
    store = store or SqliteRecordStore()
    if store.get_habit(habit_id, user_id) is None:
        raise HabitNotFound(habit_id, user_id)

    day_key = instant.date() if isinstance(instant, datetime) else instant
    completed_at = (now or datetime.now(timezone.utc)) if completed else None
    entry = store.upsert_habit_entry(habit_id, user_id, day_key, bool(completed), notes, completed_at)
    logger.info(f"[HABITS] Logged habit={habit_id} day={day_key.isoformat()} completed={entry.completed}")
    return entry
