from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from config import CATEGORY_WEEKS_MAX, DAILY_SERIES_MAX_DAYS
from dates.day_boundary import DayKey, day_key_for_instant, iter_day_keys
from habits.daily import index_entries_by_day
from habits.errors import HabitNotFound
from localdb.records import SqliteRecordStore


@dataclass(frozen=True)
class PeriodCounts:
    completed: int
    total: int


@dataclass(frozen=True)
class HabitStats:
    total_entries: int
    completed_entries: int
    completion_rate: float
    current_streak: int
    longest_streak: int
    this_week: PeriodCounts
    this_month: PeriodCounts


@dataclass(frozen=True)
class DailyCount:
    day_key: DayKey
    completed: int
    total: int


@dataclass(frozen=True)
class CategoryWeekly:
    category_id: int
    name: str
    emoji: str
    color: str
    # Completed entries per week, oldest week first; the last week ends today
    weekly: List[int]


def _current_streak(done: Set[DayKey], today: DayKey) -> int:
    # An unfinished today does not break yesterday's streak
    d = today if today in done else today - timedelta(days=1)
    streak = 0
    while d in done:
        streak += 1
        d -= timedelta(days=1)
    return streak


def _longest_streak(done: Set[DayKey]) -> int:
    best = 0
    run = 0
    prev: Optional[DayKey] = None
    for d in sorted(done):
        run = run + 1 if prev is not None and (d - prev).days == 1 else 1
        best = max(best, run)
        prev = d
    return best


def get_habit_stats(
    habit_id: int,
    user_id: str,
    tz_name: str,
    *,
    store: Optional[SqliteRecordStore] = None,
    now: Optional[datetime] = None,
) -> HabitStats:
    """Lifetime, streak and current week/month counts for one habit.

    Week starts on Monday; both periods end at the user's local today.
    """
    store = store or SqliteRecordStore()
    today = day_key_for_instant(now or datetime.now(timezone.utc), tz_name)
    if store.get_habit(habit_id, user_id) is None:
        raise HabitNotFound(habit_id, user_id)

    entries = list(index_entries_by_day(store.find_habit_entries(user_id, habit_id)).values())
    done = {e.day_key for e in entries if e.completed}

    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    week = [e for e in entries if week_start <= e.day_key <= today]
    month = [e for e in entries if month_start <= e.day_key <= today]

    total = len(entries)
    return HabitStats(
        total_entries=total,
        completed_entries=len(done),
        completion_rate=(len(done) / total * 100.0) if total else 0.0,
        current_streak=_current_streak(done, today),
        longest_streak=_longest_streak(done),
        this_week=PeriodCounts(completed=sum(1 for e in week if e.completed), total=len(week)),
        this_month=PeriodCounts(completed=sum(1 for e in month if e.completed), total=len(month)),
    )


def get_daily_series(
    user_id: str,
    tz_name: str,
    days: int = 7,
    *,
    store: Optional[SqliteRecordStore] = None,
    now: Optional[datetime] = None,
) -> List[DailyCount]:
    """Completed-vs-active habit counts for the last ``days`` local days, oldest first."""
    if not 1 <= int(days) <= DAILY_SERIES_MAX_DAYS:
        raise ValueError(f"days must be between 1 and {DAILY_SERIES_MAX_DAYS}")
    store = store or SqliteRecordStore()
    today = day_key_for_instant(now or datetime.now(timezone.utc), tz_name)
    start = today - timedelta(days=int(days) - 1)

    habits = store.list_active_habits(user_id)
    habit_ids = {h.id for h in habits}
    entries = [e for e in store.find_habit_entries(user_id, None, start, today) if e.habit_id in habit_ids]
    index = index_entries_by_day(entries)

    series: List[DailyCount] = []
    for d in iter_day_keys(start, today):
        completed = 0
        for h in habits:
            e = index.get((h.id, d))
            if e is not None and e.completed:
                completed += 1
        series.append(DailyCount(day_key=d, completed=completed, total=len(habits)))
    return series


def get_category_weekly(
    user_id: str,
    tz_name: str,
    weeks: int = 4,
    *,
    store: Optional[SqliteRecordStore] = None,
    now: Optional[datetime] = None,
) -> List[CategoryWeekly]:
    """Completed entries per habit category for each of the last ``weeks`` 7-day blocks.

    Blocks are counted back from the user's local today, so the newest block
    is today and the six local days before it. Only active habits with a
    category count; categories with no active habit are left out.
    """
    if not 1 <= int(weeks) <= CATEGORY_WEEKS_MAX:
        raise ValueError(f"weeks must be between 1 and {CATEGORY_WEEKS_MAX}")
    weeks = int(weeks)
    store = store or SqliteRecordStore()
    today = day_key_for_instant(now or datetime.now(timezone.utc), tz_name)
    start = today - timedelta(days=weeks * 7 - 1)

    habits = [h for h in store.list_active_habits(user_id) if h.category_id is not None]
    category_of: Dict[int, int] = {h.id: h.category_id for h in habits}
    categories = {c.id: c for c in store.list_habit_categories(user_id)}

    counts: Dict[int, List[int]] = {}
    for h in habits:
        if h.category_id in categories:
            counts.setdefault(h.category_id, [0] * weeks)

    entries = [e for e in store.find_habit_entries(user_id, None, start, today) if e.habit_id in category_of]
    for e in index_entries_by_day(entries).values():
        cat_id = category_of[e.habit_id]
        if not e.completed or cat_id not in counts:
            continue
        counts[cat_id][(e.day_key - start).days // 7] += 1

    return [
        CategoryWeekly(
            category_id=cat_id,
            name=categories[cat_id].name,
            emoji=categories[cat_id].emoji,
            color=categories[cat_id].color,
            weekly=weekly,
        )
        for cat_id, weekly in sorted(counts.items(), key=lambda kv: (categories[kv[0]].name, kv[0]))
    ]
