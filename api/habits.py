from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from api.serialize import category_json, day_range_json, entry_json, habit_json, percent
from dates.day_boundary import (
    InvalidDayKey,
    InvalidTimezone,
    format_day_key,
    parse_day_key,
    resolve_timezone,
)
from habits.daily import get_daily_view, log_entry
from habits.errors import HabitNotFound, MultipleEntriesForDay
from habits.monthly import get_monthly_data
from habits.stats import get_category_weekly, get_daily_series, get_habit_stats
from localdb.records import SqliteRecordStore
from security.deps import (
    current_user_id,
    json_body,
    json_bool,
    rate_limit,
    require_auth,
    require_csrf,
    resolve_request_timezone,
)


logger = logging.getLogger("uvicorn.error")

router = APIRouter()

_DATE_ONLY_RE = re.compile(r"^\d{4}-?\d{2}-?\d{2}$")


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, HabitNotFound):
        return HTTPException(status_code=404, detail="Habit not found")
    if isinstance(exc, MultipleEntriesForDay):
        logger.error(f"[HABITS] Data integrity error: {exc}")
        return HTTPException(status_code=500, detail="Duplicate habit entries for one day")
    return HTTPException(status_code=400, detail=str(exc))


def _parse_instant(raw: Any) -> date | datetime:
    """ISO-8601 datetime; a bare calendar date stays a DayKey instead of UTC midnight."""
    text = str(raw).strip()
    if _DATE_ONLY_RE.match(text):
        return parse_day_key(text)
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail="'instant' must be an ISO-8601 datetime")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@router.get("/api/habits")
def list_habits(request: Request) -> List[Dict[str, Any]]:
    user_id = current_user_id(request)
    return [habit_json(h) for h in SqliteRecordStore().list_active_habits(user_id)]


@router.post("/api/habits")
async def create_habit(request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    payload = await json_body(request)

    title = str(payload.get("title") or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="'title' is required")
    store = SqliteRecordStore()
    category_id = payload.get("category_id")
    if category_id is not None:
        if isinstance(category_id, bool) or not isinstance(category_id, int):
            raise HTTPException(status_code=400, detail="'category_id' must be an integer")
        if store.get_habit_category(category_id, user_id) is None:
            raise HTTPException(status_code=400, detail="Unknown habit category")
    habit = store.create_habit(
        user_id,
        title,
        description=payload.get("description"),
        emoji=str(payload.get("emoji") or ""),
        category_id=category_id,
    )
    return habit_json(habit)


@router.delete("/api/habits/{habit_id}")
async def archive_habit(habit_id: int, request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    if not SqliteRecordStore().archive_habit(habit_id, user_id):
        raise HTTPException(status_code=404, detail="Habit not found")
    return {"status": "archived", "id": habit_id}


@router.get("/api/habits/daily/{day}")
def daily_habits(day: str, request: Request, tz: Optional[str] = Query(None)) -> Dict[str, Any]:
    """Habits for one local day (YYYY-MM-DD) with trailing-week progress."""
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    tz_name = resolve_request_timezone(user_id, tz, store)
    try:
        day_key = parse_day_key(day)
        view = get_daily_view(user_id, day_key, tz_name, store=store)
    except (InvalidDayKey, InvalidTimezone, MultipleEntriesForDay) as exc:
        raise _to_http(exc) from exc

    return {
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


@router.get("/api/habits/monthly/{year}/{month}")
def monthly_habits(year: int, month: int, request: Request, tz: Optional[str] = Query(None)) -> List[Dict[str, Any]]:
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    tz_name = resolve_request_timezone(user_id, tz, store)
    try:
        rows = get_monthly_data(user_id, year, month, tz_name, store=store)
    except (InvalidDayKey, InvalidTimezone, MultipleEntriesForDay) as exc:
        raise _to_http(exc) from exc

    return [
        {
            "date": format_day_key(r.day_key),
            "range": day_range_json(r.day_range),
            "completed_count": r.completed_count,
            "total_count": r.total_count,
            "habits": [
                {"habit_id": d.habit_id, "habit_title": d.habit_title, "completed": d.completed}
                for d in r.habits
            ],
        }
        for r in rows
    ]


@router.post("/api/habits/{habit_id}/entries")
async def create_entry(habit_id: int, request: Request, tz: Optional[str] = Query(None)) -> Dict[str, Any]:
    """Log a habit for a day.

    Body fields:
    - date (YYYY-MM-DD), or instant (ISO-8601) converted to the user's local day;
      an instant with no time part is taken as that calendar day
    - completed (bool, default false)
    - notes (str, optional)
    """
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    payload = await json_body(request)

    store = SqliteRecordStore()
    try:
        if payload.get("date"):
            when = parse_day_key(payload["date"])
        elif payload.get("instant"):
            when = _parse_instant(payload["instant"])
            if isinstance(when, datetime):
                tz_name = resolve_request_timezone(user_id, tz, store)
                when = when.astimezone(resolve_timezone(tz_name))
        else:
            raise HTTPException(status_code=400, detail="'date' or 'instant' is required")
        entry = log_entry(
            habit_id,
            user_id,
            when,
            json_bool(payload, "completed"),
            payload.get("notes"),
            store=store,
        )
    except (InvalidDayKey, InvalidTimezone, HabitNotFound) as exc:
        raise _to_http(exc) from exc
    return entry_json(entry)


@router.get("/api/habits/{habit_id}/stats")
def habit_stats(habit_id: int, request: Request, tz: Optional[str] = Query(None)) -> Dict[str, Any]:
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    tz_name = resolve_request_timezone(user_id, tz, store)
    try:
        stats = get_habit_stats(habit_id, user_id, tz_name, store=store)
    except (HabitNotFound, InvalidTimezone, MultipleEntriesForDay) as exc:
        raise _to_http(exc) from exc
    return {
        "total_entries": stats.total_entries,
        "completed_entries": stats.completed_entries,
        "completion_rate": percent(stats.completion_rate),
        "current_streak": stats.current_streak,
        "longest_streak": stats.longest_streak,
        "this_week": {"completed": stats.this_week.completed, "total": stats.this_week.total},
        "this_month": {"completed": stats.this_month.completed, "total": stats.this_month.total},
    }


@router.get("/api/habits/stats/daily")
def habit_daily_series(
    request: Request,
    days: int = Query(7),
    tz: Optional[str] = Query(None),
) -> List[Dict[str, Any]]:
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    tz_name = resolve_request_timezone(user_id, tz, store)
    try:
        series = get_daily_series(user_id, tz_name, days, store=store)
    except (ValueError, MultipleEntriesForDay) as exc:
        raise _to_http(exc) from exc
    return [{"date": format_day_key(s.day_key), "completed": s.completed, "total": s.total} for s in series]


@router.put("/api/users/me/timezone")
async def set_timezone(request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    user_id = current_user_id(request)
    payload = await json_body(request)
    name = str(payload.get("timezone") or "").strip()
    try:
        resolve_timezone(name)
    except InvalidTimezone as exc:
        raise _to_http(exc) from exc
    SqliteRecordStore().set_user_timezone(user_id, name)
    return {"status": "ok", "timezone": name}


@router.get("/api/habits/stats/categories-weekly")
def habit_categories_weekly(
    request: Request,
    weeks: int = Query(4),
    tz: Optional[str] = Query(None),
) -> List[Dict[str, Any]]:
    """Completed entries per habit category for the last N 7-day blocks ending today."""
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    tz_name = resolve_request_timezone(user_id, tz, store)
    try:
        rows = get_category_weekly(user_id, tz_name, weeks, store=store)
    except (ValueError, MultipleEntriesForDay) as exc:
        raise _to_http(exc) from exc
    return [
        {
            "category_id": r.category_id,
            "name": r.name,
            "emoji": r.emoji,
            "color": r.color,
            "weekly": r.weekly,
        }
        for r in rows
    ]


def _category_fields(payload: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    if "name" in payload or not partial:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="'name' is required")
        fields["name"] = name
    if "emoji" in payload:
        fields["emoji"] = str(payload.get("emoji") or "")
    if "color" in payload:
        fields["color"] = str(payload.get("color") or "").strip() or "#64748b"
    return fields


@router.get("/api/habit-categories")
def list_habit_categories(request: Request) -> List[Dict[str, Any]]:
    user_id = current_user_id(request)
    return [category_json(c) for c in SqliteRecordStore().list_habit_categories(user_id)]


@router.post("/api/habit-categories")
async def create_habit_category(request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    fields = _category_fields(await json_body(request), partial=False)
    category = SqliteRecordStore().create_habit_category(user_id, fields.pop("name"), **fields)
    return {"status": "ok", "item": category_json(category)}


@router.put("/api/habit-categories/{category_id}")
async def update_habit_category(category_id: int, request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    fields = _category_fields(await json_body(request), partial=True)
    category = SqliteRecordStore().update_habit_category(category_id, user_id, fields)
    if category is None:
        raise HTTPException(status_code=404, detail="Habit category not found")
    return {"status": "ok", "item": category_json(category)}


@router.delete("/api/habit-categories/{category_id}")
async def delete_habit_category(category_id: int, request: Request) -> Dict[str, Any]:
    require_auth(request)
    require_csrf(request)
    rate_limit(request, scope="habits-write")
    user_id = current_user_id(request)
    store = SqliteRecordStore()
    if store.get_habit_category(category_id, user_id) is None:
        raise HTTPException(status_code=404, detail="Habit category not found")
    # Archived habits still point at their category
    if store.count_habits_in_category(category_id, user_id):
        raise HTTPException(status_code=409, detail="Habit category still has habits")
    store.delete_habit_category(category_id, user_id)
    return {"status": "deleted", "id": category_id}
