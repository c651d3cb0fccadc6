from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from budget.normalizer import round_money, to_monthly
from budget.summary import BudgetSummary, CategoryBreakdown
from dates.day_boundary import DayRange, format_day_key, to_utc_iso
from localdb.records import Habit, HabitCategory, HabitEntry, RecurringAmount


def money(value: Decimal) -> float:
    return float(round_money(value))


def percent(value: Decimal | float) -> float:
    return float(round_money(Decimal(str(value))))


def day_range_json(r: DayRange) -> Dict[str, Any]:
    return {
        "date": format_day_key(r.day_key),
        "timezone": r.timezone,
        "start": to_utc_iso(r.start),
        "end": to_utc_iso(r.end),
    }


def habit_json(h: Habit) -> Dict[str, Any]:
    return {
        "id": h.id,
        "title": h.title,
        "description": h.description,
        "emoji": h.emoji,
        "is_archived": h.is_archived,
        "category_id": h.category_id,
        "created_at": to_utc_iso(h.created_at),
    }


def category_json(c: HabitCategory) -> Dict[str, Any]:
    return {"id": c.id, "name": c.name, "emoji": c.emoji, "color": c.color}


def entry_json(e: Optional[HabitEntry]) -> Optional[Dict[str, Any]]:
    if e is None:
        return None
    return {
        "id": e.id,
        "habit_id": e.habit_id,
        "date": format_day_key(e.day_key),
        "completed": e.completed,
        "notes": e.notes,
        "completed_at": to_utc_iso(e.completed_at) if e.completed_at else None,
    }


def recurring_amount_json(a: RecurringAmount) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": a.id,
        "name": a.name,
        "amount": money(a.amount),
        "frequency": a.frequency,
        "category": a.category,
        "description": a.description,
        "is_active": a.is_active,
        "monthly_equivalent": money(to_monthly(a.amount, a.frequency)),
    }
    if a.kind == "expense":
        out["is_essential"] = bool(a.is_essential)
        out["due_day"] = a.due_day
    else:
        out["is_primary"] = a.is_primary
    return out


def _category_json(c: CategoryBreakdown) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "category": c.category,
        "category_name": c.category_name,
        "amount": money(c.amount),
        "percentage": percent(c.percentage),
    }
    if c.is_essential is not None:
        out["is_essential"] = c.is_essential
    return out


def budget_summary_json(s: BudgetSummary) -> Dict[str, Any]:
    d = s.distribution
    return {
        "total_monthly_income": money(s.total_monthly_income),
        "total_monthly_expenses": money(s.total_monthly_expenses),
        "available_balance": money(s.available_balance),
        "savings_rate": percent(s.savings_rate),
        "expenses_by_category": [_category_json(c) for c in s.expenses_by_category],
        "income_by_category": [_category_json(c) for c in s.income_by_category],
        "distribution": {
            "essential": money(d.essential),
            "non_essential": money(d.non_essential),
            "savings": money(d.savings),
            "essential_percentage": percent(d.essential_percentage),
            "non_essential_percentage": percent(d.non_essential_percentage),
            "savings_percentage": percent(d.savings_percentage),
        },
    }
