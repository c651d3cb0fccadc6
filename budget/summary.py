"""Monthly budget summary over recurring income sources and expenses.

Every amount is normalized to a monthly equivalent (see budget.normalizer)
before summing, so weekly pay and annual insurance land on the same scale.

Essential policy: a category counts as essential only when every active
expense in it is flagged essential. One discretionary item makes the whole
category non-essential in the distribution split.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from budget.normalizer import to_monthly
from localdb.records import RecurringAmount, SqliteRecordStore


logger = logging.getLogger("uvicorn.error")

CATEGORY_LABELS: Dict[str, str] = {
    # expenses
    "utilities": "Utilities",
    "internet": "Internet/Phone",
    "subscriptions": "Subscriptions",
    "transportation": "Transportation",
    "groceries": "Groceries",
    "health": "Health/Insurance",
    "rent": "Rent/Mortgage",
    "education": "Education",
    "entertainment": "Entertainment",
    # income
    "salary": "Salary",
    "freelance": "Freelance",
    "business": "Business",
    "investment": "Investments",
    "rental": "Rental income",
    "other": "Other",
}

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    category_name: str
    amount: Decimal
    percentage: Decimal
    # None for income categories
    is_essential: Optional[bool] = None


@dataclass(frozen=True)
class BudgetDistribution:
    essential: Decimal
    non_essential: Decimal
    savings: Decimal
    essential_percentage: Decimal
    non_essential_percentage: Decimal
    savings_percentage: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    total_monthly_income: Decimal
    total_monthly_expenses: Decimal
    available_balance: Decimal
    savings_rate: Decimal
    expenses_by_category: List[CategoryBreakdown]
    income_by_category: List[CategoryBreakdown]
    distribution: BudgetDistribution


def category_label(category: str) -> str:
    return CATEGORY_LABELS.get(category, category)


def _percent_of(amount: Decimal, income: Decimal) -> Decimal:
    if income <= 0:
        return _ZERO
    return amount / income * _HUNDRED


def _group_by_category(items: Iterable[RecurringAmount], income: Decimal) -> List[CategoryBreakdown]:
    totals: Dict[str, Decimal] = {}
    essential: Dict[str, bool] = {}
    for item in items:
        monthly = to_monthly(item.amount, item.frequency)
        totals[item.category] = totals.get(item.category, _ZERO) + monthly
        if item.kind == "expense":
            essential[item.category] = essential.get(item.category, True) and bool(item.is_essential)

    groups = [
        CategoryBreakdown(
            category=cat,
            category_name=category_label(cat),
            amount=amount,
            percentage=_percent_of(amount, income),
            is_essential=essential.get(cat),
        )
        for cat, amount in totals.items()
    ]
    groups.sort(key=lambda g: (-g.amount, g.category))
    return groups


def build_budget_summary(
    income_sources: Iterable[RecurringAmount],
    expenses: Iterable[RecurringAmount],
) -> BudgetSummary:
    """Pure aggregation over already-fetched records; inactive rows are skipped."""
    income_items = [i for i in income_sources if i.is_active]
    expense_items = [e for e in expenses if e.is_active]

    total_income = sum((to_monthly(i.amount, i.frequency) for i in income_items), _ZERO)
    total_expenses = sum((to_monthly(e.amount, e.frequency) for e in expense_items), _ZERO)
    balance = total_income - total_expenses

    expenses_by_category = _group_by_category(expense_items, total_income)
    income_by_category = _group_by_category(income_items, total_income)

    essential = sum((g.amount for g in expenses_by_category if g.is_essential), _ZERO)
    non_essential = total_expenses - essential
    savings = balance if balance > 0 else _ZERO

    return BudgetSummary(
        total_monthly_income=total_income,
        total_monthly_expenses=total_expenses,
        available_balance=balance,
        savings_rate=_percent_of(balance, total_income),
        expenses_by_category=expenses_by_category,
        income_by_category=income_by_category,
        distribution=BudgetDistribution(
            essential=essential,
            non_essential=non_essential,
            savings=savings,
            essential_percentage=_percent_of(essential, total_income),
            non_essential_percentage=_percent_of(non_essential, total_income),
            savings_percentage=_percent_of(savings, total_income),
        ),
    )


def get_budget_summary(user_id: str, *, store: Optional[SqliteRecordStore] = None) -> BudgetSummary:
    store = store or SqliteRecordStore()
    income_sources = store.list_active_income_sources(user_id)
    expenses = store.list_active_recurring_expenses(user_id)
    summary = build_budget_summary(income_sources, expenses)
    logger.info(
        f"[BUDGET] Summary user={user_id} income_sources={len(income_sources)} "
        f"expenses={len(expenses)} balance={summary.available_balance:.2f}"
    )
    return summary
