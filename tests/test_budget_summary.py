from __future__ import annotations

import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest


ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from budget.normalizer import InvalidAmount  # noqa: E402
from budget.summary import build_budget_summary, category_label, get_budget_summary  # noqa: E402
from db.migrate import run_migrations  # noqa: E402
from localdb.records import RecurringAmount, SqliteRecordStore  # noqa: E402


def _income(id_, amount, frequency="monthly", category="salary", active=True) -> RecurringAmount:
    return RecurringAmount(
        kind="income",
        id=id_,
        user_id="u1",
        name=f"income {id_}",
        amount=Decimal(str(amount)),
        frequency=frequency,
        category=category,
        is_active=active,
    )


def _expense(id_, amount, frequency="monthly", category="other", essential=False, active=True) -> RecurringAmount:
    return RecurringAmount(
        kind="expense",
        id=id_,
        user_id="u1",
        name=f"expense {id_}",
        amount=Decimal(str(amount)),
        frequency=frequency,
        category=category,
        is_active=active,
        is_essential=essential,
    )


def test_empty_input_is_all_zero():
    s = build_budget_summary([], [])
    assert s.total_monthly_income == 0
    assert s.total_monthly_expenses == 0
    assert s.available_balance == 0
    assert s.savings_rate == 0
    assert s.expenses_by_category == []
    assert s.income_by_category == []
    assert s.distribution.savings == 0


def test_zero_income_gives_zero_savings_rate():
    s = build_budget_summary([], [_expense(1, 1000, category="rent", essential=True)])
    assert s.total_monthly_income == 0
    assert s.available_balance == Decimal("-1000")
    assert s.savings_rate == 0
    assert s.expenses_by_category[0].percentage == 0
    assert s.distribution.savings == 0
    assert s.distribution.essential_percentage == 0


def test_mixed_category_counts_as_non_essential():
    s = build_budget_summary(
        [_income(1, 4000)],
        [
            _expense(1, 400, category="groceries", essential=True),
            _expense(2, 100, category="groceries", essential=False),
            _expense(3, 1200, category="rent", essential=True),
            _expense(4, 1200, frequency="annual", category="entertainment"),
        ],
    )
    assert s.total_monthly_income == Decimal("4000")
    assert s.total_monthly_expenses == Decimal("1800")
    assert s.available_balance == Decimal("2200")
    assert s.savings_rate == Decimal("55")

    cats = [(c.category, c.amount, c.percentage, c.is_essential) for c in s.expenses_by_category]
    assert cats == [
        ("rent", Decimal("1200"), Decimal("30"), True),
        ("groceries", Decimal("500"), Decimal("12.5"), False),
        ("entertainment", Decimal("100"), Decimal("2.5"), False),
    ]

    d = s.distribution
    assert d.essential == Decimal("1200")
    assert d.non_essential == Decimal("600")
    assert d.savings == Decimal("2200")
    assert (d.essential_percentage, d.non_essential_percentage, d.savings_percentage) == (
        Decimal("30"),
        Decimal("15"),
        Decimal("55"),
    )


def test_weekly_and_annual_are_normalized_before_summing():
    s = build_budget_summary(
        [_income(1, 700, frequency="weekly")],
        [_expense(1, 1200, frequency="annual")],
    )
    assert s.total_monthly_income == Decimal("3044")
    assert s.available_balance == Decimal("2944")


def test_inactive_rows_are_skipped():
    s = build_budget_summary(
        [_income(1, 3000), _income(2, 9999, active=False)],
        [_expense(1, 500), _expense(2, 700, active=False)],
    )
    assert s.total_monthly_income == Decimal("3000")
    assert s.total_monthly_expenses == Decimal("500")


def test_categories_sorted_by_amount_then_key():
    s = build_budget_summary(
        [_income(1, 1000, category="salary"), _income(2, 1000, category="freelance")],
        [_expense(1, 50, category="utilities"), _expense(2, 50, category="internet"), _expense(3, 80, category="health")],
    )
    assert [c.category for c in s.expenses_by_category] == ["health", "internet", "utilities"]
    assert [c.category for c in s.income_by_category] == ["freelance", "salary"]
    assert all(c.is_essential is None for c in s.income_by_category)
    assert s.income_by_category[0].percentage == Decimal("50")


def test_category_labels():
    assert category_label("rent") == "Rent/Mortgage"
    assert category_label("salary") == "Salary"
    assert category_label("pets") == "pets"


def test_negative_stored_amount_fails():
    with pytest.raises(InvalidAmount):
        build_budget_summary([], [_expense(1, -5)])


def test_get_budget_summary_reads_only_the_users_active_rows(tmp_path: Path):
    db_path = tmp_path / "lifelog.db"
    run_migrations(db_path)
    store = SqliteRecordStore(db_path)

    store.create_recurring_amount(
        "income", "u1", {"name": "Salary", "amount_cents": 400000, "frequency": "monthly", "category": "salary"}
    )
    store.create_recurring_amount(
        "expense",
        "u1",
        {"name": "Rent", "amount_cents": 120000, "frequency": "monthly", "category": "rent", "is_essential": 1},
    )
    store.create_recurring_amount(
        "expense",
        "u1",
        {"name": "Old gym", "amount_cents": 5000, "frequency": "monthly", "category": "health", "is_active": 0},
    )
    store.create_recurring_amount(
        "income", "u2", {"name": "Other", "amount_cents": 100, "frequency": "monthly", "category": "salary"}
    )

    s = get_budget_summary("u1", store=store)
    assert s.total_monthly_income == Decimal("4000")
    assert s.total_monthly_expenses == Decimal("1200")
    assert s.savings_rate == Decimal("70")
    assert [c.category for c in s.expenses_by_category] == ["rent"]
    assert s.expenses_by_category[0].is_essential is True

    empty = get_budget_summary("nobody", store=store)
    assert empty.total_monthly_income == 0
    assert empty.savings_rate == 0
