from __future__ import annotations

import os
import sqlite3
import sys
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest


ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from db.migrate import run_migrations  # noqa: E402
from localdb.records import SqliteRecordStore, default_db_path  # noqa: E402


def test_migrations_apply_once(tmp_path):
    db = tmp_path / "nested" / "lifelog.db"
    assert run_migrations(db) == ["0001_init.sql", "0002_habit_categories.sql"]
    assert run_migrations(db) == []

    conn = sqlite3.connect(db)
    try:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    finally:
        conn.close()
    assert {
        "users",
        "habits",
        "habit_categories",
        "habit_entries",
        "income_sources",
        "recurring_expenses",
        "schema_migrations",
    } <= tables


def test_one_entry_per_habit_and_day_is_enforced(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    habit = SqliteRecordStore(db).create_habit("u1", "Read")

    conn = sqlite3.connect(db)
    try:
        insert = (
            "INSERT INTO habit_entries(habit_id, user_id, day_key, completed, created_at) "
            "VALUES (?, 'u1', '2025-03-15', 1, '2025-03-15T00:00:00.000Z')"
        )
        conn.execute(insert, (habit.id,))
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(insert, (habit.id,))
    finally:
        conn.close()


def test_default_db_path_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("LIFELOG_DB_PATH", str(tmp_path / "x.db"))
    assert default_db_path() == tmp_path / "x.db"
    monkeypatch.delenv("LIFELOG_DB_PATH")
    assert str(default_db_path()).endswith("lifelog.db")


def test_find_habit_entries_by_range(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    store = SqliteRecordStore(db)
    a = store.create_habit("u1", "A")
    b = store.create_habit("u1", "B")
    for d in (9, 10, 11):
        store.upsert_habit_entry(a.id, "u1", date(2025, 3, d), True, None, None)
    store.upsert_habit_entry(b.id, "u1", date(2025, 3, 10), False, "meh", None)

    got = store.find_habit_entries("u1", None, date(2025, 3, 10), date(2025, 3, 11))
    assert [(e.habit_id, e.day_key) for e in got] == [
        (a.id, date(2025, 3, 10)),
        (b.id, date(2025, 3, 10)),
        (a.id, date(2025, 3, 11)),
    ]
    assert [e.day_key for e in store.find_habit_entries("u1", b.id)] == [date(2025, 3, 10)]
    assert store.find_habit_entries("u2") == []


def test_habits_newest_first(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    store = SqliteRecordStore(db)
    old = store.create_habit("u1", "Old", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
    new = store.create_habit("u1", "New", emoji="📚", created_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
    assert [h.id for h in store.list_active_habits("u1")] == [new.id, old.id]
    assert store.get_habit(new.id, "u1").emoji == "📚"
    assert store.get_habit(new.id, "u2") is None


def test_amounts_round_trip_as_decimal(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    store = SqliteRecordStore(db)

    row = store.create_recurring_amount(
        "expense",
        "u1",
        {"name": "Phone", "amount_cents": 4599, "frequency": "monthly", "category": "internet", "due_day": 12},
    )
    assert row.kind == "expense"
    assert row.amount == Decimal("45.99")
    assert row.is_essential is False
    assert row.is_active is True
    assert row.due_day == 12

    income = store.create_recurring_amount(
        "income", "u1", {"name": "Pay", "amount_cents": 100, "frequency": "weekly", "category": "salary"}
    )
    assert income.is_essential is None
    assert income.is_primary is False

    assert store.update_recurring_amount("expense", row.id, "u2", {"amount_cents": 1}) is None
    updated = store.update_recurring_amount("expense", row.id, "u1", {"is_active": 0})
    assert updated.is_active is False
    assert store.list_active_recurring_expenses("u1") == []
    assert [r.id for r in store.list_recurring_amounts("expense", "u1")] == [row.id]

    assert store.delete_recurring_amount("expense", row.id, "u2") is False
    assert store.delete_recurring_amount("expense", row.id, "u1") is True
    assert store.get_recurring_amount("expense", row.id, "u1") is None


def test_negative_cents_rejected_by_schema(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    with pytest.raises(sqlite3.IntegrityError):
        SqliteRecordStore(db).create_recurring_amount(
            "income", "u1", {"name": "Bad", "amount_cents": -1, "frequency": "monthly", "category": "other"}
        )


def test_user_timezone_upsert(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    store = SqliteRecordStore(db)
    assert store.get_user_timezone("u1") is None
    store.set_user_timezone("u1", "UTC")
    store.set_user_timezone("u1", "Asia/Kathmandu")
    assert store.get_user_timezone("u1") == "Asia/Kathmandu"


def test_habit_categories_are_scoped_and_counted(tmp_path):
    db = tmp_path / "lifelog.db"
    run_migrations(db)
    store = SqliteRecordStore(db)

    zen = store.create_habit_category("u1", "Zen", emoji="🧘")
    body = store.create_habit_category("u1", "Body")
    assert body.color == "#64748b"
    assert [c.name for c in store.list_habit_categories("u1")] == ["Body", "Zen"]
    assert store.list_habit_categories("u2") == []
    assert store.get_habit_category(zen.id, "u2") is None

    habit = store.create_habit("u1", "Sit", category_id=zen.id)
    assert habit.category_id == zen.id
    assert store.count_habits_in_category(zen.id, "u1") == 1
    assert store.count_habits_in_category(body.id, "u1") == 0

    renamed = store.update_habit_category(body.id, "u1", {"name": "Fitness", "color": "#22c55e", "id": 99})
    assert (renamed.id, renamed.name, renamed.color) == (body.id, "Fitness", "#22c55e")
    assert store.update_habit_category(body.id, "u2", {"name": "Nope"}) is None

    assert store.delete_habit_category(body.id, "u2") is False
    assert store.delete_habit_category(body.id, "u1") is True
    assert store.get_habit_category(body.id, "u1") is None
