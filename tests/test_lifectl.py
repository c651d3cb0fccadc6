from __future__ import annotations

import json
import os
import sys
from datetime import date

import pytest


ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from lifectl.cli import main  # noqa: E402
from localdb.records import SqliteRecordStore  # noqa: E402


def test_db_migrate_is_idempotent(tmp_path, capsys):
    db = tmp_path / "cli.db"
    assert main(["db", "migrate", "--db", str(db)]) == 0
    assert "0001_init.sql" in capsys.readouterr().out
    assert main(["db", "migrate", "--db", str(db)]) == 0
    assert "No pending migrations." in capsys.readouterr().out


def test_db_reset_requires_force(tmp_path, capsys):
    db = tmp_path / "cli.db"
    main(["db", "migrate", "--db", str(db)])
    SqliteRecordStore(db).create_habit("u1", "Read")

    assert main(["db", "reset", "--db", str(db)]) == 3
    assert SqliteRecordStore(db).list_active_habits("u1")

    assert main(["db", "reset", "--db", str(db), "--force"]) == 0
    assert SqliteRecordStore(db).list_active_habits("u1") == []


def test_budget_summary_prints_json(tmp_path, capsys):
    db = tmp_path / "cli.db"
    main(["db", "migrate", "--db", str(db)])
    store = SqliteRecordStore(db)
    store.create_recurring_amount(
        "income", "u1", {"name": "Pay", "amount_cents": 70000, "frequency": "weekly", "category": "salary"}
    )
    capsys.readouterr()

    assert main(["budget", "summary", "--user", "u1", "--db", str(db)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["total_monthly_income"] == 3044.0
    assert out["savings_rate"] == 100.0
    assert out["currency_symbol"] == "$"


def test_habits_reports(tmp_path, capsys):
    db = tmp_path / "cli.db"
    main(["db", "migrate", "--db", str(db)])
    store = SqliteRecordStore(db)
    habit = store.create_habit("u1", "Read")
    store.upsert_habit_entry(habit.id, "u1", date(2025, 4, 30), True, None, None)
    capsys.readouterr()

    argv = ["habits", "month", "--user", "u1", "--year", "2025", "--month", "4", "--db", str(db)]
    assert main(argv + ["--tz", "Europe/Madrid"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert len(rows) == 30
    assert rows[-1] == {"date": "2025-04-30", "completed_count": 1, "total_count": 1}

    # No --tz and nothing stored
    assert main(argv) == 2
    capsys.readouterr()

    store.set_user_timezone("u1", "Europe/Madrid")
    assert main(["habits", "day", "--user", "u1", "--date", "2025-04-30", "--db", str(db)]) == 0
    day = json.loads(capsys.readouterr().out)
    assert day["range"]["start"] == "2025-04-29T22:00:00.000Z"
    assert day["habits"][0]["entry"]["completed"] is True

    assert main(["habits", "day", "--user", "u1", "--date", "2025-04-31", "--db", str(db)]) == 2


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "lifectl" in capsys.readouterr().out


def test_unknown_subcommand_exits(capsys):
    with pytest.raises(SystemExit):
        main(["nope"])
