from __future__ import annotations

import sqlite3
from pathlib import Path

from db.migrate import run_migrations


def db_migrate(db_path: Path) -> int:
    applied = run_migrations(db_path)
    if applied:
        print("Applied migrations:", ", ".join(applied))
    else:
        print("No pending migrations.")
    return 0


def db_reset(db_path: Path, *, force: bool = False) -> int:
    """Delete the DB file and re-create the schema.

    Refuses to touch an existing file unless ``force`` is set.
    """
    if db_path.exists():
        if not force:
            print(f"[abort] DB exists at {db_path}. Re-run with --force to delete and reset.")
            return 3
        try:
            db_path.unlink()
        except OSError as e:
            print(f"[error] Failed deleting DB {db_path}: {e}")
            return 1
        print(f"[reset] Deleted existing DB: {db_path}")

    try:
        applied = run_migrations(db_path)
    except sqlite3.Error as e:
        print(f"[error] Schema init failed: {e}")
        return 1
    print(
        "[reset] Schema initialized. "
        + (f"Applied: {', '.join(applied)}" if applied else "No pending migrations.")
    )
    return 0
