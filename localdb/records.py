"""SQLite-backed record store for habits, habit entries and recurring amounts.

Every read and write is scoped by ``user_id``. Money lives in integer cents
on disk and comes back as ``Decimal`` units. Habit entries are keyed by the
user's local calendar day (``day_key``, YYYY-MM-DD), with one row per
(habit_id, day_key) enforced by a unique index.
"""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional


AmountKind = Literal["income", "expense"]

# amount_cents is a signed 64-bit SQLite INTEGER
MAX_AMOUNT_CENTS = 2**63 - 1

_AMOUNT_TABLES: Dict[str, str] = {
    "income": "income_sources",
    "expense": "recurring_expenses",
}
# Columns callers may set through create/update, per kind
_AMOUNT_FIELDS: Dict[str, tuple] = {
    "income": ("name", "amount_cents", "frequency", "category", "is_primary", "description", "is_active"),
    "expense": ("name", "amount_cents", "frequency", "category", "due_day", "description", "is_active", "is_essential"),
}


@dataclass(frozen=True)
class Habit:
    id: int
    user_id: str
    title: str
    description: Optional[str]
    emoji: str
    is_archived: bool
    created_at: datetime
    category_id: Optional[int] = None


@dataclass(frozen=True)
class HabitCategory:
    id: int
    user_id: str
    name: str
    emoji: str
    color: str


@dataclass(frozen=True)
class HabitEntry:
    id: int
    habit_id: int
    user_id: str
    day_key: date
    completed: bool
    notes: Optional[str]
    completed_at: Optional[datetime]
    created_at: datetime


@dataclass(frozen=True)
class RecurringAmount:
    """Income source or recurring expense.

    ``kind`` tags the variant; ``is_essential`` is only meaningful for
    expenses and ``is_primary`` only for income.
    """

    kind: AmountKind
    id: int
    user_id: str
    name: str
    amount: Decimal
    frequency: str
    category: str
    is_active: bool
    is_essential: Optional[bool] = None
    is_primary: bool = False
    due_day: Optional[int] = None
    description: Optional[str] = None


def default_db_path() -> Path:
    # Allow override via env var to support tests
    env = os.getenv("LIFELOG_DB_PATH")
    if env:
        return Path(env)
    return Path("localdb/lifelog.db")


def _connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


def _to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _from_iso(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _cents_to_amount(cents: Any) -> Decimal:
    return Decimal(int(cents or 0)) / 100


def _row_to_habit(row: sqlite3.Row) -> Habit:
    return Habit(
        id=int(row["id"]),
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        emoji=row["emoji"] or "",
        is_archived=bool(row["is_archived"]),
        created_at=_from_iso(row["created_at"]),
        category_id=int(row["category_id"]) if row["category_id"] is not None else None,
    )


def _row_to_category(row: sqlite3.Row) -> HabitCategory:
    return HabitCategory(
        id=int(row["id"]),
        user_id=row["user_id"],
        name=row["name"],
        emoji=row["emoji"] or "",
        color=row["color"],
    )


def _row_to_entry(row: sqlite3.Row) -> HabitEntry:
    return HabitEntry(
        id=int(row["id"]),
        habit_id=int(row["habit_id"]),
        user_id=row["user_id"],
        day_key=date.fromisoformat(row["day_key"]),
        completed=bool(row["completed"]),
        notes=row["notes"],
        completed_at=_from_iso(row["completed_at"]),
        created_at=_from_iso(row["created_at"]),
    )


def _row_to_amount(kind: AmountKind, row: sqlite3.Row) -> RecurringAmount:
    keys = row.keys()
    return RecurringAmount(
        kind=kind,
        id=int(row["id"]),
        user_id=row["user_id"],
        name=row["name"],
        amount=_cents_to_amount(row["amount_cents"]),
        frequency=row["frequency"],
        category=row["category"],
        is_active=bool(row["is_active"]),
        is_essential=bool(row["is_essential"]) if "is_essential" in keys else None,
        is_primary=bool(row["is_primary"]) if "is_primary" in keys else False,
        due_day=int(row["due_day"]) if "due_day" in keys and row["due_day"] is not None else None,
        description=row["description"],
    )


class SqliteRecordStore:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path is not None else default_db_path()

    # ---- users ---------------------------------------------------------

    def get_user_timezone(self, user_id: str) -> Optional[str]:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT timezone FROM users WHERE id = ?", (user_id,)).fetchone()
        return row["timezone"] if row else None

    def set_user_timezone(self, user_id: str, tz_name: str) -> None:
        with _connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO users(id, timezone, created_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET timezone = excluded.timezone
                """,
                (user_id, tz_name, _now_iso()),
            )

    # ---- habits --------------------------------------------------------

    def list_active_habits(self, user_id: str) -> List[Habit]:
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM habits
                WHERE user_id = ? AND is_archived = 0
                ORDER BY created_at DESC, id DESC
                """,
                (user_id,),
            ).fetchall()
        return [_row_to_habit(r) for r in rows]

    def get_habit(self, habit_id: int, user_id: str) -> Optional[Habit]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM habits WHERE id = ? AND user_id = ?",
                (habit_id, user_id),
            ).fetchone()
        return _row_to_habit(row) if row else None

    def create_habit(
        self,
        user_id: str,
        title: str,
        *,
        description: Optional[str] = None,
        emoji: str = "",
        category_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> Habit:
        created = _to_iso(created_at) if created_at is not None else _now_iso()
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                """
                INSERT INTO habits(user_id, title, description, emoji, category_id, is_archived, created_at)
                VALUES (?,?,?,?,?,0,?)
                """,
                (user_id, title, description, emoji, category_id, created),
            )
            row = conn.execute("SELECT * FROM habits WHERE id = ?", (cur.lastrowid,)).fetchone()
        return _row_to_habit(row)

    def archive_habit(self, habit_id: int, user_id: str) -> bool:
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE habits SET is_archived = 1 WHERE id = ? AND user_id = ?",
                (habit_id, user_id),
            )
        return cur.rowcount > 0

    # ---- habit categories ----------------------------------------------

    def list_habit_categories(self, user_id: str) -> List[HabitCategory]:
        with _connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM habit_categories WHERE user_id = ? ORDER BY name ASC, id ASC",
                (user_id,),
            ).fetchall()
        return [_row_to_category(r) for r in rows]

    def get_habit_category(self, category_id: int, user_id: str) -> Optional[HabitCategory]:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM habit_categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
        return _row_to_category(row) if row else None

    def create_habit_category(self, user_id: str, name: str, *, emoji: str = "", color: str = "#64748b") -> HabitCategory:
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                "INSERT INTO habit_categories(user_id, name, emoji, color, created_at) VALUES (?,?,?,?,?)",
                (user_id, name, emoji, color, _now_iso()),
            )
            row = conn.execute("SELECT * FROM habit_categories WHERE id = ?", (cur.lastrowid,)).fetchone()
        return _row_to_category(row)

    def update_habit_category(self, category_id: int, user_id: str, fields: Dict[str, Any]) -> Optional[HabitCategory]:
        cols = [c for c in ("name", "emoji", "color") if c in fields]
        with _connect(self.db_path) as conn:
            if cols:
                assignments = ", ".join(f"{c} = ?" for c in cols)
                conn.execute(
                    f"UPDATE habit_categories SET {assignments} WHERE id = ? AND user_id = ?",
                    [*(fields[c] for c in cols), category_id, user_id],
                )
            row = conn.execute(
                "SELECT * FROM habit_categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
        return _row_to_category(row) if row else None

    def count_habits_in_category(self, category_id: int, user_id: str) -> int:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(1) FROM habits WHERE category_id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
        return int(row[0])

    def delete_habit_category(self, category_id: int, user_id: str) -> bool:
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM habit_categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            )
        return cur.rowcount > 0

    # ---- habit entries -------------------------------------------------

    def find_habit_entries(
        self,
        user_id: str,
        habit_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[HabitEntry]:
        """Entries for a user, optionally one habit, with day_key in [start, end]."""
        where = ["user_id = ?"]
        params: list[Any] = [user_id]
        if habit_id is not None:
            where.append("habit_id = ?")
            params.append(habit_id)
        # ISO day keys compare correctly as strings
        if start is not None:
            where.append("day_key >= ?")
            params.append(start.isoformat())
        if end is not None:
            where.append("day_key <= ?")
            params.append(end.isoformat())
        sql = "SELECT * FROM habit_entries WHERE " + " AND ".join(where) + " ORDER BY day_key ASC, habit_id ASC, id ASC"
        with _connect(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_entry(r) for r in rows]

    def upsert_habit_entry(
        self,
        habit_id: int,
        user_id: str,
        day_key: date,
        completed: bool,
        notes: Optional[str],
        completed_at: Optional[datetime],
    ) -> HabitEntry:
        """Insert or update the single entry for (habit_id, day_key) in one statement."""
        with _connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO habit_entries(habit_id, user_id, day_key, completed, notes, completed_at, created_at)
                VALUES (?,?,?,?,?,?,?)
                ON CONFLICT(habit_id, day_key) DO UPDATE SET
                    completed = excluded.completed,
                    notes = excluded.notes,
                    completed_at = excluded.completed_at
                """,
                (
                    habit_id,
                    user_id,
                    day_key.isoformat(),
                    1 if completed else 0,
                    notes,
                    _to_iso(completed_at) if completed_at is not None else None,
                    _now_iso(),
                ),
            )
            row = conn.execute(
                "SELECT * FROM habit_entries WHERE habit_id = ? AND day_key = ?",
                (habit_id, day_key.isoformat()),
            ).fetchone()
        return _row_to_entry(row)

    # ---- recurring amounts ---------------------------------------------

    def list_recurring_amounts(self, kind: AmountKind, user_id: str, *, active_only: bool = False) -> List[RecurringAmount]:
        table = _AMOUNT_TABLES[kind]
        sql = f"SELECT * FROM {table} WHERE user_id = ?"
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY created_at DESC, id DESC"
        with _connect(self.db_path) as conn:
            rows = conn.execute(sql, (user_id,)).fetchall()
        return [_row_to_amount(kind, r) for r in rows]

    def list_active_income_sources(self, user_id: str) -> List[RecurringAmount]:
        return self.list_recurring_amounts("income", user_id, active_only=True)

    def list_active_recurring_expenses(self, user_id: str) -> List[RecurringAmount]:
        return self.list_recurring_amounts("expense", user_id, active_only=True)

    def get_recurring_amount(self, kind: AmountKind, amount_id: int, user_id: str) -> Optional[RecurringAmount]:
        table = _AMOUNT_TABLES[kind]
        with _connect(self.db_path) as conn:
            row = conn.execute(
                f"SELECT * FROM {table} WHERE id = ? AND user_id = ?",
                (amount_id, user_id),
            ).fetchone()
        return _row_to_amount(kind, row) if row else None

    def create_recurring_amount(self, kind: AmountKind, user_id: str, fields: Dict[str, Any]) -> RecurringAmount:
        table = _AMOUNT_TABLES[kind]
        cols = [c for c in _AMOUNT_FIELDS[kind] if c in fields]
        values = [fields[c] for c in cols]
        placeholders = ",".join("?" for _ in range(len(cols) + 2))
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                f"INSERT INTO {table}(user_id, created_at, {', '.join(cols)}) VALUES ({placeholders})",
                [user_id, _now_iso(), *values],
            )
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (cur.lastrowid,)).fetchone()
        return _row_to_amount(kind, row)

    def update_recurring_amount(
        self, kind: AmountKind, amount_id: int, user_id: str, fields: Dict[str, Any]
    ) -> Optional[RecurringAmount]:
        """Partial update; returns None when the row does not exist for this user."""
        table = _AMOUNT_TABLES[kind]
        cols = [c for c in _AMOUNT_FIELDS[kind] if c in fields]
        with _connect(self.db_path) as conn:
            if cols:
                assignments = ", ".join(f"{c} = ?" for c in cols)
                cur = conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ? AND user_id = ?",
                    [*(fields[c] for c in cols), amount_id, user_id],
                )
                if cur.rowcount == 0:
                    return None
            row = conn.execute(
                f"SELECT * FROM {table} WHERE id = ? AND user_id = ?",
                (amount_id, user_id),
            ).fetchone()
        return _row_to_amount(kind, row) if row else None

    def delete_recurring_amount(self, kind: AmountKind, amount_id: int, user_id: str) -> bool:
        table = _AMOUNT_TABLES[kind]
        with _connect(self.db_path) as conn:
            cur = conn.execute(f"DELETE FROM {table} WHERE id = ? AND user_id = ?", (amount_id, user_id))
        return cur.rowcount > 0
