from __future__ import annotations

from datetime import date


class HabitNotFound(LookupError):
    """Habit id does not exist or belongs to another user."""

    def __init__(self, habit_id: int, user_id: str) -> None:
        super().__init__(f"Habit {habit_id} not found for user {user_id}")
        self.habit_id = habit_id
        self.user_id = user_id


class MultipleEntriesForDay(RuntimeError):
    """More than one stored entry for the same (habit, day): data corruption, not user error."""

    def __init__(self, habit_id: int, day_key: date, count: int) -> None:
        super().__init__(f"Habit {habit_id} has {count} entries for {day_key.isoformat()}")
        self.habit_id = habit_id
        self.day_key = day_key
        self.count = count
