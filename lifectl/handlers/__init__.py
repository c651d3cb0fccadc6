from .admin_handlers import db_migrate, db_reset
from .report_handlers import budget_summary, habits_day, habits_month

__all__ = [
    "db_migrate",
    "db_reset",
    "budget_summary",
    "habits_day",
    "habits_month",
]
