"""
Global configuration for the lifelog app.

Set BASE_PATH to the subpath where the app is served behind a reverse proxy
(e.g., '/lifelog'). Leave it as an empty string for root deployment ('/').

Secrets and the database path come from the environment (see .env):
LIFELOG_DB_PATH, ADMIN_TOKEN, CSRF_TOKEN, ADMIN_RATE_LIMIT.
"""

# Example: BASE_PATH = "/lifelog"
BASE_PATH = ""

# Currency settings
# Symbol used when the CLI prints money; amounts carry no currency of their own.
CURRENCY_SYMBOL = "$"

# Habit tracking
# Trailing window (days, inclusive of the viewed day) for weekly progress.
WEEKLY_WINDOW_DAYS = 7
# Upper bound for /api/habits/stats/daily?days=N
DAILY_SERIES_MAX_DAYS = 366
# Upper bound for /api/habits/stats/categories-weekly?weeks=N
CATEGORY_WEEKS_MAX = 52
