import argparse
import os
import sys
from pathlib import Path

from .handlers import admin_handlers, report_handlers


DEFAULT_DB_PATH = Path(os.getenv("LIFELOG_DB_PATH") or "localdb/lifelog.db")


def _add_common_db_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        type=Path,
        default=DEFAULT_DB_PATH,
        help=f"Path to SQLite DB (default: {DEFAULT_DB_PATH})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lifectl", description="Lifelog ops CLI")
    subparsers = parser.add_subparsers(dest="command")

    # db group
    db_parser = subparsers.add_parser("db", help="Database utilities")
    db_sub = db_parser.add_subparsers(dest="db_command")
    migrate_parser = db_sub.add_parser("migrate", help="Run DB migrations")
    _add_common_db_arg(migrate_parser)

    reset_parser = db_sub.add_parser("reset", help="Delete the DB file and re-create the schema")
    _add_common_db_arg(reset_parser)
    reset_parser.add_argument(
        "--force",
        action="store_true",
        help="Do not prompt; proceed with destructive reset",
    )

    # budget group
    budget_parser = subparsers.add_parser("budget", help="Budget reports")
    budget_sub = budget_parser.add_subparsers(dest="budget_command")
    summary_parser = budget_sub.add_parser("summary", help="Monthly budget summary as JSON")
    summary_parser.add_argument("--user", required=True, help="User id")
    _add_common_db_arg(summary_parser)

    # habits group
    habits_parser = subparsers.add_parser("habits", help="Habit reports")
    habits_sub = habits_parser.add_subparsers(dest="habits_command")

    day_parser = habits_sub.add_parser("day", help="Habits for one local day as JSON")
    day_parser.add_argument("--user", required=True, help="User id")
    day_parser.add_argument("--date", required=True, help="Local day, YYYY-MM-DD")
    day_parser.add_argument("--tz", default=None, help="IANA timezone (default: user's stored zone)")
    _add_common_db_arg(day_parser)

    month_parser = habits_sub.add_parser("month", help="Per-day completion counts for a month as JSON")
    month_parser.add_argument("--user", required=True, help="User id")
    month_parser.add_argument("--year", type=int, required=True)
    month_parser.add_argument("--month", type=int, required=True)
    month_parser.add_argument("--tz", default=None, help="IANA timezone (default: user's stored zone)")
    _add_common_db_arg(month_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Dispatch
    if args.command == "db" and args.db_command == "migrate":
        return admin_handlers.db_migrate(args.db)

    if args.command == "db" and args.db_command == "reset":
        return admin_handlers.db_reset(args.db, force=args.force)

    if args.command == "budget" and args.budget_command == "summary":
        return report_handlers.budget_summary(args.db, args.user)

    if args.command == "habits" and args.habits_command == "day":
        return report_handlers.habits_day(args.db, args.user, args.date, args.tz)

    if args.command == "habits" and args.habits_command == "month":
        return report_handlers.habits_month(args.db, args.user, args.year, args.month, args.tz)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
