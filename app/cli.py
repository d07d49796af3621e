"""
Operator command line for the batch aggregator.

    python -m app.cli run
    python -m app.cli backfill --days 90
    python -m app.cli backfill --start 2025-01-01 --end 2025-12-31

Runs in the foreground against DATABASE_URL and honours the same run guard
as the in-process scheduler.
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from typing import Optional

from app.core.config import settings
from app.core.errors import AnalyticsException
from app.core.log_setup import configure_logging
from app.services.aggregator import RunReport, RunStatus, backfill, backfill_days, run_scheduled_cycle

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="app.cli", description="Journal mood aggregation jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="run one scheduled cycle for the trailing window")

    bf = sub.add_parser("backfill", help="populate derived tables for a historical range")
    bf.add_argument("--days", type=int, help=f"trailing days ending today (default {settings.BACKFILL_DEFAULT_DAYS})")
    bf.add_argument("--start", type=_parse_date, help="first day, YYYY-MM-DD")
    bf.add_argument("--end", type=_parse_date, help="last day, YYYY-MM-DD")
    return parser


def _exit_code(report: RunReport) -> int:
    print(
        f"{report.status}: {report.start} -> {report.end}, "
        f"{report.users_processed} user(s), {report.days_computed} day(s), "
        f"{len(report.failures)} failure(s)"
    )
    return 0 if report.status in (RunStatus.OK, RunStatus.SKIPPED) else 2


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    if args.command == "run":
        return _exit_code(run_scheduled_cycle())

    if (args.start is None) != (args.end is None):
        parser.error("--start and --end must be given together")
    if args.start is not None and args.days is not None:
        parser.error("use either --days or --start/--end")
    if args.days is not None and args.days < 1:
        parser.error("--days must be at least 1")

    try:
        if args.start is not None:
            report = backfill(args.start, args.end)
        else:
            report = backfill_days(args.days)
    except AnalyticsException as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    return _exit_code(report)


if __name__ == "__main__":
    sys.exit(main())
