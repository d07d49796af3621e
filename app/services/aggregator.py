"""
Batch Runner — scheduled cycle and backfill.

For every owner, over an inclusive date window:
  1. daily aggregate for each date in the window
  2. tag–mood stats
  3. writing streak
  4. trend cache for (window_start, window_end, "day")
  5. narrative insight for the window (only when AI_INSIGHTS_ENABLED)

Each step for each (owner[, date]) is one unit of work with its own session.
A failing unit is rolled back, logged and recorded in the RunReport; the run
moves on to the next unit, so one bad owner or date never blocks the rest.

The scheduled cycle and backfill call the same function. Both hold the
database run guard for their duration; a trigger that finds it held returns
a "skipped" report immediately instead of queuing.

Public API
----------
compute_for_all_users_for_range(start, end)   -> RunReport  (no guard)
run_scheduled_cycle(today)                    -> RunReport  (trailing window, guarded)
backfill(start, end)                          -> RunReport  (explicit range, guarded)
backfill_days(days, today)                    -> RunReport
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from app.core.clock import today as service_today
from app.core.config import settings
from app.core.errors import BackfillRangeTooLargeError, InvalidDateRangeError
from app.db.base import SessionLocal
from app.services import run_lock
from app.services.daily_aggregates import compute_daily_aggregate
from app.services.entry_store import owner_ids
from app.services.insights import InsightNarrator, build_narrator, generate_mood_insight
from app.services.streaks import update_writing_streak
from app.services.tag_mood import compute_tag_mood_stats
from app.services.trends import build_trend_cache

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class RunStatus:
    OK      = "ok"
    PARTIAL = "partial"
    FAILED  = "failed"
    SKIPPED = "skipped"


@dataclass
class UnitFailure:
    user_id: Optional[int]
    step: str
    day: Optional[date]
    error: str


@dataclass
class RunReport:
    start: date
    end: date
    status: str = RunStatus.OK
    users_processed: int = 0
    days_computed: int = 0
    failures: list[UnitFailure] = field(default_factory=list)


def iter_days(start: date, end: date) -> Iterator[date]:
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def _run_unit(
    session_factory: SessionFactory,
    report: RunReport,
    step: str,
    fn: Callable,
    user_id: int,
    *args,
    day: Optional[date] = None,
) -> bool:
    db = session_factory()
    try:
        fn(db, user_id, *args)
        return True
    except Exception as exc:
        db.rollback()
        logger.exception("%s failed for user=%s day=%s", step, user_id, day)
        report.failures.append(UnitFailure(user_id=user_id, step=step, day=day, error=str(exc)))
        return False
    finally:
        db.close()


def _process_user(
    session_factory: SessionFactory,
    report: RunReport,
    user_id: int,
    narrator: Optional[InsightNarrator],
) -> None:
    start, end = report.start, report.end

    for day in iter_days(start, end):
        if _run_unit(session_factory, report, "daily_aggregate",
                     compute_daily_aggregate, user_id, day, day=day):
            report.days_computed += 1

    _run_unit(session_factory, report, "tag_mood_stats", compute_tag_mood_stats, user_id)
    _run_unit(session_factory, report, "writing_streak", update_writing_streak, user_id)
    _run_unit(session_factory, report, "trend_cache", build_trend_cache, user_id, start, end)

    if narrator is not None:
        _run_unit(session_factory, report, "mood_insight",
                  generate_mood_insight, user_id, start, end, narrator)


def compute_for_all_users_for_range(
    start: date,
    end: date,
    session_factory: SessionFactory = SessionLocal,
    insights_enabled: Optional[bool] = None,
    narrator: Optional[InsightNarrator] = None,
) -> RunReport:
    """Run every reducer for every owner over [start, end]. Never raises for per-unit errors."""
    if start > end:
        raise InvalidDateRangeError(start, end)

    report = RunReport(start=start, end=end)
    if insights_enabled is None:
        insights_enabled = settings.AI_INSIGHTS_ENABLED
    if insights_enabled and narrator is None:
        narrator = build_narrator()
    if not insights_enabled:
        narrator = None

    db = session_factory()
    try:
        users = owner_ids(db)
    except Exception as exc:
        logger.exception("Could not list owners for %s..%s", start, end)
        report.status = RunStatus.FAILED
        report.failures.append(UnitFailure(user_id=None, step="owner_ids", day=None, error=str(exc)))
        return report
    finally:
        db.close()

    logger.info("Aggregating %s user(s) for %s -> %s", len(users), start, end)
    for user_id in users:
        _process_user(session_factory, report, user_id, narrator)
        report.users_processed += 1

    if report.failures:
        report.status = RunStatus.PARTIAL
    logger.info(
        "Aggregation finished for %s -> %s: status=%s users=%s days=%s failures=%s",
        start, end, report.status, report.users_processed,
        report.days_computed, len(report.failures),
    )
    return report


def _guarded_run(
    start: date,
    end: date,
    session_factory: SessionFactory,
    **kwargs,
) -> RunReport:
    stale_after = timedelta(minutes=settings.AGGREGATOR_LOCK_STALE_MINUTES)
    db = session_factory()
    try:
        token = run_lock.try_acquire_run(db, stale_after=stale_after, window=(start, end))
    finally:
        db.close()
    if token is None:
        logger.info("Aggregator already running, skipping %s -> %s", start, end)
        return RunReport(start=start, end=end, status=RunStatus.SKIPPED)

    report = RunReport(start=start, end=end, status=RunStatus.FAILED)
    error: Optional[str] = None
    try:
        report = compute_for_all_users_for_range(start, end, session_factory, **kwargs)
    except Exception as exc:
        logger.exception("Aggregation failed for %s -> %s", start, end)
        error = str(exc)
    finally:
        db = session_factory()
        try:
            if error is None and report.failures:
                error = f"{len(report.failures)} unit(s) failed"
            run_lock.release_run(db, token, status=report.status, error=error)
        finally:
            db.close()
    return report


def run_scheduled_cycle(
    today: Optional[date] = None,
    session_factory: SessionFactory = SessionLocal,
    window_days: Optional[int] = None,
    **kwargs,
) -> RunReport:
    """Aggregate the trailing window ending today (absorbs late edits to recent entries)."""
    end = today or service_today()
    days = window_days or settings.AGGREGATOR_WINDOW_DAYS
    start = end - timedelta(days=days - 1)
    logger.info("Running scheduled aggregation for %s -> %s", start, end)
    return _guarded_run(start, end, session_factory, **kwargs)


def validate_backfill_range(start: date, end: date) -> int:
    """Return the number of days in [start, end]; raise if the range is unusable."""
    if start > end:
        raise InvalidDateRangeError(start, end)
    span = (end - start).days + 1
    if span > settings.BACKFILL_MAX_DAYS:
        raise BackfillRangeTooLargeError(settings.BACKFILL_MAX_DAYS, span)
    return span


def backfill(
    start: date,
    end: date,
    session_factory: SessionFactory = SessionLocal,
    **kwargs,
) -> RunReport:
    """Populate an explicit historical range through the same reducers as the cycle."""
    span = validate_backfill_range(start, end)
    logger.info("Backfilling %s -> %s (%s days)", start, end, span)
    return _guarded_run(start, end, session_factory, **kwargs)


def backfill_days(
    days: Optional[int] = None,
    today: Optional[date] = None,
    session_factory: SessionFactory = SessionLocal,
    **kwargs,
) -> RunReport:
    end = today or service_today()
    start = end - timedelta(days=(days or settings.BACKFILL_DEFAULT_DAYS) - 1)
    return backfill(start, end, session_factory, **kwargs)
