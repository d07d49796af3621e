"""
Streak Calculator — shared by the batch aggregator and the real-time updater.

Definitions
-----------
current_streak
    Consecutive written days ending at today, or at yesterday when the owner
    has not written yet today. Zero when neither today nor yesterday has an
    entry.
longest_streak
    Longest run of consecutive written days in the owner's history, never
    less than current_streak.
last_written_date
    Most recent written day.

Persistence
-----------
One upsert per call. current_streak / last_written_date are overwritten;
longest_streak is merged inside the statement as greatest(stored, computed),
so it never decreases, whichever writer lands last.

Public API
----------
calculate_streaks(dates, today)             -> StreakResult  (pure)
update_writing_streak(db, user_id, today)   -> StreakResult  (upsert, commit)
get_writing_streak(db, user_id)             -> StreakResult  (read, zeros if absent)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import today as service_today
from app.db.upsert import greatest, upsert
from app.models.writing_streak import WritingStreak
from app.services.entry_store import written_dates

_ONE_DAY = timedelta(days=1)


@dataclass
class StreakResult:
    current_streak: int
    longest_streak: int
    last_written_date: Optional[date]


def _current_streak(written: set[date], today: date) -> int:
    if today in written:
        cursor = today
    elif today - _ONE_DAY in written:
        cursor = today - _ONE_DAY
    else:
        return 0
    count = 0
    while cursor in written:
        count += 1
        cursor -= _ONE_DAY
    return count


def _longest_run(ordered: list[date]) -> int:
    longest = run = 0
    prev: Optional[date] = None
    for d in ordered:
        run = run + 1 if prev is not None and d - prev == _ONE_DAY else 1
        longest = max(longest, run)
        prev = d
    return longest


def calculate_streaks(dates: Iterable[date], today: date) -> StreakResult:
    """Pure streak computation over the owner's written dates (any order, duplicates ok)."""
    written = set(dates)
    if not written:
        return StreakResult(current_streak=0, longest_streak=0, last_written_date=None)

    ordered = sorted(written)
    current = _current_streak(written, today)
    return StreakResult(
        current_streak=current,
        longest_streak=max(_longest_run(ordered), current),
        last_written_date=ordered[-1],
    )


def update_writing_streak(
    db: Session,
    user_id: int,
    today: Optional[date] = None,
) -> StreakResult:
    """
    Recompute the owner's streak from the entry store and upsert it.
    Returns the freshly computed values; the stored longest_streak may be
    higher (see get_writing_streak).
    """
    result = calculate_streaks(written_dates(db, user_id), today or service_today())
    upsert(
        db,
        WritingStreak,
        values={
            "user_id": user_id,
            "current_streak": result.current_streak,
            "longest_streak": result.longest_streak,
            "last_written_date": result.last_written_date,
            "updated_at": func.now(),
        },
        key=("user_id",),
        merge={"longest_streak": lambda stored, new: greatest(db, stored, new)},
    )
    db.commit()
    return result


def get_writing_streak(db: Session, user_id: int) -> StreakResult:
    row = db.get(WritingStreak, user_id)
    if row is None:
        return StreakResult(current_streak=0, longest_streak=0, last_written_date=None)
    return StreakResult(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_written_date=row.last_written_date,
    )
