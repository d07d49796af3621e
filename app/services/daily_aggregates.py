"""
Daily Aggregate Computer.

Reduces one owner's entries on one calendar date into a DailyMoodAggregate:
entry count, mean mood score, label histogram and dominant label.

Reads from: entries.  Writes to: daily_mood_aggregates only (single-statement
upsert by user_id + day). Commits once per call.

Public API
----------
summarize_day(entries)                      -> DailySummary   (pure)
compute_daily_aggregate(db, user_id, day)   -> DailySummary   (upsert)
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.upsert import upsert
from app.models.daily_mood_aggregate import DailyMoodAggregate
from app.services.entry_store import entries_for_day

UNKNOWN_LABEL = "unknown"


@dataclass
class DailySummary:
    day: date
    entries_count: int
    avg_mood_score: Optional[float]
    dominant_mood: Optional[str]
    mood_counts: dict[str, int] = field(default_factory=dict)


def mean_score(scores: Iterable[Optional[float]]) -> Optional[float]:
    """Arithmetic mean of the present scores; None when no score is present."""
    present = [float(s) for s in scores if s is not None]
    if not present:
        return None
    return sum(present) / len(present)


def summarize_day(day: date, entries) -> DailySummary:
    """
    Pure reducer over a day's entries (anything with mood_label / mood_score).
    Entries must be in creation order: the dominant label tie-break is the
    first label encountered.
    """
    counts: dict[str, int] = {}
    for e in entries:
        label = e.mood_label or UNKNOWN_LABEL
        counts[label] = counts.get(label, 0) + 1

    dominant: Optional[str] = None
    best = 0
    for label, n in counts.items():
        if n > best:
            dominant, best = label, n

    return DailySummary(
        day=day,
        entries_count=len(entries),
        avg_mood_score=mean_score(e.mood_score for e in entries),
        dominant_mood=dominant,
        mood_counts=counts,
    )


def dump_counts(counts: dict[str, int]) -> Optional[str]:
    return json.dumps(counts, ensure_ascii=False) if counts else None


def load_counts(text: Optional[str]) -> Optional[dict[str, int]]:
    """Decode a stored histogram. Returns None when the payload is malformed."""
    if not text:
        return {}
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    if not isinstance(value, dict):
        return None
    return value


def compute_daily_aggregate(db: Session, user_id: int, day: date) -> DailySummary:
    """Recompute and upsert the aggregate for (user_id, day)."""
    summary = summarize_day(day, entries_for_day(db, user_id, day))
    upsert(
        db,
        DailyMoodAggregate,
        values={
            "user_id": user_id,
            "day": day,
            "entries_count": summary.entries_count,
            "avg_mood_score": summary.avg_mood_score,
            "dominant_mood": summary.dominant_mood,
            "mood_counts": dump_counts(summary.mood_counts),
            "computed_at": func.now(),
        },
        key=("user_id", "day"),
    )
    db.commit()
    return summary
