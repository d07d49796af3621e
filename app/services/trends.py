"""
Trend Cache Builder and trend read path.

build_trend_cache(db, user_id, start, end, granularity)  -> list[TrendPoint]  (upsert)
compute_trend(db, user_id, start, end)                   -> list[TrendPoint]  (pure read)
get_trend(db, user_id, start, end, granularity)          -> TrendRead         (cache, else compute)

The cache is an optimization only. The read path never writes: on a miss or
an unparsable payload it computes the series straight from entries.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import InvalidDateRangeError, UnsupportedGranularityError
from app.db.upsert import upsert
from app.models.mood_trend_cache import MoodTrendCache
from app.services.daily_aggregates import mean_score
from app.services.entry_store import scores_by_day

logger = logging.getLogger(__name__)

SUPPORTED_GRANULARITIES = ("day",)


@dataclass
class TrendPoint:
    date: date
    avg: Optional[float]

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "avg": self.avg}


@dataclass
class TrendRead:
    points: list[TrendPoint]
    cached: bool


def _check_key(start: date, end: date, granularity: str) -> None:
    if granularity not in SUPPORTED_GRANULARITIES:
        raise UnsupportedGranularityError(granularity)
    if start > end:
        raise InvalidDateRangeError(start, end)


def compute_trend(db: Session, user_id: int, start: date, end: date) -> list[TrendPoint]:
    """Per-day average for every day in range that has entries, oldest first."""
    grouped = scores_by_day(db, user_id, start, end)
    return [TrendPoint(date=d, avg=mean_score(scores)) for d, scores in grouped.items()]


def build_trend_cache(
    db: Session,
    user_id: int,
    start: date,
    end: date,
    granularity: str = "day",
) -> list[TrendPoint]:
    _check_key(start, end, granularity)
    points = compute_trend(db, user_id, start, end)
    upsert(
        db,
        MoodTrendCache,
        values={
            "user_id": user_id,
            "range_start": start,
            "range_end": end,
            "granularity": granularity,
            "data": json.dumps([p.to_dict() for p in points]),
            "generated_at": func.now(),
        },
        key=("user_id", "range_start", "range_end", "granularity"),
    )
    db.commit()
    return points


def _parse_points(text: str) -> list[TrendPoint]:
    """Raises ValueError / TypeError / KeyError on a malformed payload."""
    raw = json.loads(text)
    if not isinstance(raw, list):
        raise ValueError("trend payload is not a list")
    points = []
    for item in raw:
        avg = item["avg"]
        points.append(TrendPoint(
            date=date.fromisoformat(item["date"]),
            avg=float(avg) if avg is not None else None,
        ))
    return points


def get_trend(
    db: Session,
    user_id: int,
    start: date,
    end: date,
    granularity: str = "day",
) -> TrendRead:
    _check_key(start, end, granularity)
    row = (
        db.query(MoodTrendCache)
        .filter(
            MoodTrendCache.user_id == user_id,
            MoodTrendCache.range_start == start,
            MoodTrendCache.range_end == end,
            MoodTrendCache.granularity == granularity,
        )
        .first()
    )
    if row is not None and row.data:
        try:
            return TrendRead(points=_parse_points(row.data), cached=True)
        except (ValueError, TypeError, KeyError):
            logger.warning(
                "Unparsable trend cache for user=%s %s..%s, computing fresh",
                user_id, start, end,
            )
    return TrendRead(points=compute_trend(db, user_id, start, end), cached=False)
