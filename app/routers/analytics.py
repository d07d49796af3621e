"""
Analytics read router.

GET  /analytics/users/{user_id}/today          — today's mood summary
GET  /analytics/users/{user_id}/happiest-day   — best aggregated day
GET  /analytics/users/{user_id}/lowest-day     — worst aggregated day
GET  /analytics/users/{user_id}/trend          — daily average series (cache, else computed)
GET  /analytics/users/{user_id}/tags           — tag vs mood stats
GET  /analytics/users/{user_id}/streaks        — writing streak
GET  /analytics/users/{user_id}/mood-highlights — best recent days and most positive tags
GET  /analytics/users/{user_id}/insights       — recent narrative insights
POST /analytics/users/{user_id}/insights       — generate an insight now

Handlers only read derived tables (the insight POST goes through the
Insight Generator). A missing or malformed derived value is recomputed from
entries instead of surfacing an error.
"""
from __future__ import annotations

import json
import logging
from datetime import date, timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import today as service_today
from app.core.errors import UserNotFoundError
from app.db.base import get_db
from app.models.daily_mood_aggregate import DailyMoodAggregate
from app.models.mood_insight import MoodInsight
from app.models.tag_mood_stat import TagMoodStat
from app.models.user import User
from app.schemas.analytics import (
    DayScoreEnvelope,
    DayScoreResponse,
    GenerateInsightRequest,
    HighlightDayResponse,
    InsightListResponse,
    InsightResponse,
    MoodHighlightsResponse,
    PositiveTagResponse,
    StreakResponse,
    TagStatListResponse,
    TagStatResponse,
    TodayMoodResponse,
    TrendPointResponse,
    TrendResponse,
)
from app.schemas.common import ErrorResponse
from app.services.daily_aggregates import load_counts, summarize_day
from app.services.entry_store import entries_for_day
from app.services.highlights import mood_highlights
from app.services.insights import INSIGHT_TYPE_AUTO, generate_mood_insight, list_insights
from app.services.streaks import get_writing_streak
from app.services.trends import get_trend

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analytics/users/{user_id}",
    tags=["analytics"],
    responses={404: {"model": ErrorResponse, "description": "Unknown user."}},
)

DEFAULT_TREND_DAYS = 30
_RANGE_PATTERN = r"^[1-9]\d{0,3}d$"


def _require_user(user_id: int, db: Session = Depends(get_db)) -> int:
    if db.get(User, user_id) is None:
        raise UserNotFoundError(user_id)
    return user_id


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_insight(raw: Optional[str]) -> tuple[str, Optional[dict[str, Any]]]:
    if not raw:
        return "", None
    try:
        payload = json.loads(raw)
    except (ValueError, TypeError):
        return "", None
    if not isinstance(payload, dict):
        return "", None
    structured = payload.get("structured")
    return str(payload.get("summary") or ""), structured if isinstance(structured, dict) else None


def _insight_to_response(row: MoodInsight) -> InsightResponse:
    summary, structured = _parse_insight(row.insights)
    return InsightResponse(
        id=row.id,
        date_from=str(row.date_from),
        date_to=str(row.date_to),
        insight_type=row.insight_type,
        summary=summary,
        structured=structured,
        generated_by=row.generated_by,
        generated_at=_iso(row.generated_at),
    )


def _extreme_day(db: Session, user_id: int, highest: bool) -> DayScoreEnvelope:
    order = DailyMoodAggregate.avg_mood_score.desc() if highest else DailyMoodAggregate.avg_mood_score.asc()
    row = (
        db.query(DailyMoodAggregate)
        .filter(
            DailyMoodAggregate.user_id == user_id,
            DailyMoodAggregate.avg_mood_score.isnot(None),
        )
        .order_by(order, DailyMoodAggregate.day)
        .first()
    )
    if row is None:
        return DayScoreEnvelope(data=None)
    return DayScoreEnvelope(data=DayScoreResponse(
        date=str(row.day),
        avg_mood_score=row.avg_mood_score,
        entries_count=row.entries_count,
    ))


# ---------------------------------------------------------------------------
# GET /today
# ---------------------------------------------------------------------------

@router.get("/today", response_model=TodayMoodResponse, summary="Today's mood summary")
def today_mood(
    user_id: int = Depends(_require_user),
    db: Session = Depends(get_db),
):
    """
    Uses the stored DailyMoodAggregate when it is current (same entry count)
    and its histogram parses; otherwise summarizes today's entries directly.
    """
    day = service_today()
    entries = entries_for_day(db, user_id, day)
    row = (
        db.query(DailyMoodAggregate)
        .filter(DailyMoodAggregate.user_id == user_id, DailyMoodAggregate.day == day)
        .first()
    )
    if row is not None and row.entries_count == len(entries):
        counts = load_counts(row.mood_counts)
        if counts is not None:
            return TodayMoodResponse(
                date=str(day),
                entries_count=row.entries_count,
                avg_mood_score=row.avg_mood_score,
                dominant_mood=row.dominant_mood,
                mood_counts=counts or None,
            )
        logger.warning("Malformed mood_counts for user=%s day=%s, recomputing", user_id, day)

    summary = summarize_day(day, entries)
    return TodayMoodResponse(
        date=str(day),
        entries_count=summary.entries_count,
        avg_mood_score=summary.avg_mood_score,
        dominant_mood=summary.dominant_mood,
        mood_counts=summary.mood_counts or None,
    )


# ---------------------------------------------------------------------------
# GET /happiest-day, /lowest-day
# ---------------------------------------------------------------------------

@router.get("/happiest-day", response_model=DayScoreEnvelope, summary="Highest-average day")
def happiest_day(user_id: int = Depends(_require_user), db: Session = Depends(get_db)):
    return _extreme_day(db, user_id, highest=True)


@router.get("/lowest-day", response_model=DayScoreEnvelope, summary="Lowest-average day")
def lowest_day(user_id: int = Depends(_require_user), db: Session = Depends(get_db)):
    return _extreme_day(db, user_id, highest=False)


# ---------------------------------------------------------------------------
# GET /trend
# ---------------------------------------------------------------------------

@router.get("/trend", response_model=TrendResponse, summary="Daily mood trend")
def mood_trend(
    date_from: Optional[date] = Query(default=None, alias="from", examples=["2026-09-18"]),
    date_to: Optional[date] = Query(default=None, alias="to", examples=["2026-10-17"]),
    range_: Optional[str] = Query(
        default=None, alias="range",
        description='Trailing window ending today, e.g. "7d" or "30d". Overrides from/to.',
        examples=["7d"], pattern=_RANGE_PATTERN,
    ),
    granularity: str = Query(default="day"),
    user_id: int = Depends(_require_user),
    db: Session = Depends(get_db),
):
    """
    Serves the cached series for exactly (from, to, granularity) when the
    batch aggregator has built it; otherwise computes it from entries.
    Defaults to the last 30 days. A `range` that is not a positive day
    count like "7d" is rejected with 422.
    """
    end = date_to or service_today()
    start = date_from or end - timedelta(days=DEFAULT_TREND_DAYS - 1)
    if range_:
        end = service_today()
        start = end - timedelta(days=int(range_[:-1]) - 1)

    result = get_trend(db, user_id, start, end, granularity)
    return TrendResponse(
        range_start=str(start),
        range_end=str(end),
        granularity=granularity,
        cached=result.cached,
        data=[TrendPointResponse(date=str(p.date), avg=p.avg) for p in result.points],
    )


# ---------------------------------------------------------------------------
# GET /tags
# ---------------------------------------------------------------------------

@router.get("/tags", response_model=TagStatListResponse, summary="Tag vs mood statistics")
def tags_vs_mood(
    limit: int = Query(default=50, ge=1, le=200),
    user_id: int = Depends(_require_user),
    db: Session = Depends(get_db),
):
    q = db.query(TagMoodStat).filter(TagMoodStat.user_id == user_id)
    total = q.count()
    rows = q.order_by(TagMoodStat.occurrences.desc(), TagMoodStat.tag).limit(limit).all()
    return TagStatListResponse(
        total=total,
        items=[
            TagStatResponse(
                tag=r.tag,
                occurrences=r.occurrences,
                avg_mood_score=r.avg_mood_score,
                last_seen=_iso(r.last_seen),
            )
            for r in rows
        ],
    )


# ---------------------------------------------------------------------------
# GET /streaks
# ---------------------------------------------------------------------------

@router.get("/streaks", response_model=StreakResponse, summary="Writing streak")
def streaks(user_id: int = Depends(_require_user), db: Session = Depends(get_db)):
    s = get_writing_streak(db, user_id)
    return StreakResponse(
        current_streak=s.current_streak,
        longest_streak=s.longest_streak,
        last_written_date=_iso(s.last_written_date),
    )


# ---------------------------------------------------------------------------
# GET /mood-highlights
# ---------------------------------------------------------------------------

@router.get("/mood-highlights", response_model=MoodHighlightsResponse, summary="Mood highlights")
def highlights(user_id: int = Depends(_require_user), db: Session = Depends(get_db)):
    """
    Top 5 days by average mood over the last 30 days, tags seen at least
    twice ordered by average mood, and a one-line note built from them.
    """
    h = mood_highlights(db, user_id, service_today())
    return MoodHighlightsResponse(
        date_from=str(h.date_from),
        date_to=str(h.date_to),
        happiest_days=[
            HighlightDayResponse(date=str(d.date), avg_mood_score=d.avg_mood_score, entries_count=d.entries_count)
            for d in h.happiest_days
        ],
        top_positive_tags=[
            PositiveTagResponse(tag=t.tag, avg_mood_score=t.avg_mood_score, occurrences=t.occurrences)
            for t in h.top_positive_tags
        ],
        note=h.note,
    )


# ---------------------------------------------------------------------------
# GET/POST /insights
# ---------------------------------------------------------------------------

@router.get("/insights", response_model=InsightListResponse, summary="Recent narrative insights")
def insights(
    limit: int = Query(default=20, ge=1, le=100),
    user_id: int = Depends(_require_user),
    db: Session = Depends(get_db),
):
    return InsightListResponse(
        items=[_insight_to_response(row) for row in list_insights(db, user_id, limit)]
    )


@router.post("/insights", response_model=InsightResponse, summary="Generate a narrative insight now")
def generate_insight(
    body: GenerateInsightRequest,
    user_id: int = Depends(_require_user),
    db: Session = Depends(get_db),
):
    """
    Runs the Insight Generator for the given range. Falls back to a
    deterministic summary when the text-generation service is unavailable.
    """
    result = generate_mood_insight(db, user_id, body.date_from, body.date_to)
    return InsightResponse(
        date_from=str(body.date_from),
        date_to=str(body.date_to),
        insight_type=INSIGHT_TYPE_AUTO,
        summary=result.summary,
        structured=json.loads(json.dumps(result.facts.to_dict(), default=str)),
        generated_by=result.generated_by,
    )
