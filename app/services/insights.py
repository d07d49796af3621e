"""
Insight Generator.

Gathers structured facts for a date range (overall average, happiest and
lowest day, trend direction, top tags, writing streak), turns them into a
short narrative and upserts a MoodInsight row keyed by
(user_id, date_from, date_to, insight_type).

Narration is a capability chosen at construction time:
  TemplateNarrator — deterministic sentence built from the facts.
  ModelNarrator    — prompts a TextGenerationClient; falls back to the
                     template on None, timeout or any error.
The feature therefore never fails, it only degrades. A failed write is
logged and swallowed; the built insight is still returned.

Public API
----------
gather_facts(db, user_id, date_from, date_to)                     -> InsightFacts
generate_mood_insight(db, user_id, date_from, date_to, narrator)  -> InsightResult
build_narrator(settings)                                          -> InsightNarrator
list_insights(db, user_id, limit)                                 -> list[MoodInsight]
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, settings as default_settings
from app.core.errors import InvalidDateRangeError
from app.db.upsert import upsert
from app.models.daily_mood_aggregate import DailyMoodAggregate
from app.models.mood_insight import MoodInsight
from app.models.tag_mood_stat import TagMoodStat
from app.services.daily_aggregates import mean_score
from app.services.entry_store import scores_by_day
from app.services.streaks import StreakResult, get_writing_streak
from app.services.text_generation import NLPCloudClient, TextGenerationClient

logger = logging.getLogger(__name__)

INSIGHT_TYPE_AUTO = "auto_generated"
TEMPLATE_GENERATOR = "template"

# Daily-average deltas smaller than this read as "flat".
TREND_FLAT_THRESHOLD = 0.02
TOP_TAGS_LIMIT = 10

_SUGGESTION = (
    "Suggestions: Try to keep a short reflection on low days and note "
    "activities associated with high-mood days."
)


# ---------------------------------------------------------------------------
# Structured facts
# ---------------------------------------------------------------------------

@dataclass
class DayPoint:
    date: date
    avg_mood_score: Optional[float]
    entries_count: int


@dataclass
class Trend:
    direction: str   # "up" | "down" | "flat"
    change: float


@dataclass
class InsightFacts:
    date_from: date
    date_to: date
    average_mood_score: Optional[float]
    datapoints: int
    happiest: Optional[DayPoint]
    lowest: Optional[DayPoint]
    trend: Trend
    top_tags: list[dict] = field(default_factory=list)
    streak: StreakResult = field(
        default_factory=lambda: StreakResult(0, 0, None)
    )
    daily: list[DayPoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date_from": self.date_from,
            "date_to": self.date_to,
            "overall": {
                "average_mood_score": self.average_mood_score,
                "datapoints": self.datapoints,
            },
            "happiest": asdict(self.happiest) if self.happiest else None,
            "lowest": asdict(self.lowest) if self.lowest else None,
            "trend": asdict(self.trend),
            "top_tags": self.top_tags,
            "streaks": asdict(self.streak),
            "daily": [asdict(d) for d in self.daily],
        }


@dataclass
class Narrative:
    text: str
    generated_by: str


@dataclass
class InsightResult:
    facts: InsightFacts
    summary: str
    generated_by: str
    persisted: bool


def _daily_points(db: Session, user_id: int, date_from: date, date_to: date) -> list[DayPoint]:
    rows = (
        db.query(DailyMoodAggregate)
        .filter(
            DailyMoodAggregate.user_id == user_id,
            DailyMoodAggregate.day >= date_from,
            DailyMoodAggregate.day <= date_to,
        )
        .order_by(DailyMoodAggregate.day)
        .all()
    )
    if rows:
        return [
            DayPoint(date=r.day, avg_mood_score=r.avg_mood_score, entries_count=r.entries_count)
            for r in rows
        ]
    # Aggregates not computed yet for this range: read entries directly.
    return [
        DayPoint(date=d, avg_mood_score=mean_score(scores), entries_count=len(scores))
        for d, scores in scores_by_day(db, user_id, date_from, date_to).items()
    ]


def _trend(daily: list[DayPoint]) -> Trend:
    scored = [d for d in daily if d.avg_mood_score is not None]
    if len(daily) < 2 or not scored:
        return Trend(direction="flat", change=0.0)
    change = scored[-1].avg_mood_score - scored[0].avg_mood_score
    if abs(change) < TREND_FLAT_THRESHOLD:
        direction = "flat"
    else:
        direction = "up" if change > 0 else "down"
    return Trend(direction=direction, change=round(change, 3))


def _top_tags(db: Session, user_id: int) -> list[dict]:
    rows = (
        db.query(TagMoodStat)
        .filter(TagMoodStat.user_id == user_id)
        .order_by(TagMoodStat.occurrences.desc(), TagMoodStat.tag)
        .limit(TOP_TAGS_LIMIT)
        .all()
    )
    return [
        {
            "tag": r.tag,
            "occurrences": r.occurrences,
            "avg_mood_score": r.avg_mood_score,
            "last_seen": r.last_seen,
        }
        for r in rows
    ]


def gather_facts(db: Session, user_id: int, date_from: date, date_to: date) -> InsightFacts:
    daily = _daily_points(db, user_id, date_from, date_to)

    happiest: Optional[DayPoint] = None
    lowest: Optional[DayPoint] = None
    for d in daily:
        if d.avg_mood_score is None:
            continue
        if happiest is None or d.avg_mood_score > happiest.avg_mood_score:
            happiest = d
        if lowest is None or d.avg_mood_score < lowest.avg_mood_score:
            lowest = d

    overall = mean_score(d.avg_mood_score for d in daily)

    return InsightFacts(
        date_from=date_from,
        date_to=date_to,
        average_mood_score=round(overall, 3) if overall is not None else None,
        datapoints=sum(1 for d in daily if d.entries_count > 0),
        happiest=happiest,
        lowest=lowest,
        trend=_trend(daily),
        top_tags=_top_tags(db, user_id),
        streak=get_writing_streak(db, user_id),
        daily=daily,
    )


# ---------------------------------------------------------------------------
# Narration
# ---------------------------------------------------------------------------

def _day_phrase(label: str, d: DayPoint) -> str:
    return f"{label}: {d.date} (avg {d.avg_mood_score:.2f})."


def build_prompt(facts: InsightFacts) -> str:
    parts = [
        "Provide a short user-facing insight summary for the user's mood "
        f"between {facts.date_from} and {facts.date_to}.",
    ]
    avg = facts.average_mood_score
    parts.append(f"Overall average mood score: {avg:.2f}." if avg is not None
                 else "Overall average mood score: N/A.")
    if facts.happiest:
        parts.append(_day_phrase("Happiest day", facts.happiest))
    if facts.lowest:
        parts.append(_day_phrase("Lowest day", facts.lowest))
    if facts.top_tags:
        preview = ", ".join(f"{t['tag']} ({t['occurrences']})" for t in facts.top_tags[:3])
        parts.append(f"Top tags: {preview}.")
    parts.append(f"Trend direction: {facts.trend.direction} (change {facts.trend.change:.3f}).")
    parts.append("Give 3 short, actionable suggestions for the user based on these facts.")
    return " ".join(parts)


def template_summary(facts: InsightFacts) -> str:
    parts = [f"From {facts.date_from} to {facts.date_to}:"]
    if facts.average_mood_score is not None:
        parts.append(
            f"average mood {facts.average_mood_score:.2f} over {facts.datapoints} days."
        )
    else:
        parts.append("no mood data recorded yet.")
    if facts.happiest:
        parts.append(_day_phrase("Happiest day", facts.happiest))
    if facts.lowest:
        parts.append(_day_phrase("Lowest day", facts.lowest))
    if facts.top_tags:
        parts.append(f"Top tags: {', '.join(t['tag'] for t in facts.top_tags[:3])}.")
    if facts.trend.change:
        parts.append(f"Trend: {facts.trend.direction} (change {facts.trend.change:.3f}).")
    else:
        parts.append(f"Trend: {facts.trend.direction}.")
    parts.append(
        f"Writing streak: {facts.streak.current_streak} days "
        f"(longest {facts.streak.longest_streak})."
    )
    parts.append(_SUGGESTION)
    return " ".join(parts)


class InsightNarrator(Protocol):
    def narrate(self, facts: InsightFacts) -> Narrative:
        ...


class TemplateNarrator:
    def narrate(self, facts: InsightFacts) -> Narrative:
        return Narrative(text=template_summary(facts), generated_by=TEMPLATE_GENERATOR)


class ModelNarrator:
    def __init__(
        self,
        client: TextGenerationClient,
        max_length: int = 256,
        prompt_max_chars: int = 2000,
        fallback: Optional[InsightNarrator] = None,
    ):
        self.client = client
        self.max_length = max_length
        self.prompt_max_chars = prompt_max_chars
        self.fallback = fallback or TemplateNarrator()

    def narrate(self, facts: InsightFacts) -> Narrative:
        prompt = build_prompt(facts)[: self.prompt_max_chars]
        try:
            text = self.client.generate(prompt, self.max_length)
        except Exception:
            logger.warning("Insight generation failed, using template", exc_info=True)
            text = None
        if text and text.strip():
            return Narrative(text=text.strip(), generated_by=self.client.model)
        return self.fallback.narrate(facts)


def build_narrator(config: Settings = default_settings) -> InsightNarrator:
    if config.NLP_CLOUD_API_KEY and config.AI_INSIGHTS_MODEL:
        client = NLPCloudClient(
            api_key=config.NLP_CLOUD_API_KEY,
            model=config.AI_INSIGHTS_MODEL,
            base_url=config.NLP_CLOUD_BASE_URL,
            timeout_s=config.INSIGHT_TIMEOUT_SECONDS,
        )
        return ModelNarrator(
            client,
            max_length=config.INSIGHT_MAX_LENGTH,
            prompt_max_chars=config.INSIGHT_PROMPT_MAX_CHARS,
        )
    return TemplateNarrator()


# ---------------------------------------------------------------------------
# Public — generate + persist
# ---------------------------------------------------------------------------

def generate_mood_insight(
    db: Session,
    user_id: int,
    date_from: date,
    date_to: date,
    narrator: Optional[InsightNarrator] = None,
    insight_type: str = INSIGHT_TYPE_AUTO,
) -> InsightResult:
    if date_from > date_to:
        raise InvalidDateRangeError(date_from, date_to)

    facts = gather_facts(db, user_id, date_from, date_to)
    narrative = (narrator or build_narrator()).narrate(facts)

    payload = {"structured": facts.to_dict(), "summary": narrative.text}
    persisted = True
    try:
        upsert(
            db,
            MoodInsight,
            values={
                "user_id": user_id,
                "date_from": date_from,
                "date_to": date_to,
                "insight_type": insight_type,
                "insights": json.dumps(payload, default=str, ensure_ascii=False),
                "generated_by": narrative.generated_by,
                "generated_at": func.now(),
            },
            key=("user_id", "date_from", "date_to", "insight_type"),
        )
        db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to persist mood insight for user=%s", user_id)
        db.rollback()
        persisted = False

    return InsightResult(
        facts=facts,
        summary=narrative.text,
        generated_by=narrative.generated_by,
        persisted=persisted,
    )


def list_insights(db: Session, user_id: int, limit: int = 20) -> list[MoodInsight]:
    return (
        db.query(MoodInsight)
        .filter(MoodInsight.user_id == user_id)
        .order_by(MoodInsight.generated_at.desc(), MoodInsight.id.desc())
        .limit(limit)
        .all()
    )
