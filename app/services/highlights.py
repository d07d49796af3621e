"""
Mood highlights: the best recent days, the tags that go with the highest
moods, and a one-line note built from them.

Read-only over DailyMoodAggregate and TagMoodStat; nothing is recomputed
here, so highlights reflect the last batch run.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.models.daily_mood_aggregate import DailyMoodAggregate
from app.models.tag_mood_stat import TagMoodStat

HIGHLIGHT_WINDOW_DAYS = 30
HAPPIEST_DAYS_LIMIT = 5
POSITIVE_TAGS_LIMIT = 10
# A tag seen once says little about how it relates to mood.
POSITIVE_TAG_MIN_OCCURRENCES = 2


@dataclass
class HighlightDay:
    date: date
    avg_mood_score: float
    entries_count: int


@dataclass
class PositiveTag:
    tag: str
    avg_mood_score: float
    occurrences: int


@dataclass
class MoodHighlights:
    date_from: date
    date_to: date
    happiest_days: list[HighlightDay] = field(default_factory=list)
    top_positive_tags: list[PositiveTag] = field(default_factory=list)
    note: str = ""


def _percent(score: float) -> int:
    return int(score * 100 + 0.5)


def highlight_note(days: list[HighlightDay], tags: list[PositiveTag]) -> str:
    if tags:
        top = tags[0]
        if days:
            return (
                f'You feel best when writing about "{top.tag}" '
                f"({_percent(top.avg_mood_score)}% average mood). "
                "Your happiest entries often revolve around this topic!"
            )
        return (
            f'Your most positive topic is "{top.tag}" with '
            f"{_percent(top.avg_mood_score)}% average mood. "
            "Keep exploring what makes you happy!"
        )
    if days:
        return (
            f"Your best day recently had a {_percent(days[0].avg_mood_score)}% mood score. "
            "Keep up the positive journaling!"
        )
    return (
        "Keep writing to discover your happiness patterns! "
        "The more you journal, the more insights you'll gain."
    )


def mood_highlights(db: Session, user_id: int, today: date) -> MoodHighlights:
    date_from = today - timedelta(days=HIGHLIGHT_WINDOW_DAYS - 1)

    day_rows = (
        db.query(DailyMoodAggregate)
        .filter(
            DailyMoodAggregate.user_id == user_id,
            DailyMoodAggregate.day >= date_from,
            DailyMoodAggregate.day <= today,
            DailyMoodAggregate.avg_mood_score.isnot(None),
        )
        .order_by(DailyMoodAggregate.avg_mood_score.desc(), DailyMoodAggregate.day)
        .limit(HAPPIEST_DAYS_LIMIT)
        .all()
    )
    tag_rows = (
        db.query(TagMoodStat)
        .filter(
            TagMoodStat.user_id == user_id,
            TagMoodStat.avg_mood_score.isnot(None),
            TagMoodStat.occurrences >= POSITIVE_TAG_MIN_OCCURRENCES,
        )
        .order_by(
            TagMoodStat.avg_mood_score.desc(),
            TagMoodStat.occurrences.desc(),
            TagMoodStat.tag,
        )
        .limit(POSITIVE_TAGS_LIMIT)
        .all()
    )

    days = [
        HighlightDay(date=r.day, avg_mood_score=r.avg_mood_score, entries_count=r.entries_count)
        for r in day_rows
    ]
    tags = [
        PositiveTag(tag=r.tag, avg_mood_score=r.avg_mood_score, occurrences=r.occurrences)
        for r in tag_rows
    ]
    return MoodHighlights(
        date_from=date_from,
        date_to=today,
        happiest_days=days,
        top_positive_tags=tags,
        note=highlight_note(days, tags),
    )
