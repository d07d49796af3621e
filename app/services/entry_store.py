"""
Entry Store query surface.

Read-only access to `users` and `entries`. Nothing in the analytics pipeline
writes these tables; every derived table is a projection of what these
queries return.

Public API
----------
owner_ids(db)                                 -> list[int]
entries_for_day(db, user_id, day)             -> list[Entry]
written_dates(db, user_id)                    -> list[date]   (distinct, newest first)
tagged_entries(db, user_id)                   -> list[TaggedEntry]
scores_by_day(db, user_id, start, end)        -> dict[date, list[float | None]]
parse_tags(raw)                               -> list[str]
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.models.entry import Entry
from app.models.user import User

# Width of tags_mood_stats.tag; longer tags are cut to fit.
MAX_TAG_LENGTH = 128


@dataclass
class TaggedEntry:
    day: date
    mood_score: Optional[float]
    tags: list[str]   # normalized, de-duplicated, first-seen order


def normalize_tag(tag) -> str:
    return str(tag).strip().lower()[:MAX_TAG_LENGTH].rstrip()


def parse_tags(raw: Optional[str]) -> list[str]:
    """
    Decode the JSON tag column into normalized tags.
    Unparsable or non-list payloads count as "no tags".
    """
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (ValueError, TypeError):
        return []
    if not isinstance(value, list):
        return []
    tags = (normalize_tag(t) for t in value if t is not None)
    return list(dict.fromkeys(t for t in tags if t))


def owner_ids(db: Session) -> list[int]:
    return [row.id for row in db.query(User.id).order_by(User.id).all()]


def entries_for_day(db: Session, user_id: int, day: date) -> list[Entry]:
    """Entries for one owner on one date, in creation order."""
    return (
        db.query(Entry)
        .filter(Entry.user_id == user_id, Entry.day == day)
        .order_by(Entry.created_at, Entry.id)
        .all()
    )


def written_dates(db: Session, user_id: int) -> list[date]:
    rows = (
        db.query(Entry.day)
        .filter(Entry.user_id == user_id)
        .distinct()
        .order_by(Entry.day.desc())
        .all()
    )
    return [row.day for row in rows]


def tagged_entries(db: Session, user_id: int) -> list[TaggedEntry]:
    rows = (
        db.query(Entry.day, Entry.mood_score, Entry.tags)
        .filter(Entry.user_id == user_id, Entry.tags.isnot(None))
        .order_by(Entry.day, Entry.id)
        .all()
    )
    result: list[TaggedEntry] = []
    for row in rows:
        tags = parse_tags(row.tags)
        if tags:
            result.append(TaggedEntry(day=row.day, mood_score=row.mood_score, tags=tags))
    return result


def scores_by_day(
    db: Session,
    user_id: int,
    start: date,
    end: date,
) -> dict[date, list[Optional[float]]]:
    """
    Mood scores grouped by date for days in [start, end] that have entries.
    Keys are in ascending date order; a day whose entries carry no score maps
    to a list of Nones.
    """
    rows = (
        db.query(Entry.day, Entry.mood_score)
        .filter(Entry.user_id == user_id, Entry.day >= start, Entry.day <= end)
        .order_by(Entry.day, Entry.created_at, Entry.id)
        .all()
    )
    grouped: dict[date, list[Optional[float]]] = {}
    for row in rows:
        grouped.setdefault(row.day, []).append(row.mood_score)
    return grouped
