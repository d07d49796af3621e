"""
Tag–Mood Correlator.

Full recompute per run: every (user, tag) row is overwritten with totals
from the owner's current tagged entries, and rows for tags that no longer
appear on any entry are deleted. Never an incremental delta, so the table
self-heals after entry edits and deletions.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.upsert import upsert
from app.models.tag_mood_stat import TagMoodStat
from app.services.entry_store import TaggedEntry, tagged_entries


@dataclass
class TagStat:
    tag: str
    occurrences: int = 0
    score_sum: float = 0.0
    score_count: int = 0
    last_seen: Optional[date] = None

    @property
    def avg_mood_score(self) -> Optional[float]:
        if not self.score_count:
            return None
        return self.score_sum / self.score_count


def correlate_tags(entries: list[TaggedEntry]) -> dict[str, TagStat]:
    """Pure accumulation over normalized tags. Unscored entries count as occurrences only."""
    stats: dict[str, TagStat] = {}
    for e in entries:
        for tag in e.tags:
            stat = stats.setdefault(tag, TagStat(tag=tag))
            stat.occurrences += 1
            if e.mood_score is not None:
                stat.score_sum += float(e.mood_score)
                stat.score_count += 1
            if stat.last_seen is None or e.day > stat.last_seen:
                stat.last_seen = e.day
    return stats


def compute_tag_mood_stats(db: Session, user_id: int) -> dict[str, TagStat]:
    stats = correlate_tags(tagged_entries(db, user_id))

    for stat in stats.values():
        upsert(
            db,
            TagMoodStat,
            values={
                "user_id": user_id,
                "tag": stat.tag,
                "occurrences": stat.occurrences,
                "avg_mood_score": stat.avg_mood_score,
                "last_seen": stat.last_seen,
                "computed_at": func.now(),
            },
            key=("user_id", "tag"),
        )

    stale = db.query(TagMoodStat).filter(TagMoodStat.user_id == user_id)
    if stats:
        stale = stale.filter(TagMoodStat.tag.notin_(list(stats)))
    stale.delete(synchronize_session=False)

    db.commit()
    return stats
