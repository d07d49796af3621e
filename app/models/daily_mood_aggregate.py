"""
DailyMoodAggregate — one row per (user, calendar day).

Pure projection of that user's entries on that day: rerunning the computer
with an unchanged entry set writes identical values.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Float, DateTime, Date, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class DailyMoodAggregate(Base):
    __tablename__ = "daily_mood_aggregates"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_daily_mood_user_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    entries_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_mood_score: Mapped[float | None] = mapped_column(
        Float, nullable=True,
        comment="Mean over entries that carry a score; NULL when none do",
    )
    dominant_mood: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mood_counts: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment='JSON object label -> count, "unknown" for unlabeled entries',
    )
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
