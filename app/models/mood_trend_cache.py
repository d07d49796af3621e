"""
MoodTrendCache — precomputed [{date, avg}] series per (user, range, granularity).

Not authoritative: rows may be deleted or regenerated at any time. Readers
that miss the cache (or find an unparsable payload) compute the series
directly from entries.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class MoodTrendCache(Base):
    __tablename__ = "mood_trends_cache"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "range_start", "range_end", "granularity",
            name="uq_mood_trends_user_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    range_start: Mapped[date] = mapped_column(Date, nullable=False)
    range_end: Mapped[date] = mapped_column(Date, nullable=False)
    granularity: Mapped[str] = mapped_column(String(16), nullable=False, default="day")
    data: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment='JSON array of {"date": "YYYY-MM-DD", "avg": float | null}, oldest first',
    )
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
