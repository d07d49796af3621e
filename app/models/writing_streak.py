"""
WritingStreak — one row per user.

current_streak and last_written_date are recomputed from scratch on every
write. longest_streak is monotonic: the upsert stores
greatest(stored, incoming), so deleting entries or a stale concurrent writer
can never lower it.
"""
from datetime import datetime, date
from sqlalchemy import Integer, DateTime, Date, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class WritingStreak(Base):
    __tablename__ = "writing_streaks"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_written_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
