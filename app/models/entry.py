from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Float, DateTime, Date, ForeignKey, func, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Entry(Base):
    """
    A journal entry — the source of truth for every analytics table.

    Written by the entries CRUD layer only. `day` is the calendar date of
    `created_at` in the service timezone; `tags` is a JSON array of strings;
    `mood_label` / `mood_score` are filled by the mood inference model and
    may be missing.
    """

    __tablename__ = "entries"
    __table_args__ = (
        Index("ix_entries_user_day", "user_id", "day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[date] = mapped_column(Date, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mood_label: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mood_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    tags: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of tag strings",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
