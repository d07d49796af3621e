from datetime import datetime, date
from sqlalchemy import Integer, String, Float, DateTime, Date, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class TagMoodStat(Base):
    """Per-tag occurrence count and average mood. Overwritten on every run."""

    __tablename__ = "tags_mood_stats"
    __table_args__ = (
        UniqueConstraint("user_id", "tag", name="uq_tags_mood_user_tag"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag: Mapped[str] = mapped_column(String(128), nullable=False)
    occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_mood_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_seen: Mapped[date | None] = mapped_column(Date, nullable=True)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
