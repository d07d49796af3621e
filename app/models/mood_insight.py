from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, ForeignKey, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class MoodInsight(Base):
    """
    Narrative insight for a date range.

    insights: JSON-encoded {"structured": {...facts...}, "summary": "<text>"}.
    generated_by: model name, or "template" when the deterministic fallback
    produced the summary.
    """

    __tablename__ = "mood_insights"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "date_from", "date_to", "insight_type",
            name="uq_mood_insights_user_range_type",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    insight_type: Mapped[str] = mapped_column(String(32), nullable=False, default="auto_generated")
    insights: Mapped[str] = mapped_column(Text, nullable=False)
    generated_by: Mapped[str] = mapped_column(String(128), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
