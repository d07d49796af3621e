"""
PipelineRun — run-state record for the batch aggregator.

One row per pipeline name. `is_running` is the "a run is in flight" guard;
it is flipped with a conditional UPDATE so it holds across processes and
hosts. A guard whose `started_at` is older than the stale threshold is
treated as abandoned by a crashed process and may be taken over. Each
acquisition stamps a new `run_id`; only that holder can release the guard.
"""
from datetime import datetime, date
from sqlalchemy import String, Text, Boolean, DateTime, Date
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    is_running: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    run_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True,
        comment="Token of the run currently holding the guard",
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_status: Mapped[str | None] = mapped_column(
        String(16), nullable=True,
        comment='"ok", "partial" or "failed"',
    )
    last_window_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_window_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
