"""
Run guard for the batch aggregator, stored in `pipeline_runs`.

try_acquire_run() flips is_running with one conditional UPDATE; the row
count tells the caller whether it won. Because the guard lives in the
database it survives restarts and holds across gunicorn workers and hosts.

A winning caller gets a run token back and must hand it to release_run().
Release matches on that token, so a run whose guard went stale and was
taken over finishes without clearing the newer run's claim.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.db.upsert import insert_ignore
from app.models.pipeline_run import PipelineRun

logger = logging.getLogger(__name__)

AGGREGATOR_RUN = "mood_aggregator"


def try_acquire_run(
    db: Session,
    name: str = AGGREGATOR_RUN,
    stale_after: timedelta = timedelta(hours=2),
    window: Optional[tuple[date, date]] = None,
) -> Optional[str]:
    """Return this caller's run token if it now holds the guard, else None."""
    insert_ignore(db, PipelineRun, {"name": name, "is_running": False}, key=("name",))
    now = utcnow()
    token = uuid.uuid4().hex
    values = {
        "is_running": True,
        "run_id": token,
        "started_at": now,
        "finished_at": None,
        "last_error": None,
    }
    if window is not None:
        values["last_window_start"], values["last_window_end"] = window
    result = db.execute(
        update(PipelineRun)
        .where(
            PipelineRun.name == name,
            or_(
                PipelineRun.is_running.is_(False),
                PipelineRun.started_at < now - stale_after,
            ),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        logger.info("Run guard %r is held by another run", name)
        return None
    return token


def release_run(
    db: Session,
    token: str,
    name: str = AGGREGATOR_RUN,
    status: str = "ok",
    error: Optional[str] = None,
) -> bool:
    """Clear the guard if `token` still holds it. Returns False when it was taken over."""
    result = db.execute(
        update(PipelineRun)
        .where(PipelineRun.name == name, PipelineRun.run_id == token)
        .values(
            is_running=False,
            finished_at=utcnow(),
            last_status=status,
            last_error=error,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    released = result.rowcount == 1
    if not released:
        logger.warning("Run guard %r was taken over before run %s finished", name, token)
    return released


def get_run_state(db: Session, name: str = AGGREGATOR_RUN) -> Optional[PipelineRun]:
    return db.get(PipelineRun, name)
