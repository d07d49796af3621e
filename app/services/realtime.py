"""
Real-Time Streak Updater.

Invoked for every entry creation / deletion. The work is handed to FastAPI
BackgroundTasks so it runs after the response has been sent; its only error
channel is the log. A lost or failed update is healed by the next batch cycle.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.db.base import SessionLocal
from app.services.streaks import StreakResult, update_writing_streak

logger = logging.getLogger(__name__)


def run_streak_update(
    user_id: int,
    session_factory: Callable[[], Session] = SessionLocal,
) -> Optional[StreakResult]:
    """Recompute one owner's streak in its own session. Never raises."""
    db = session_factory()
    try:
        return update_writing_streak(db, user_id)
    except Exception:
        db.rollback()
        logger.exception("Real-time streak update failed for user=%s", user_id)
        return None
    finally:
        db.close()


def dispatch_streak_update(background_tasks: BackgroundTasks, user_id: int) -> None:
    """Schedule run_streak_update after the current response is sent."""
    background_tasks.add_task(run_streak_update, user_id)
