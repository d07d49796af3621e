"""
Pipeline router — operator triggers for the batch aggregator.

POST /pipeline/run       — run one scheduled cycle now (trailing window)
POST /pipeline/backfill  — populate an explicit historical range
GET  /pipeline/status    — state of the run guard and the last run

Triggers return 202 and run after the response is sent. Overlapping runs
are rejected by the database run guard; the losing run is logged as skipped.
"""
from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.core.clock import today as service_today
from app.core.config import settings
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.pipeline import BackfillRequest, PipelineStatusResponse, RunAcceptedResponse
from app.services.aggregator import backfill, run_scheduled_cycle, validate_backfill_range
from app.services.run_lock import AGGREGATOR_RUN, get_run_state

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


def _iso(value):
    return value.isoformat() if value is not None else None


@router.post(
    "/run",
    response_model=RunAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run the aggregation cycle now",
)
def run_now(background_tasks: BackgroundTasks):
    end = service_today()
    start = end - timedelta(days=settings.AGGREGATOR_WINDOW_DAYS - 1)
    background_tasks.add_task(run_scheduled_cycle, end)
    return RunAcceptedResponse(
        start_date=str(start),
        end_date=str(end),
        message="Aggregation cycle scheduled.",
    )


@router.post(
    "/backfill",
    response_model=RunAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Backfill derived tables for a date range",
    responses={
        422: {"model": ErrorResponse, "description": "Inverted or oversized range."},
    },
)
def run_backfill(body: BackfillRequest, background_tasks: BackgroundTasks):
    """
    Accepts either `start_date` + `end_date` or `days` (trailing window ending
    today, default BACKFILL_DEFAULT_DAYS). The range is validated before the
    job is scheduled.
    """
    if body.start_date is not None:
        start, end = body.start_date, body.end_date
    else:
        end = service_today()
        start = end - timedelta(days=(body.days or settings.BACKFILL_DEFAULT_DAYS) - 1)

    span = validate_backfill_range(start, end)
    background_tasks.add_task(backfill, start, end)
    return RunAcceptedResponse(
        start_date=str(start),
        end_date=str(end),
        message=f"Backfill of {span} day(s) scheduled.",
    )


@router.get("/status", response_model=PipelineStatusResponse, summary="Run guard and last run")
def pipeline_status(db: Session = Depends(get_db)):
    state = get_run_state(db)
    if state is None:
        return PipelineStatusResponse(name=AGGREGATOR_RUN, is_running=False)
    return PipelineStatusResponse(
        name=state.name,
        is_running=bool(state.is_running),
        started_at=_iso(state.started_at),
        finished_at=_iso(state.finished_at),
        last_status=state.last_status,
        last_window_start=_iso(state.last_window_start),
        last_window_end=_iso(state.last_window_end),
        last_error=state.last_error,
    )
