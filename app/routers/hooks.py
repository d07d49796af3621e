"""
Hooks router — entry mutation notifications.

POST /hooks/entries — recompute the owner's writing streak after the response
"""
import logging

from fastapi import APIRouter, BackgroundTasks, status

from app.schemas.hooks import EntryEventAccepted, EntryEventRequest
from app.services.realtime import dispatch_streak_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/hooks", tags=["hooks"])


@router.post(
    "/entries",
    response_model=EntryEventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Notify of an entry creation or deletion",
)
def entry_event(body: EntryEventRequest, background_tasks: BackgroundTasks):
    """
    The entry write has already committed; the streak update never affects
    this response. Failures are logged and healed by the next batch cycle.
    """
    logger.debug("Entry %s for user=%s (entry_id=%s)", body.event, body.user_id, body.entry_id)
    dispatch_streak_update(background_tasks, body.user_id)
    return EntryEventAccepted(user_id=body.user_id, event=body.event)
