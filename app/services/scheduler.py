"""
Recurring trigger for the batch aggregator.

An asyncio task started from the FastAPI lifespan. It optionally runs one
cycle at startup, then sleeps until AGGREGATOR_RUN_AT (service timezone)
every day. The blocking cycle runs in a worker thread so the event loop
keeps serving requests. Overlap across workers or hosts is prevented by the
database run guard, not by this class.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional

from app.core.clock import service_tz
from app.services.aggregator import RunReport, run_scheduled_cycle

logger = logging.getLogger(__name__)


def seconds_until(run_at: time, now: datetime) -> float:
    """Seconds from `now` (tz-aware) to the next occurrence of `run_at` in now's zone.

    The wall-clock target is picked in the local zone; the difference is taken
    in UTC so a DST change between now and the target is counted.
    """
    target = now.replace(hour=run_at.hour, minute=run_at.minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()


class AggregatorScheduler:
    def __init__(
        self,
        run_at: time,
        run_on_startup: bool = True,
        cycle: Callable[[], RunReport] = run_scheduled_cycle,
    ):
        self.run_at = run_at
        self.run_on_startup = run_on_startup
        self.cycle = cycle
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="mood-aggregator")
        logger.info("Aggregator scheduled daily at %s", self.run_at.strftime("%H:%M"))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run_once(self) -> Optional[RunReport]:
        try:
            return await asyncio.to_thread(self.cycle)
        except Exception:
            logger.exception("Scheduled aggregation failed")
            return None

    async def _loop(self) -> None:
        if self.run_on_startup:
            await self.run_once()
        while True:
            delay = seconds_until(self.run_at, datetime.now(tz=service_tz()))
            await asyncio.sleep(delay)
            await self.run_once()
