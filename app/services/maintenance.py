# app/services/maintenance.py
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.schemas.waitlist import ReminderScanSummary, SweepSummary
from app.services.retry import retry_async
from app.services.scheduling import TRANSIENT_ERRORS, SchedulingService

logger = logging.getLogger(__name__)


async def run_maintenance_pass(
    service: SchedulingService,
    session_factory: async_sessionmaker[AsyncSession],
) -> tuple[SweepSummary, ReminderScanSummary]:
    """
    One pass of background upkeep: expire stale waitlist entries, then
    queue booking reminders. Each step gets a fresh session and is retried
    on transient failures; both steps are safe to re-run.
    """
    settings = service.settings

    async def sweep() -> SweepSummary:
        async with session_factory() as db:
            return await service.sweep_expired(db)

    async def remind() -> ReminderScanSummary:
        async with session_factory() as db:
            return await service.send_reminders(db)

    sweep_summary = await retry_async(
        sweep,
        attempts=settings.MAINTENANCE_RETRY_ATTEMPTS,
        delay_seconds=settings.MAINTENANCE_RETRY_DELAY_SECONDS,
        retry_on=TRANSIENT_ERRORS,
        label="Waitlist sweep",
    )
    reminder_summary = await retry_async(
        remind,
        attempts=settings.MAINTENANCE_RETRY_ATTEMPTS,
        delay_seconds=settings.MAINTENANCE_RETRY_DELAY_SECONDS,
        retry_on=TRANSIENT_ERRORS,
        label="Reminder scan",
    )
    return sweep_summary, reminder_summary


class MaintenanceLoop:
    """
    Runs `run_maintenance_pass` every `interval_seconds` until stopped.

    A failed pass is logged and the loop keeps going.
    """

    def __init__(
        self,
        service: SchedulingService,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="maintenance-loop"
        )
        logger.info("Maintenance loop started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Maintenance loop stopped")

    async def _run(self) -> None:
        while True:
            try:
                sweep, reminders = await run_maintenance_pass(self.service, self.session_factory)
                logger.debug(
                    "Maintenance pass: expired=%s reminders=%s",
                    sweep.expired,
                    reminders.notifications_queued,
                )
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Maintenance pass failed")
            await asyncio.sleep(self.interval_seconds)
