# app/services/side_effects.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Iterable

from app.schemas.notification import NotificationEvent
from app.services.calendar_sync import CalendarSyncClient, NullCalendarSync
from app.services.notifications import LoggingNotificationSink, NotificationSink

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """
    Fire-and-forget delivery of notifications and calendar sync.

    Work is scheduled as background tasks on the running loop after the
    triggering operation has committed. A failing delivery is logged and
    dropped; it never reaches the caller of the scheduling operation.
    Events handed over in one `notify` call are delivered sequentially, in
    the given order.
    """

    def __init__(
        self,
        sink: NotificationSink | None = None,
        calendar: CalendarSyncClient | NullCalendarSync | None = None,
    ) -> None:
        self.sink = sink or LoggingNotificationSink()
        self.calendar = calendar or NullCalendarSync()
        self._tasks: set[asyncio.Task] = set()

    def notify(self, events: Iterable[NotificationEvent]) -> None:
        batch = list(events)
        if batch:
            self._spawn(self._deliver(batch), f"notify[{len(batch)}]")

    def sync_calendar(self, action: str, snapshot: Dict[str, Any]) -> None:
        handlers = {
            "create": self.calendar.booking_created,
            "update": self.calendar.booking_updated,
            "delete": self.calendar.booking_cancelled,
        }
        handler = handlers[action]
        self._spawn(
            self._run_safely(handler(snapshot), f"calendar {action} booking={snapshot['booking_id']}"),
            f"calendar:{action}",
        )

    async def _deliver(self, batch: list[NotificationEvent]) -> None:
        for event in batch:
            await self._run_safely(
                self.sink.notify(event),
                f"notification {event.kind.value} user={event.user_id} booking={event.booking_id}",
            )

    @staticmethod
    async def _run_safely(work: Awaitable[None], label: str) -> None:
        try:
            await work
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Side effect failed: %s", label)

    def _spawn(self, work: Awaitable[None], name: str) -> None:
        task = asyncio.get_running_loop().create_task(work, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """
        Wait until every scheduled side effect has finished. Used on shutdown
        and in tests.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
