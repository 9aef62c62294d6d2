# app/services/reminders.py
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.schemas.booking import BookingStatus
from app.schemas.notification import NotificationEvent, NotificationKind

SCAN_WINDOW = timedelta(minutes=15)

REMINDER_OFFSETS = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
}


class ReminderScanner:
    """
    Finds CONFIRMED bookings starting roughly 1 hour and 24 hours from now.

    Each scan covers `[now + offset, now + offset + SCAN_WINDOW)`, so running
    it every SCAN_WINDOW reminds every booking exactly once per offset.
    """

    async def due_bookings(
        self,
        db: AsyncSession,
        now: datetime,
    ) -> dict[str, list[Booking]]:
        due: dict[str, list[Booking]] = {}
        for reminder_type, offset in REMINDER_OFFSETS.items():
            window_start = now + offset
            stmt = (
                select(Booking)
                .where(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.start_time >= window_start,
                    Booking.start_time < window_start + SCAN_WINDOW,
                )
                .order_by(Booking.start_time, Booking.id)
            )
            result = await db.execute(stmt)
            due[reminder_type] = list(result.unique().scalars().all())
        return due

    @staticmethod
    def build_events(booking: Booking, reminder_type: str) -> list[NotificationEvent]:
        """
        One reminder for the organizer, one per attendee.
        """
        common = dict(
            kind=NotificationKind.BOOKING_REMINDER,
            room_id=booking.room_id,
            room_name=booking.room.name if booking.room is not None else None,
            booking_id=booking.id,
            title=booking.title,
            start_time=booking.start_time,
            end_time=booking.end_time,
            reminder_type=reminder_type,
        )
        events = [NotificationEvent(user_id=booking.user_id, **common)]
        events.extend(
            NotificationEvent(recipients=[a.email], **common) for a in booking.attendees
        )
        return events
