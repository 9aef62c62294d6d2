# app/services/conflict_detector.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.schemas.booking import BookingStatus
from app.services.interval import Interval


class ConflictDetector:
    """
    Answers "is this slot taken?" for a room's booking timeline.

    Only CONFIRMED bookings occupy a room. Overlap uses the half-open rule
    `existing.start < candidate.end AND candidate.start < existing.end`, so
    a booking ending at 10:00 never conflicts with one starting at 10:00.

    Room existence is not validated here: an unknown room simply has no
    bookings and therefore no conflicts.
    """

    @staticmethod
    def _overlapping(room_id: int, interval: Interval, exclude_booking_id: int | None):
        stmt = select(Booking).where(
            Booking.room_id == room_id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.start_time < interval.end,
            Booking.end_time > interval.start,
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        return stmt

    async def has_conflict(
        self,
        db: AsyncSession,
        room_id: int,
        interval: Interval,
        exclude_booking_id: int | None = None,
    ) -> bool:
        stmt = self._overlapping(room_id, interval, exclude_booking_id).with_only_columns(
            Booking.id
        ).limit(1)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def find_conflicts(
        self,
        db: AsyncSession,
        room_id: int,
        interval: Interval,
        exclude_booking_id: int | None = None,
    ) -> list[Booking]:
        """
        Return every CONFIRMED booking of the room overlapping `interval`,
        ordered by start time.
        """
        stmt = self._overlapping(room_id, interval, exclude_booking_id).order_by(
            Booking.start_time
        )
        result = await db.execute(stmt)
        return list(result.unique().scalars().all())
