# app/services/booking_lifecycle.py
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AlreadyCancelledError,
    ConflictError,
    ForbiddenError,
    InvalidError,
    NotFoundError,
)
from app.models.booking import Booking, BookingAttendee
from app.models.room import Room
from app.schemas.booking import AttendeeIn, BookingStatus, BookingUpdate
from app.services.booking_rules import BookingRules
from app.services.conflict_detector import ConflictDetector
from app.services.interval import Interval
from app.services.recurrence import RecurrenceExpander

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Room is already booked for this time slot"


def _attendee_rows(attendees: Sequence[AttendeeIn]) -> list[BookingAttendee]:
    return [
        BookingAttendee(position=position, email=a.email, name=a.name)
        for position, a in enumerate(attendees)
    ]


class BookingLifecycle:
    """
    State machine of a single booking: CONFIRMED -> CANCELLED (terminal).

    Methods stage changes on the given session and flush them; committing
    is the caller's job so the caller can hold the room lock until the
    write is durable. Every method raises a SchedulingError subclass on
    failure and leaves the session unflushed for the rejected change.
    """

    def __init__(
        self,
        rules: BookingRules,
        detector: ConflictDetector,
        expander: RecurrenceExpander,
    ) -> None:
        self.rules = rules
        self.detector = detector
        self.expander = expander

    @staticmethod
    def authorize(booking: Booking, actor_id: str, is_admin: bool, action: str) -> None:
        if booking.user_id != actor_id and not is_admin:
            raise ForbiddenError(f"You can only {action} your own bookings")

    async def create(
        self,
        db: AsyncSession,
        room: Room | None,
        interval: Interval,
        owner_id: str,
        title: str,
        description: str | None = None,
        attendees: Sequence[AttendeeIn] = (),
        recurrence_rule: str | None = None,
    ) -> Booking:
        if room is None or not room.is_active:
            raise NotFoundError("Room not found")

        self.rules.validate_interval(interval, is_new=True)
        self.rules.validate_details(title, description, attendees)
        if recurrence_rule:
            self.expander.validate_rule(recurrence_rule, interval.start)

        if await self.detector.has_conflict(db, room.id, interval):
            raise ConflictError(SLOT_TAKEN_MESSAGE)

        booking = Booking(
            user_id=owner_id,
            room_id=room.id,
            room=room,
            title=title.strip(),
            description=description,
            start_time=interval.start,
            end_time=interval.end,
            status=BookingStatus.CONFIRMED.value,
            recurrence_rule=recurrence_rule or None,
            attendees=_attendee_rows(attendees),
        )
        db.add(booking)
        await db.flush()

        logger.info("Booking %s confirmed for room %s %s", booking.id, room.id, interval)
        return booking

    async def update(
        self,
        db: AsyncSession,
        booking: Booking,
        actor_id: str,
        is_admin: bool,
        fields: BookingUpdate,
    ) -> Booking:
        """
        Apply a partial update. Time changes are re-validated and checked
        for conflicts against every other CONFIRMED booking of the room; a
        provided attendee list replaces the old one entirely.
        """
        self.authorize(booking, actor_id, is_admin, "modify")

        if booking.status == BookingStatus.CANCELLED.value:
            raise InvalidError("Cancelled bookings cannot be modified")

        changes = fields.model_dump(exclude_unset=True)

        if "title" in changes and changes["title"] is None:
            raise InvalidError("Title cannot be empty")

        self.rules.validate_details(
            changes.get("title"),
            changes.get("description"),
            fields.attendees if "attendees" in changes else None,
        )

        time_changed = False
        new_interval = booking.interval
        if changes.get("start_time") is not None or changes.get("end_time") is not None:
            new_interval = Interval(
                changes.get("start_time") or booking.start_time,
                changes.get("end_time") or booking.end_time,
            )
            time_changed = new_interval != booking.interval

        if time_changed:
            self.rules.validate_interval(new_interval, is_new=False)
            if await self.detector.has_conflict(
                db, booking.room_id, new_interval, exclude_booking_id=booking.id
            ):
                raise ConflictError(SLOT_TAKEN_MESSAGE)

        if "title" in changes:
            booking.title = changes["title"].strip()
        if "description" in changes:
            booking.description = changes["description"]
        if time_changed:
            booking.start_time = new_interval.start
            booking.end_time = new_interval.end

        if fields.attendees is not None:
            # Flush the removals first; the new list may reuse emails and
            # (booking_id, email) is unique.
            booking.attendees.clear()
            await db.flush()
            booking.attendees.extend(_attendee_rows(fields.attendees))

        await db.flush()
        logger.info("Booking %s updated by %s", booking.id, actor_id)
        return booking

    async def cancel(
        self,
        db: AsyncSession,
        booking: Booking,
        actor_id: str,
        is_admin: bool,
    ) -> Booking:
        self.authorize(booking, actor_id, is_admin, "cancel")

        if booking.status == BookingStatus.CANCELLED.value:
            raise AlreadyCancelledError(f"Booking {booking.id} is already cancelled")

        booking.status = BookingStatus.CANCELLED.value
        await db.flush()

        logger.info("Booking %s cancelled by %s", booking.id, actor_id)
        return booking
