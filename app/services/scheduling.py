# app/services/scheduling.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.errors import ConflictError, ForbiddenError, InvalidError, NotFoundError
from app.db.types import utcnow
from app.models.booking import Booking
from app.models.booking_check_in import BookingCheckIn
from app.models.room import Room
from app.models.waitlist_entry import WaitlistEntry
from app.schemas.booking import (
    AttendeeIn,
    BookingPage,
    BookingRead,
    BookingStatus,
    BookingUpdate,
    CheckInRead,
    CheckInStatus,
    RecurrenceSummary,
)
from app.schemas.notification import NotificationEvent, NotificationKind
from app.schemas.room import BookedSlot, FreeSlot, RoomAvailability
from app.schemas.waitlist import ReminderScanSummary, SweepSummary
from app.services.booking_lifecycle import BookingLifecycle
from app.services.booking_rules import BookingRules
from app.services.calendar_sync import booking_snapshot
from app.services.conflict_detector import ConflictDetector
from app.services.interval import Interval
from app.services.recurrence import RecurrenceExpander
from app.services.reminders import ReminderScanner
from app.services.retry import retry_async
from app.services.room_locks import RoomLocks
from app.services.side_effects import SideEffectDispatcher
from app.services.waitlist_promoter import WaitlistPromoter

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (SQLAlchemyError, OSError)


@dataclass
class BookingResult:
    booking: Booking
    recurrence: RecurrenceSummary | None = None


class SchedulingService:
    """
    Façade over the scheduling engine and the only entry point for the HTTP
    layer.

    Guarantees
    ----------
    - For any room, CONFIRMED bookings never overlap. Every operation that
      can create or move a booking holds that room's booking lock from the
      conflict check until the commit.
    - The waitlist of a room is serialized by a second, independent lock.
      Lock order is always booking lock, then waitlist lock.
    - Notifications and calendar sync are scheduled after commit through the
      SideEffectDispatcher and cannot change an operation's outcome.
    - Actor identity is passed explicitly (`actor_id`, `is_admin`).

    All methods take the caller's AsyncSession and commit it. Sessions are
    expected to use `expire_on_commit=False`, as `AsyncSessionLocal` does.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or utcnow
        self.dispatcher = dispatcher or SideEffectDispatcher()

        self.detector = ConflictDetector()
        self.rules = BookingRules(self.settings, self.clock)
        self.expander = RecurrenceExpander(
            self.detector, max_occurrences=self.settings.RECURRENCE_MAX_OCCURRENCES
        )
        self.lifecycle = BookingLifecycle(self.rules, self.detector, self.expander)
        self.waitlist = WaitlistPromoter(self.detector)
        self.reminders = ReminderScanner()

        self.booking_locks = RoomLocks("booking")
        self.waitlist_locks = RoomLocks("waitlist")

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def request_booking(
        self,
        db: AsyncSession,
        owner_id: str,
        room_id: int,
        interval: Interval,
        title: str,
        description: str | None = None,
        attendees: Sequence[AttendeeIn] = (),
        recurrence_rule: str | None = None,
    ) -> BookingResult:
        """
        Book `interval` in `room_id` for `owner_id`.

        The parent booking is committed before recurrence placement starts,
        so a failure while placing occurrences never undoes it. Conflicting
        occurrences are skipped and reported in the result's
        RecurrenceSummary.
        """
        async with self.booking_locks.for_room(room_id):
            # The waitlist lock is taken before any write so a booking that
            # holds database locks never waits on a running promotion.
            async with self.waitlist_locks.for_room(room_id):
                try:
                    room = await db.get(Room, room_id)
                    booking = await self.lifecycle.create(
                        db,
                        room,
                        interval,
                        owner_id,
                        title,
                        description=description,
                        attendees=attendees,
                        recurrence_rule=recurrence_rule,
                    )
                    await self.waitlist.mark_booked(db, room_id, owner_id, interval)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise

            recurrence = None
            if booking.recurrence_rule:
                recurrence = await self._place_recurrence(db, booking)

        self.dispatcher.notify(self._booking_events(booking, NotificationKind.BOOKING_CONFIRMED))
        self.dispatcher.sync_calendar("create", booking_snapshot(booking))
        return BookingResult(booking=booking, recurrence=recurrence)

    async def _place_recurrence(self, db: AsyncSession, parent: Booking) -> RecurrenceSummary:
        """
        Place occurrences in a session of their own. Rolling it back leaves
        the caller's session, and the loaded parent in it, untouched.
        """
        summary = RecurrenceSummary(requested=0, created=0, skipped=0)
        async with AsyncSession(
            bind=db.bind, expire_on_commit=False, autoflush=False
        ) as series_db:
            try:
                await self.expander.place_occurrences(series_db, parent, summary)
                await series_db.commit()
            except SQLAlchemyError:
                logger.exception("Failed to place occurrences of recurring booking %s", parent.id)
                await series_db.rollback()
                return RecurrenceSummary(
                    requested=summary.requested,
                    created=0,
                    skipped=summary.requested,
                )
        return summary

    async def update_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        actor_id: str,
        is_admin: bool,
        fields: BookingUpdate,
    ) -> Booking:
        booking = await self._load_booking(db, booking_id)

        async with self.booking_locks.for_room(booking.room_id):
            try:
                await db.refresh(booking)
                await self.lifecycle.update(db, booking, actor_id, is_admin, fields)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        self.dispatcher.notify(self._booking_events(booking, NotificationKind.BOOKING_UPDATED))
        self.dispatcher.sync_calendar("update", booking_snapshot(booking))
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        actor_id: str,
        is_admin: bool,
    ) -> Booking:
        """
        Cancel a booking and hand its slot to the waitlist.

        Cancelling never cascades to occurrences of a recurring series.
        Once the cancellation is committed the call succeeds, even when
        waitlist promotion or notification delivery fails.
        """
        booking = await self._load_booking(db, booking_id)

        async with self.booking_locks.for_room(booking.room_id):
            try:
                await db.refresh(booking)
                await self.lifecycle.cancel(db, booking, actor_id, is_admin)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        snapshot = booking_snapshot(booking)
        events = self._booking_events(booking, NotificationKind.BOOKING_CANCELLED)

        promoted = await self._promote_waitlist(db, booking.room_id, booking.interval)
        events.extend(
            NotificationEvent(
                kind=NotificationKind.WAITLIST_SLOT_AVAILABLE,
                user_id=entry.user_id,
                room_id=entry.room_id,
                room_name=snapshot["room_name"],
                waitlist_entry_id=entry.id,
                start_time=entry.start_time,
                end_time=entry.end_time,
            )
            for entry in promoted
        )

        self.dispatcher.notify(events)
        self.dispatcher.sync_calendar("delete", snapshot)
        return booking

    async def _promote_waitlist(
        self,
        db: AsyncSession,
        room_id: int,
        freed: Interval,
    ) -> list[WaitlistEntry]:
        """
        Run one promotion pass in its own session so a failure cannot touch
        the already committed cancellation. Retried on transient errors.
        """

        async def attempt() -> list[WaitlistEntry]:
            async with self.waitlist_locks.for_room(room_id):
                async with AsyncSession(
                    bind=db.bind, expire_on_commit=False, autoflush=False
                ) as promo_db:
                    entries = await self.waitlist.notify_waitlist(
                        promo_db, room_id, freed, self.clock()
                    )
                    await promo_db.commit()
                    return entries

        try:
            return await retry_async(
                attempt,
                attempts=self.settings.MAINTENANCE_RETRY_ATTEMPTS,
                delay_seconds=self.settings.MAINTENANCE_RETRY_DELAY_SECONDS,
                retry_on=TRANSIENT_ERRORS,
                label=f"Waitlist promotion for room {room_id}",
            )
        except Exception:
            logger.exception("Waitlist promotion failed for room %s %s", room_id, freed)
            return []

    async def get_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        return await self._load_booking(db, booking_id)

    async def list_room_bookings(
        self,
        db: AsyncSession,
        room_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        include_cancelled: bool = False,
    ) -> list[Booking]:
        if await db.get(Room, room_id) is None:
            raise NotFoundError("Room not found")

        stmt = select(Booking).where(Booking.room_id == room_id)
        if not include_cancelled:
            stmt = stmt.where(Booking.status == BookingStatus.CONFIRMED.value)
        if start is not None:
            stmt = stmt.where(Booking.end_time > start)
        if end is not None:
            stmt = stmt.where(Booking.start_time < end)
        stmt = stmt.order_by(Booking.start_time, Booking.id)

        result = await db.execute(stmt)
        return list(result.unique().scalars().all())

    async def list_user_bookings(
        self,
        db: AsyncSession,
        user_id: str,
        status: BookingStatus | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> BookingPage:
        """
        Bookings organized by `user_id`, ordered by start time.

        `start_date` keeps bookings starting on or after that day and
        `end_date` keeps bookings ending on or before it, both read as
        calendar days in the business timezone.
        """
        stmt = select(Booking).where(Booking.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Booking.status == BookingStatus(status).value)
        if start_date is not None:
            stmt = stmt.where(Booking.start_time >= self._day_start(start_date))
        if end_date is not None:
            stmt = stmt.where(Booking.end_time < self._day_start(end_date + timedelta(days=1)))

        total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

        stmt = (
            stmt.order_by(Booking.start_time, Booking.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await db.execute(stmt)
        bookings = result.unique().scalars().all()

        return BookingPage(
            data=[BookingRead.model_validate(b) for b in bookings],
            page=page,
            limit=limit,
            total=total,
            total_pages=-(-total // limit),
        )

    async def room_availability(
        self, db: AsyncSession, room_id: int, day: date
    ) -> RoomAvailability:
        """
        CONFIRMED bookings of a room on `day` and the free gaps between them
        within business hours.
        """
        opening = self.rules.business_day(day)
        bookings = await self.list_room_bookings(db, room_id, start=opening.start, end=opening.end)

        free_slots: list[FreeSlot] = []
        cursor = opening.start
        for booking in bookings:
            if booking.start_time > cursor:
                free_slots.append(FreeSlot(start_time=cursor, end_time=booking.start_time))
            cursor = max(cursor, booking.end_time)
        if cursor < opening.end:
            free_slots.append(FreeSlot(start_time=cursor, end_time=opening.end))

        return RoomAvailability(
            room_id=room_id,
            day=day,
            bookings=[
                BookedSlot(
                    booking_id=b.id,
                    title=b.title,
                    start_time=b.start_time,
                    end_time=b.end_time,
                    booked_by=b.user_id,
                )
                for b in bookings
            ],
            free_slots=free_slots,
        )

    def _day_start(self, day: date) -> datetime:
        return datetime.combine(day, datetime.min.time(), tzinfo=self.rules.tz)

    async def _load_booking(self, db: AsyncSession, booking_id: int) -> Booking:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    # ------------------------------------------------------------------
    # Check-in
    # ------------------------------------------------------------------

    async def check_in(self, db: AsyncSession, booking_id: int, user_id: str) -> BookingCheckIn:
        """
        Record that the organizer or an attendee arrived.

        Check-in opens CHECKIN_WINDOW_MINUTES before the start and closes
        when the booking ends. Attendees are matched by email against the
        caller's user id, ignoring case.
        """
        booking = await self._load_booking(db, booking_id)

        if booking.status != BookingStatus.CONFIRMED.value:
            raise InvalidError("Cannot check in to a cancelled booking")

        attendee_emails = {a.email.lower() for a in booking.attendees}
        if user_id != booking.user_id and user_id.lower() not in attendee_emails:
            raise ForbiddenError("Only the organizer or attendees can check in")

        now = self.clock()
        opens_at = booking.start_time - timedelta(minutes=self.settings.CHECKIN_WINDOW_MINUTES)
        if now < opens_at:
            raise InvalidError(
                f"Check-in is not available yet. You can check in from {opens_at.isoformat()}"
            )
        if now >= booking.end_time:
            raise InvalidError("This booking has already ended")

        existing = await db.execute(
            select(BookingCheckIn.id).where(
                BookingCheckIn.booking_id == booking_id,
                BookingCheckIn.user_id == user_id,
            )
        )
        if existing.first() is not None:
            raise ConflictError("You have already checked in to this booking")

        record = BookingCheckIn(booking_id=booking_id, user_id=user_id, checked_in_at=now)
        db.add(record)
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError("You have already checked in to this booking") from exc

        logger.info("User %s checked in to booking %s", user_id, booking_id)
        return record

    async def check_in_status(self, db: AsyncSession, booking_id: int) -> CheckInStatus:
        booking = await self._load_booking(db, booking_id)
        result = await db.execute(
            select(BookingCheckIn)
            .where(BookingCheckIn.booking_id == booking_id)
            .order_by(BookingCheckIn.checked_in_at, BookingCheckIn.id)
        )
        check_ins = [CheckInRead.model_validate(c) for c in result.scalars().all()]
        return CheckInStatus(
            booking_id=booking_id,
            total_expected=1 + len(booking.attendees),
            total_checked_in=len(check_ins),
            check_ins=check_ins,
        )

    # ------------------------------------------------------------------
    # Waitlist
    # ------------------------------------------------------------------

    async def join_waitlist(
        self,
        db: AsyncSession,
        user_id: str,
        room_id: int,
        interval: Interval,
    ) -> WaitlistEntry:
        if interval.start <= self.clock():
            raise InvalidError("Cannot join the waitlist for a slot that has already started")

        async with self.booking_locks.for_room(room_id):
            async with self.waitlist_locks.for_room(room_id):
                try:
                    entry = await self.waitlist.add_to_waitlist(db, room_id, user_id, interval)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        return entry

    async def leave_waitlist(self, db: AsyncSession, entry_id: int, user_id: str) -> None:
        entry = await db.get(WaitlistEntry, entry_id)
        if entry is None:
            raise NotFoundError("Waitlist entry not found")

        async with self.waitlist_locks.for_room(entry.room_id):
            try:
                await self.waitlist.remove_from_waitlist(db, entry_id, user_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def list_user_waitlist(self, db: AsyncSession, user_id: str) -> list[WaitlistEntry]:
        return await self.waitlist.list_for_user(db, user_id, self.clock())

    async def is_on_waitlist(
        self,
        db: AsyncSession,
        user_id: str,
        room_id: int,
        interval: Interval,
    ) -> bool:
        return await self.waitlist.is_on_waitlist(db, room_id, user_id, interval)

    # ------------------------------------------------------------------
    # Background maintenance
    # ------------------------------------------------------------------

    async def sweep_expired(self, db: AsyncSession) -> SweepSummary:
        now = self.clock()
        try:
            expired = await self.waitlist.sweep_expired(db, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return SweepSummary(run_at=now, expired=expired)

    async def send_reminders(self, db: AsyncSession) -> ReminderScanSummary:
        now = self.clock()
        due = await self.reminders.due_bookings(db, now)

        events: list[NotificationEvent] = []
        for reminder_type, bookings in due.items():
            for booking in bookings:
                events.extend(self.reminders.build_events(booking, reminder_type))

        self.dispatcher.notify(events)
        return ReminderScanSummary(
            run_at=now,
            one_hour_bookings=len(due.get("1h", [])),
            twenty_four_hour_bookings=len(due.get("24h", [])),
            notifications_queued=len(events),
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @staticmethod
    def _booking_events(booking: Booking, kind: NotificationKind) -> list[NotificationEvent]:
        """
        Organizer event first. New bookings invite each attendee separately;
        updates and cancellations copy all attendees on the organizer event.
        """
        common = dict(
            room_id=booking.room_id,
            room_name=booking.room.name if booking.room is not None else None,
            booking_id=booking.id,
            title=booking.title,
            start_time=booking.start_time,
            end_time=booking.end_time,
        )
        emails = [a.email for a in booking.attendees]

        if kind == NotificationKind.BOOKING_CONFIRMED:
            events = [NotificationEvent(kind=kind, user_id=booking.user_id, **common)]
            events.extend(
                NotificationEvent(
                    kind=NotificationKind.ATTENDEE_INVITATION,
                    recipients=[email],
                    **common,
                )
                for email in emails
            )
            return events

        return [NotificationEvent(kind=kind, user_id=booking.user_id, recipients=emails, **common)]
