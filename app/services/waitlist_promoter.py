# app/services/waitlist_promoter.py
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, ForbiddenError, InvalidError, NotFoundError
from app.models.room import Room
from app.models.waitlist_entry import WaitlistEntry
from app.schemas.waitlist import ACTIVE_WAITLIST_STATUSES, WaitlistStatus
from app.services.conflict_detector import ConflictDetector
from app.services.interval import Interval

logger = logging.getLogger(__name__)


class WaitlistPromoter:
    """
    Owns the per-room waitlist.

    Promotion policy
    ----------------
    When a CONFIRMED booking is cancelled, every WAITING entry of the room
    whose interval overlaps the freed interval becomes NOTIFIED, in order of
    entry creation (first come, first served). Promotion is not a
    reservation: all candidates are told, and whoever completes a booking
    first gets the slot because the ConflictDetector rejects the rest.
    """

    def __init__(self, detector: ConflictDetector) -> None:
        self.detector = detector

    async def add_to_waitlist(
        self,
        db: AsyncSession,
        room_id: int,
        user_id: str,
        interval: Interval,
    ) -> WaitlistEntry:
        room = await db.get(Room, room_id)
        if room is None:
            raise NotFoundError("Room not found")

        if not await self.detector.has_conflict(db, room_id, interval):
            raise InvalidError("This time slot is available. You can book directly.")

        existing = await db.execute(
            select(WaitlistEntry.id).where(
                WaitlistEntry.room_id == room_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.start_time == interval.start,
                WaitlistEntry.end_time == interval.end,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
        )
        if existing.first() is not None:
            raise ConflictError("You are already on the waitlist for this time slot")

        entry = WaitlistEntry(
            room_id=room_id,
            user_id=user_id,
            start_time=interval.start,
            end_time=interval.end,
            status=WaitlistStatus.WAITING.value,
        )
        db.add(entry)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Unique index on WAITING (room, user, interval) caught a
            # duplicate written by another process.
            await db.rollback()
            raise ConflictError("You are already on the waitlist for this time slot") from exc

        logger.info("User %s joined waitlist of room %s for %s", user_id, room_id, interval)
        return entry

    async def remove_from_waitlist(
        self,
        db: AsyncSession,
        entry_id: int,
        user_id: str,
    ) -> WaitlistEntry:
        """
        Evict the user's own entry (WAITING/NOTIFIED -> EXPIRED). Entries that
        already reached BOOKED or EXPIRED are left untouched.
        """
        entry = await db.get(WaitlistEntry, entry_id)
        if entry is None:
            raise NotFoundError("Waitlist entry not found")
        if entry.user_id != user_id:
            raise ForbiddenError("You can only remove your own waitlist entries")

        if entry.status in ACTIVE_WAITLIST_STATUSES:
            entry.status = WaitlistStatus.EXPIRED.value
            await db.flush()
        return entry

    async def notify_waitlist(
        self,
        db: AsyncSession,
        room_id: int,
        freed: Interval,
        now: datetime,
    ) -> list[WaitlistEntry]:
        """
        Promote overlapping WAITING entries to NOTIFIED.

        Returns the promoted entries in first-come-first-served order. Entries
        that are already NOTIFIED are not selected again, so re-running a pass
        promotes nothing new. Overlapping entries whose slot has already
        started at `now` are expired instead of promoted.
        """
        stmt = (
            select(WaitlistEntry)
            .where(
                WaitlistEntry.room_id == room_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
                WaitlistEntry.start_time < freed.end,
                WaitlistEntry.end_time > freed.start,
            )
            .order_by(WaitlistEntry.created_at, WaitlistEntry.id)
        )
        result = await db.execute(stmt)

        entries: list[WaitlistEntry] = []
        started: list[WaitlistEntry] = []
        for entry in result.scalars().all():
            if entry.start_time <= now:
                entry.status = WaitlistStatus.EXPIRED.value
                started.append(entry)
            else:
                entry.status = WaitlistStatus.NOTIFIED.value
                entry.notified_at = now
                entries.append(entry)

        await db.flush()

        if started:
            logger.info(
                "Expired %s already started waitlist entr%s for room %s %s: %s",
                len(started),
                "y" if len(started) == 1 else "ies",
                room_id,
                freed,
                [e.id for e in started],
            )

        if entries:
            logger.info(
                "Promoted %s waitlist entr%s for room %s %s: %s",
                len(entries),
                "y" if len(entries) == 1 else "ies",
                room_id,
                freed,
                [e.id for e in entries],
            )
        return entries

    async def mark_booked(
        self,
        db: AsyncSession,
        room_id: int,
        user_id: str,
        booked: Interval,
    ) -> int:
        """
        NOTIFIED entries of this user that the new booking satisfies become
        BOOKED. Returns the number of entries updated.
        """
        stmt = (
            update(WaitlistEntry)
            .where(
                WaitlistEntry.room_id == room_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status == WaitlistStatus.NOTIFIED.value,
                WaitlistEntry.start_time < booked.end,
                WaitlistEntry.end_time > booked.start,
            )
            .values(status=WaitlistStatus.BOOKED.value)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.rowcount or 0

    async def sweep_expired(self, db: AsyncSession, now: datetime) -> int:
        """
        Move WAITING/NOTIFIED entries whose start has passed to EXPIRED.

        Idempotent: a second run finds nothing to update.
        """
        stmt = (
            update(WaitlistEntry)
            .where(
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
                WaitlistEntry.start_time < now,
            )
            .values(status=WaitlistStatus.EXPIRED.value)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        expired = result.rowcount or 0
        if expired:
            logger.info("Expired %s stale waitlist entries", expired)
        return expired

    async def is_on_waitlist(
        self,
        db: AsyncSession,
        room_id: int,
        user_id: str,
        interval: Interval,
    ) -> bool:
        """
        True when the user holds a WAITING or NOTIFIED entry of the room
        overlapping `interval`.
        """
        stmt = (
            select(WaitlistEntry.id)
            .where(
                WaitlistEntry.room_id == room_id,
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
                WaitlistEntry.start_time < interval.end,
                WaitlistEntry.end_time > interval.start,
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.first() is not None

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        now: datetime,
    ) -> list[WaitlistEntry]:
        stmt = (
            select(WaitlistEntry)
            .where(
                WaitlistEntry.user_id == user_id,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
                WaitlistEntry.start_time >= now,
            )
            .order_by(WaitlistEntry.start_time)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
