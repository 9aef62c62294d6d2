# app/services/recurrence.py
from __future__ import annotations

import logging
from datetime import datetime
from itertools import islice
from typing import Iterator

from dateutil.rrule import rrulestr
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidError
from app.models.booking import Booking, BookingAttendee
from app.schemas.booking import BookingStatus, RecurrenceSummary
from app.services.conflict_detector import ConflictDetector
from app.services.interval import Interval

logger = logging.getLogger(__name__)

MAX_RULE_LENGTH = 500


class RecurrenceExpander:
    """
    Turns a parent booking plus an iCalendar RRULE into concrete occurrences.

    - `expand` is a lazy, bounded, single-use generator of candidate
      intervals. When the rule matches the parent's start, the first
      candidate is the parent's own slot.
    - `place_occurrences` walks the remaining candidates, asks the
      ConflictDetector about each one and creates a child booking for every
      free slot. Conflicting slots are skipped, never retried, and reported
      through a RecurrenceSummary.
    """

    def __init__(self, detector: ConflictDetector, max_occurrences: int = 52) -> None:
        if max_occurrences < 1:
            raise ValueError("max_occurrences must be >= 1")
        self.detector = detector
        self.max_occurrences = max_occurrences

    @staticmethod
    def validate_rule(rule: str, dtstart: datetime) -> None:
        """
        Raise InvalidError unless `rule` is a parseable `RRULE:` string when
        anchored at `dtstart`.
        """
        if len(rule) > MAX_RULE_LENGTH:
            raise InvalidError("Recurrence rule is too long")
        if not rule.strip().upper().startswith("RRULE:"):
            raise InvalidError("Invalid recurrence rule format")
        try:
            rrulestr(rule.strip(), dtstart=dtstart)
        except (ValueError, TypeError) as exc:
            raise InvalidError(f"Invalid recurrence rule: {exc}") from exc

    def expand(
        self,
        parent: Interval,
        rule: str,
        max_occurrences: int | None = None,
    ) -> Iterator[Interval]:
        """
        Yield up to `max_occurrences` candidate intervals (clamped to the
        configured ceiling), each as long as `parent`, anchored at the
        parent's start.
        """
        limit = self.max_occurrences
        if max_occurrences is not None:
            limit = max(0, min(max_occurrences, self.max_occurrences))

        try:
            starts = rrulestr(rule.strip(), dtstart=parent.start)
        except (ValueError, TypeError) as exc:
            raise InvalidError(f"Invalid recurrence rule: {exc}") from exc

        for start in islice(starts, limit):
            yield parent.starting_at(start)

    async def place_occurrences(
        self,
        db: AsyncSession,
        parent: Booking,
        summary: RecurrenceSummary,
        max_occurrences: int | None = None,
    ) -> RecurrenceSummary:
        """
        Create child bookings for the parent's recurrence rule.

        `summary` is filled in as placement progresses so a caller that has
        to roll back halfway still knows what was attempted. Children are
        flushed one at a time so later candidates see earlier ones.
        """
        parent_slot = parent.interval

        for candidate in self.expand(parent_slot, parent.recurrence_rule, max_occurrences):
            if candidate == parent_slot:
                # The parent already occupies its own slot.
                continue

            summary.requested += 1

            if await self.detector.has_conflict(db, parent.room_id, candidate):
                summary.skipped += 1
                summary.skipped_start_times.append(candidate.start)
                logger.info(
                    "Skipping occurrence %s of booking %s: room %s already booked",
                    candidate,
                    parent.id,
                    parent.room_id,
                )
                continue

            child = Booking(
                user_id=parent.user_id,
                room_id=parent.room_id,
                title=parent.title,
                description=parent.description,
                start_time=candidate.start,
                end_time=candidate.end,
                status=BookingStatus.CONFIRMED.value,
                recurrence_rule=None,
                parent_id=parent.id,
                attendees=[
                    BookingAttendee(position=a.position, email=a.email, name=a.name)
                    for a in parent.attendees
                ],
            )
            db.add(child)
            await db.flush()

            summary.created += 1
            summary.occurrence_ids.append(child.id)

        logger.info(
            "Recurring booking %s: %s occurrence(s) requested, %s created, %s skipped",
            parent.id,
            summary.requested,
            summary.created,
            summary.skipped,
        )
        return summary
