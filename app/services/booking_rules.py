# app/services/booking_rules.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Sequence
from zoneinfo import ZoneInfo

from app.core.config import Settings
from app.core.errors import InvalidError
from app.schemas.booking import AttendeeIn
from app.services.interval import Interval


class BookingRules:
    """
    Business rules a booking must satisfy before the engine even looks for
    conflicts.

    Rules
    -----
    1) Duration between MIN_DURATION_MINUTES and MAX_DURATION_HOURS.
    2) Start and end inside business hours on the same local day
       (end may equal the closing hour).
    3) Start no more than MAX_ADVANCE_BOOKING_DAYS ahead.
    4) New bookings start at least MIN_LEAD_TIME_MINUTES from now.
    5) Title/description lengths, attendee count, unique attendee emails.

    Every violation raises InvalidError with a human-readable message.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime]) -> None:
        self.settings = settings
        self.clock = clock
        if settings.BUSINESS_TIMEZONE.upper() == "UTC":
            self.tz = timezone.utc
        else:
            self.tz = ZoneInfo(settings.BUSINESS_TIMEZONE)

    def validate_interval(self, interval: Interval, *, is_new: bool = True) -> None:
        s = self.settings

        minutes = interval.duration_minutes()
        if minutes < s.MIN_DURATION_MINUTES:
            raise InvalidError(f"Booking must be at least {s.MIN_DURATION_MINUTES} minutes")
        if minutes > s.MAX_DURATION_HOURS * 60:
            raise InvalidError(f"Booking cannot exceed {s.MAX_DURATION_HOURS} hours")

        if not self._within_business_hours(interval):
            raise InvalidError(
                f"Bookings must be within business hours "
                f"({s.BUSINESS_HOURS_START}:00 - {s.BUSINESS_HOURS_END}:00)"
            )

        now = self.clock()
        if interval.start > now + timedelta(days=s.MAX_ADVANCE_BOOKING_DAYS):
            raise InvalidError(
                f"Cannot book more than {s.MAX_ADVANCE_BOOKING_DAYS} days in advance"
            )

        if is_new and interval.start < now + timedelta(minutes=s.MIN_LEAD_TIME_MINUTES):
            raise InvalidError(
                f"Booking must start at least {s.MIN_LEAD_TIME_MINUTES} minutes from now"
            )

    def validate_details(
        self,
        title: str | None,
        description: str | None,
        attendees: Sequence[AttendeeIn] | None,
    ) -> None:
        s = self.settings

        if title is not None:
            length = len(title.strip())
            if length < s.MIN_TITLE_LENGTH:
                raise InvalidError(f"Title must be at least {s.MIN_TITLE_LENGTH} characters")
            if length > s.MAX_TITLE_LENGTH:
                raise InvalidError(f"Title cannot exceed {s.MAX_TITLE_LENGTH} characters")

        if description is not None and len(description) > s.MAX_DESCRIPTION_LENGTH:
            raise InvalidError(
                f"Description cannot exceed {s.MAX_DESCRIPTION_LENGTH} characters"
            )

        if attendees is not None:
            if len(attendees) > s.MAX_ATTENDEES:
                raise InvalidError(f"Cannot have more than {s.MAX_ATTENDEES} attendees")
            emails = [a.email.lower() for a in attendees]
            if len(set(emails)) != len(emails):
                raise InvalidError("Duplicate attendee emails are not allowed")

    def _within_business_hours(self, interval: Interval) -> bool:
        start = interval.start.astimezone(self.tz)
        end = interval.end.astimezone(self.tz)

        if end.date() != start.date():
            return False
        return (
            time(self.settings.BUSINESS_HOURS_START) <= start.time()
            and end.time() <= time(self.settings.BUSINESS_HOURS_END)
        )

    def business_day(self, day: date) -> Interval:
        """Opening hours of `day` in the business timezone, as UTC instants."""
        opens = datetime.combine(day, time(self.settings.BUSINESS_HOURS_START), tzinfo=self.tz)
        closes = datetime.combine(day, time(self.settings.BUSINESS_HOURS_END), tzinfo=self.tz)
        return Interval(opens.astimezone(timezone.utc), closes.astimezone(timezone.utc))
