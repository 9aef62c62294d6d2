# app/schemas/booking.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class BookingStatus(str, Enum):
    """
    Lifecycle states of a booking. PENDING is reserved; bookings are
    created directly as CONFIRMED.
    """

    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


def assume_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --------------------------------------------------------------------------
# Attendees
# --------------------------------------------------------------------------

class AttendeeIn(BaseModel):
    email: str = Field(
        ...,
        max_length=254,
        description="Attendee email address. Unique within a booking (case-insensitive).",
        examples=["jane.doe@example.com"],
    )
    name: str | None = Field(default=None, max_length=100, examples=["Jane Doe"])

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Please enter a valid email address")
        return value


class AttendeeRead(BaseModel):
    email: str
    name: str | None = None

    class Config:
        from_attributes = True


# --------------------------------------------------------------------------
# Create schema (POST /bookings)
# --------------------------------------------------------------------------

class BookingCreate(BaseModel):
    """
    Payload for requesting a new booking. Offsets are honoured; naive
    timestamps are taken as UTC.
    """

    room_id: int = Field(..., examples=[1])
    title: str = Field(..., examples=["Sprint planning"])
    description: str | None = Field(default=None)
    start_time: datetime = Field(..., examples=["2030-01-07T10:00:00Z"])
    end_time: datetime = Field(..., examples=["2030-01-07T11:00:00Z"])
    attendees: list[AttendeeIn] = Field(default_factory=list)
    recurrence_rule: str | None = Field(
        default=None,
        description="iCalendar RRULE, e.g. `RRULE:FREQ=WEEKLY;COUNT=4`.",
        examples=["RRULE:FREQ=WEEKLY;COUNT=4"],
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def default_to_utc(cls, value):
        return assume_utc(value)


# --------------------------------------------------------------------------
# Update schema (PATCH /bookings/{id})
# --------------------------------------------------------------------------

class BookingUpdate(BaseModel):
    """
    All fields are optional; only provided fields are updated. A provided
    `attendees` list replaces the previous one entirely.
    """

    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    start_time: datetime | None = Field(default=None)
    end_time: datetime | None = Field(default=None)
    attendees: list[AttendeeIn] | None = Field(default=None)

    @field_validator("start_time", "end_time")
    @classmethod
    def default_to_utc(cls, value):
        return assume_utc(value)


# --------------------------------------------------------------------------
# Read schemas
# --------------------------------------------------------------------------

class BookingRead(BaseModel):
    id: int
    user_id: str
    room_id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    recurrence_rule: str | None = None
    parent_id: int | None = None
    attendees: list[AttendeeRead] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RecurrenceSummary(BaseModel):
    """
    Outcome of expanding a recurrence rule. The parent booking itself is
    not counted; `requested` is the number of further occurrences the rule
    produced (bounded by the occurrence ceiling).
    """

    requested: int = Field(..., examples=[3])
    created: int = Field(..., examples=[2])
    skipped: int = Field(..., examples=[1])
    skipped_start_times: list[datetime] = Field(
        default_factory=list,
        description="Start instants of occurrences skipped because of conflicts.",
    )
    occurrence_ids: list[int] = Field(default_factory=list)


class BookingCreateResult(BaseModel):
    booking: BookingRead
    recurrence: RecurrenceSummary | None = None


class BookingPage(BaseModel):
    """
    One page of a booking listing, ordered by start time.
    """

    data: list[BookingRead]
    page: int = Field(..., examples=[1])
    limit: int = Field(..., examples=[20])
    total: int = Field(..., examples=[42])
    total_pages: int = Field(..., examples=[3])


# --------------------------------------------------------------------------
# Check-in
# --------------------------------------------------------------------------

class CheckInRead(BaseModel):
    id: int
    booking_id: int
    user_id: str
    checked_in_at: datetime

    class Config:
        from_attributes = True


class CheckInStatus(BaseModel):
    booking_id: int
    total_expected: int = Field(..., description="Organizer plus attendees.")
    total_checked_in: int
    check_ins: list[CheckInRead] = Field(default_factory=list)
