# app/schemas/waitlist.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from app.schemas.booking import assume_utc


class WaitlistStatus(str, Enum):
    """
    WAITING -> NOTIFIED -> BOOKED | EXPIRED, and WAITING -> EXPIRED.
    """

    WAITING = "WAITING"
    NOTIFIED = "NOTIFIED"
    BOOKED = "BOOKED"
    EXPIRED = "EXPIRED"


ACTIVE_WAITLIST_STATUSES = (WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value)


class WaitlistJoin(BaseModel):
    room_id: int = Field(..., examples=[1])
    start_time: datetime = Field(..., examples=["2030-01-07T10:00:00Z"])
    end_time: datetime = Field(..., examples=["2030-01-07T11:00:00Z"])

    @field_validator("start_time", "end_time")
    @classmethod
    def default_to_utc(cls, value):
        return assume_utc(value)


class WaitlistEntryRead(BaseModel):
    id: int
    user_id: str
    room_id: int
    start_time: datetime
    end_time: datetime
    status: WaitlistStatus
    created_at: datetime
    notified_at: datetime | None = None

    class Config:
        from_attributes = True


class SweepSummary(BaseModel):
    run_at: datetime
    expired: int = Field(..., description="Entries moved to EXPIRED by this run.")


class ReminderScanSummary(BaseModel):
    run_at: datetime
    one_hour_bookings: int = Field(0, description="Bookings starting in ~1 hour.")
    twenty_four_hour_bookings: int = Field(0, description="Bookings starting in ~24 hours.")
    notifications_queued: int = Field(0)


class WaitlistCheck(BaseModel):
    room_id: int
    start_time: datetime
    end_time: datetime
    on_waitlist: bool
