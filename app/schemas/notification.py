# app/schemas/notification.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    ATTENDEE_INVITATION = "ATTENDEE_INVITATION"
    BOOKING_UPDATED = "BOOKING_UPDATED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    WAITLIST_SLOT_AVAILABLE = "WAITLIST_SLOT_AVAILABLE"
    BOOKING_REMINDER = "BOOKING_REMINDER"


class NotificationEvent(BaseModel):
    """
    A side effect the scheduling core asks the notification sink to deliver.

    `user_id` is the identity the event concerns; `recipients` are explicit
    email addresses (attendees) when known.
    """

    kind: NotificationKind
    user_id: str | None = None
    recipients: list[str] = Field(default_factory=list)
    room_id: int
    room_name: str | None = None
    booking_id: int | None = None
    waitlist_entry_id: int | None = None
    title: str | None = None
    start_time: datetime
    end_time: datetime
    reminder_type: str | None = Field(default=None, description="'1h' or '24h' for reminders.")
