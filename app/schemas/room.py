# app/schemas/room.py
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class RoomBase(BaseModel):
    name: str = Field(..., max_length=120, examples=["Boardroom"])
    capacity: int = Field(..., gt=0, examples=[12])
    floor: str | None = Field(default=None, examples=["3"])
    building: str | None = Field(default=None, examples=["HQ"])
    is_active: bool = Field(
        default=True,
        description="Inactive rooms cannot be booked.",
    )


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=120)
    capacity: int | None = Field(default=None, gt=0)
    floor: str | None = Field(default=None)
    building: str | None = Field(default=None)
    is_active: bool | None = Field(default=None)


class RoomRead(RoomBase):
    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class BookedSlot(BaseModel):
    booking_id: int
    title: str
    start_time: datetime
    end_time: datetime
    booked_by: str


class FreeSlot(BaseModel):
    start_time: datetime
    end_time: datetime


class RoomAvailability(BaseModel):
    """
    A room's day: CONFIRMED bookings touching the day and the free gaps
    left within business hours.
    """

    room_id: int
    day: date
    bookings: list[BookedSlot] = Field(default_factory=list)
    free_slots: list[FreeSlot] = Field(default_factory=list)
