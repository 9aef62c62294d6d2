# app/models/booking.py
from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow
from app.models.room import Room
from app.services.interval import Interval


class Booking(Base):
    """
    A reservation of one room for a half-open time range.

    A recurring series is a parent row holding `recurrence_rule` plus one
    independent child row per placed occurrence pointing back via
    `parent_id`.
    """

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    room_id = Column(
        Integer,
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
    )

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    status = Column(String(16), nullable=False, default="CONFIRMED")

    recurrence_rule = Column(String(500), nullable=True)
    parent_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    room = relationship(Room, lazy="joined")
    attendees = relationship(
        "BookingAttendee",
        order_by="BookingAttendee.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_bookings_interval_ordered"),
        CheckConstraint(
            "recurrence_rule IS NULL OR parent_id IS NULL",
            name="ck_bookings_rule_xor_parent",
        ),
        Index("ix_bookings_room_status_start", "room_id", "status", "start_time"),
    )

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def __repr__(self) -> str:
        return (
            f"<Booking id={self.id} room_id={self.room_id} "
            f"{self.start_time.isoformat()}..{self.end_time.isoformat()} status={self.status}>"
        )


class BookingAttendee(Base):
    """
    An invitee of a booking. The list is owned by the booking and is
    replaced wholesale on update.
    """

    __tablename__ = "booking_attendees"

    id = Column(Integer, primary_key=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    email = Column(String(254), nullable=False)
    name = Column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("booking_id", "email", name="uq_booking_attendees_booking_email"),
    )

    def __repr__(self) -> str:
        return f"<BookingAttendee booking_id={self.booking_id} email={self.email}>"
