# app/models/booking_check_in.py
from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class BookingCheckIn(Base):
    """
    Records that a participant (organizer or attendee) showed up for a
    booking. One row per participant and booking.
    """

    __tablename__ = "booking_check_ins"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(254), nullable=False)
    checked_in_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("booking_id", "user_id", name="uq_booking_check_ins_booking_user"),
    )

    def __repr__(self) -> str:
        return f"<BookingCheckIn booking_id={self.booking_id} user_id={self.user_id}>"
