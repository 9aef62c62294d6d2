# app/models/waitlist_entry.py
from sqlalchemy import Column, ForeignKey, Index, Integer, String, text

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow
from app.services.interval import Interval


class WaitlistEntry(Base):
    """
    A user's request to be told when an occupied slot of a room frees up.
    """

    __tablename__ = "waitlist_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    room_id = Column(
        Integer,
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
    )

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)

    status = Column(String(16), nullable=False, default="WAITING")

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    notified_at = Column(UTCDateTime, nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_waitlist_room_status_created", "room_id", "status", "created_at"),
        # At most one WAITING entry per (room, user, exact interval).
        Index(
            "uq_waitlist_waiting_slot",
            "room_id",
            "user_id",
            "start_time",
            "end_time",
            unique=True,
            sqlite_where=text("status = 'WAITING'"),
            postgresql_where=text("status = 'WAITING'"),
        ),
    )

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry id={self.id} room_id={self.room_id} user_id={self.user_id} "
            f"status={self.status}>"
        )
