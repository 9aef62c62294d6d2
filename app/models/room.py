# app/models/room.py
from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String

from app.db.base import Base
from app.db.types import UTCDateTime, utcnow


class Room(Base):
    """
    A bookable room. Only used as the partition key of the scheduling
    engine; capacity and location are informational.
    """

    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False, unique=True)
    capacity = Column(Integer, nullable=False)
    floor = Column(String(32), nullable=True)
    building = Column(String(120), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_rooms_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Room id={self.id} name={self.name!r} active={self.is_active}>"
