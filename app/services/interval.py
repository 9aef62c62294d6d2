# app/services/interval.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from app.core.errors import InvalidError


@dataclass(frozen=True)
class Interval:
    """
    Half-open time range `[start, end)` over timezone-aware instants.

    Two intervals that merely touch (one ends exactly when the other starts)
    do not overlap, so back-to-back bookings are allowed.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidError("Interval bounds must be timezone-aware")
        if not self.start < self.end:
            raise InvalidError("End time must be after start time")

    def overlaps(self, other: Interval) -> bool:
        return self.start < other.end and other.start < self.end

    def contains_instant(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60.0

    def starting_at(self, start: datetime) -> Interval:
        """Same length, new start."""
        return Interval(start, start + self.duration)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
