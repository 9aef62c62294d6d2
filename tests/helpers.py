# tests/helpers.py
from datetime import datetime, timedelta, timezone

from app.db.session import AsyncSessionLocal
from app.services.interval import Interval

# Monday, 08:00 UTC. Business hours (07-21 UTC) are open all day.
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """An instant on NOW's day (plus `days`) at the given UTC wall time."""
    return NOW.replace(hour=hour, minute=minute) + timedelta(days=days)


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class FrozenClock:
    """
    Controllable replacement for `utcnow` used by the scheduling service.
    """

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class RecordingSink:
    """
    Notification sink that keeps every event it is given.
    """

    def __init__(self) -> None:
        self.events = []

    async def notify(self, event) -> None:
        self.events.append(event)

    def kinds(self):
        return [e.kind.value for e in self.events]


class RecordingCalendar:
    def __init__(self) -> None:
        self.calls = []

    async def booking_created(self, snapshot) -> None:
        self.calls.append(("create", snapshot))

    async def booking_updated(self, snapshot) -> None:
        self.calls.append(("update", snapshot))

    async def booking_cancelled(self, snapshot) -> None:
        self.calls.append(("delete", snapshot))


async def book(service, room_id, start, end, owner="alice@example.com", title="Team sync", **kwargs):
    """
    Request a booking through the service in a session of its own and return
    the BookingResult.
    """
    async with AsyncSessionLocal() as db:
        return await service.request_booking(
            db,
            owner_id=owner,
            room_id=room_id,
            interval=Interval(start, end),
            title=title,
            **kwargs,
        )


async def cancel(service, booking_id, actor="alice@example.com", is_admin=False):
    async with AsyncSessionLocal() as db:
        return await service.cancel_booking(db, booking_id, actor_id=actor, is_admin=is_admin)


async def join(service, room_id, start, end, user_id):
    async with AsyncSessionLocal() as db:
        return await service.join_waitlist(db, user_id, room_id, Interval(start, end))
