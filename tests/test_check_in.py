# tests/test_check_in.py
from datetime import timedelta

import pytest

from app.core.errors import ConflictError, ForbiddenError, InvalidError, NotFoundError
from app.db.session import AsyncSessionLocal
from app.schemas.booking import AttendeeIn
from helpers import at, book, cancel


async def _check_in(service, booking_id, user_id):
    async with AsyncSessionLocal() as db:
        return await service.check_in(db, booking_id, user_id)


async def _status(service, booking_id):
    async with AsyncSessionLocal() as db:
        return await service.check_in_status(db, booking_id)


@pytest.fixture
def meeting(service, room_factory):
    async def _create():
        room_id = await room_factory()
        result = await book(
            service,
            room_id,
            at(10),
            at(11),
            attendees=[AttendeeIn(email="carol@example.com"), AttendeeIn(email="dave@example.com")],
        )
        return result.booking

    return _create


@pytest.mark.asyncio
async def test_organizer_and_attendees_check_in_once(service, meeting, clock):
    booking = await meeting()
    clock.advance(timedelta(hours=1, minutes=45))  # 09:45, window just opened

    organizer = await _check_in(service, booking.id, "alice@example.com")
    attendee = await _check_in(service, booking.id, "Carol@Example.com")

    assert organizer.checked_in_at == at(9, 45)
    assert attendee.user_id == "Carol@Example.com"

    with pytest.raises(ConflictError):
        await _check_in(service, booking.id, "alice@example.com")

    status = await _status(service, booking.id)
    assert status.total_expected == 3
    assert status.total_checked_in == 2
    assert [c.user_id for c in status.check_ins] == ["alice@example.com", "Carol@Example.com"]


@pytest.mark.asyncio
async def test_check_in_window(service, meeting, clock):
    booking = await meeting()

    clock.advance(timedelta(hours=1, minutes=44))  # 09:44
    with pytest.raises(InvalidError) as exc_info:
        await _check_in(service, booking.id, "alice@example.com")
    assert "not available yet" in exc_info.value.message

    clock.advance(timedelta(hours=1, minutes=16))  # 11:00, booking over
    with pytest.raises(InvalidError) as exc_info:
        await _check_in(service, booking.id, "alice@example.com")
    assert "already ended" in exc_info.value.message

    clock.now = at(10, 59)
    record = await _check_in(service, booking.id, "alice@example.com")
    assert record.checked_in_at == at(10, 59)


@pytest.mark.asyncio
async def test_only_participants_of_live_bookings_check_in(service, meeting, clock):
    booking = await meeting()
    clock.now = at(10)

    with pytest.raises(ForbiddenError):
        await _check_in(service, booking.id, "mallory@example.com")
    with pytest.raises(NotFoundError):
        await _check_in(service, 9999, "alice@example.com")

    await cancel(service, booking.id)
    with pytest.raises(InvalidError):
        await _check_in(service, booking.id, "alice@example.com")


@pytest.mark.asyncio
async def test_status_of_unknown_booking(service):
    with pytest.raises(NotFoundError):
        await _status(service, 9999)
