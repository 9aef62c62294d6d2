# app/api/routes/bookings.py
from datetime import date
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.actor import Actor, get_actor, get_scheduling_service
from app.db.session import get_db
from app.schemas.booking import (
    BookingCreate,
    BookingCreateResult,
    BookingPage,
    BookingRead,
    BookingStatus,
    BookingUpdate,
    CheckInRead,
    CheckInStatus,
)
from app.services.interval import Interval
from app.services.scheduling import SchedulingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])

_ERROR_RESPONSES = {
    401: {"description": "Missing X-User-Id header."},
    403: {"description": "Caller neither owns the booking nor is an admin."},
    404: {"description": "Room or booking not found."},
    409: {"description": "The room is already booked for an overlapping slot."},
    422: {"description": "The request violates a booking rule."},
}


@router.post(
    "",
    response_model=BookingCreateResult,
    status_code=HTTPStatus.CREATED,
    summary="Request a booking",
    description=(
        "Books a room for the caller.\n\n"
        "- Intervals are half-open: a booking ending at 10:00 does not conflict "
        "with one starting at 10:00.\n"
        "- With `recurrence_rule`, further occurrences are created after the "
        "parent. Occurrences that collide with existing bookings are skipped "
        "and reported under `recurrence`; the parent booking still succeeds."
    ),
    responses={
        201: {
            "description": "Booking confirmed.",
            "content": {
                "application/json": {
                    "example": {
                        "booking": {
                            "id": 1,
                            "user_id": "alice@example.com",
                            "room_id": 1,
                            "title": "Sprint planning",
                            "description": None,
                            "start_time": "2030-01-07T10:00:00Z",
                            "end_time": "2030-01-07T11:00:00Z",
                            "status": "CONFIRMED",
                            "recurrence_rule": "RRULE:FREQ=WEEKLY;COUNT=4",
                            "parent_id": None,
                            "attendees": [],
                        },
                        "recurrence": {
                            "requested": 3,
                            "created": 2,
                            "skipped": 1,
                            "skipped_start_times": ["2030-01-21T10:00:00Z"],
                            "occurrence_ids": [2, 3],
                        },
                    }
                }
            },
        },
        **_ERROR_RESPONSES,
    },
)
async def request_booking(
    payload: BookingCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingCreateResult:
    result = await service.request_booking(
        db,
        owner_id=actor.user_id,
        room_id=payload.room_id,
        interval=Interval(payload.start_time, payload.end_time),
        title=payload.title,
        description=payload.description,
        attendees=payload.attendees,
        recurrence_rule=payload.recurrence_rule,
    )
    return BookingCreateResult(
        booking=BookingRead.model_validate(result.booking),
        recurrence=result.recurrence,
    )


@router.get(
    "/me",
    response_model=BookingPage,
    summary="The caller's bookings",
    description=(
        "Bookings organized by the caller, ordered by start time. `start_date` "
        "keeps bookings starting on or after that day, `end_date` keeps "
        "bookings ending on or before it."
    ),
)
async def my_bookings(
    status: BookingStatus | None = Query(default=None),
    start_date: date | None = Query(default=None, examples=["2030-01-07"]),
    end_date: date | None = Query(default=None, examples=["2030-01-31"]),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingPage:
    return await service.list_user_bookings(
        db,
        actor.user_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get(
    "/{booking_id}",
    response_model=BookingRead,
    summary="Get a booking",
    responses={404: _ERROR_RESPONSES[404]},
)
async def get_booking(
    booking_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingRead:
    booking = await service.get_booking(db, booking_id)
    return BookingRead.model_validate(booking)


@router.patch(
    "/{booking_id}",
    response_model=BookingRead,
    summary="Update a booking",
    description=(
        "Partial update by the owner or an admin. A new time is checked for "
        "conflicts against every other booking of the room. A provided "
        "`attendees` list replaces the current one."
    ),
    responses=_ERROR_RESPONSES,
)
async def update_booking(
    payload: BookingUpdate,
    booking_id: int = Path(..., ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingRead:
    booking = await service.update_booking(
        db,
        booking_id,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
        fields=payload,
    )
    return BookingRead.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingRead,
    summary="Cancel a booking",
    description=(
        "Cancels the booking and notifies every waitlisted user whose requested "
        "slot overlaps it, in the order they joined. Notification is not a "
        "reservation: the first of them to book gets the slot.\n\n"
        "Cancelling a booking that is already cancelled returns 409 with code "
        "`already_cancelled`. Occurrences of a recurring series are independent "
        "and are not cancelled with their parent."
    ),
    responses=_ERROR_RESPONSES,
)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> BookingRead:
    booking = await service.cancel_booking(
        db,
        booking_id,
        actor_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    return BookingRead.model_validate(booking)


@router.post(
    "/{booking_id}/check-in",
    response_model=CheckInRead,
    status_code=HTTPStatus.CREATED,
    summary="Check in to a booking",
    description=(
        "Open to the organizer and the attendees (matched by email) from 15 "
        "minutes before the start until the booking ends. Each participant "
        "checks in once; a second attempt returns 409."
    ),
    responses=_ERROR_RESPONSES,
)
async def check_in(
    booking_id: int = Path(..., ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> CheckInRead:
    record = await service.check_in(db, booking_id, actor.user_id)
    return CheckInRead.model_validate(record)


@router.get(
    "/{booking_id}/check-ins",
    response_model=CheckInStatus,
    summary="Who has checked in",
    responses={404: _ERROR_RESPONSES[404]},
)
async def check_in_status(
    booking_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> CheckInStatus:
    return await service.check_in_status(db, booking_id)
