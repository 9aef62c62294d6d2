# app/api/routes/waitlist.py
from datetime import datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.actor import Actor, get_actor, get_scheduling_service
from app.db.session import get_db
from app.schemas.booking import assume_utc
from app.schemas.waitlist import WaitlistCheck, WaitlistEntryRead, WaitlistJoin
from app.services.interval import Interval
from app.services.scheduling import SchedulingService

router = APIRouter(prefix="/waitlist", tags=["Waitlist"])


@router.post(
    "",
    response_model=WaitlistEntryRead,
    status_code=HTTPStatus.CREATED,
    summary="Join the waitlist for an occupied slot",
    description=(
        "Only occupied slots can be waited for; a free slot returns 422 and "
        "should be booked directly. Joining twice for the same room and exact "
        "interval returns 409."
    ),
    responses={
        404: {"description": "Room not found."},
        409: {"description": "Already waiting for this slot."},
        422: {"description": "Slot is free, or already started."},
    },
)
async def join_waitlist(
    payload: WaitlistJoin,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> WaitlistEntryRead:
    entry = await service.join_waitlist(
        db,
        user_id=actor.user_id,
        room_id=payload.room_id,
        interval=Interval(payload.start_time, payload.end_time),
    )
    return WaitlistEntryRead.model_validate(entry)


@router.get(
    "/me",
    response_model=list[WaitlistEntryRead],
    summary="The caller's active waitlist entries",
)
async def my_waitlist(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[WaitlistEntryRead]:
    entries = await service.list_user_waitlist(db, actor.user_id)
    return [WaitlistEntryRead.model_validate(e) for e in entries]


@router.get(
    "/check",
    response_model=WaitlistCheck,
    summary="Is the caller waiting for a slot?",
    description=(
        "True when the caller holds a WAITING or NOTIFIED entry of the room "
        "overlapping the given interval."
    ),
)
async def check_waitlist(
    room_id: int = Query(..., ge=1),
    start_time: datetime = Query(..., examples=["2030-01-07T10:00:00Z"]),
    end_time: datetime = Query(..., examples=["2030-01-07T11:00:00Z"]),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> WaitlistCheck:
    interval = Interval(assume_utc(start_time), assume_utc(end_time))
    on_waitlist = await service.is_on_waitlist(db, actor.user_id, room_id, interval)
    return WaitlistCheck(
        room_id=room_id,
        start_time=interval.start,
        end_time=interval.end,
        on_waitlist=on_waitlist,
    )


@router.delete(
    "/{entry_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Leave the waitlist",
    responses={
        403: {"description": "Entry belongs to another user."},
        404: {"description": "Entry not found."},
    },
)
async def leave_waitlist(
    entry_id: int = Path(..., ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> Response:
    await service.leave_waitlist(db, entry_id, actor.user_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
