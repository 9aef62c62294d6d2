# app/api/routes/rooms.py
from datetime import date, datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.actor import Actor, get_actor, get_scheduling_service
from app.db.session import get_db
from app.models.room import Room
from app.schemas.booking import BookingRead, assume_utc
from app.schemas.room import RoomAvailability, RoomCreate, RoomRead, RoomUpdate
from app.services.scheduling import SchedulingService

router = APIRouter(prefix="/rooms", tags=["Rooms"])


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise HTTPException(
            status_code=HTTPStatus.FORBIDDEN,
            detail="Only admins can manage rooms.",
        )


@router.post(
    "",
    response_model=RoomRead,
    status_code=HTTPStatus.CREATED,
    summary="Register a bookable room",
    responses={
        400: {"description": "A room with the same name already exists."},
        403: {"description": "Caller is not an admin."},
    },
)
async def create_room(
    payload: RoomCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> RoomRead:
    _require_admin(actor)

    existing = await db.execute(select(Room).where(Room.name == payload.name))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Room with name '{payload.name}' already exists.",
        )

    room = Room(**payload.model_dump())
    db.add(room)
    await db.commit()
    await db.refresh(room)
    return RoomRead.model_validate(room)


@router.get(
    "",
    response_model=list[RoomRead],
    summary="List rooms",
)
async def list_rooms(
    only_active: bool = Query(default=False, description="Return only bookable rooms."),
    db: AsyncSession = Depends(get_db),
) -> list[RoomRead]:
    stmt = select(Room).order_by(Room.id)
    if only_active:
        stmt = stmt.where(Room.is_active.is_(True))
    result = await db.execute(stmt)
    return [RoomRead.model_validate(r) for r in result.scalars().all()]


@router.get("/{room_id}", response_model=RoomRead, summary="Get a room")
async def get_room(
    room_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> RoomRead:
    room = await db.get(Room, room_id)
    if room is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Room not found")
    return RoomRead.model_validate(room)


@router.patch(
    "/{room_id}",
    response_model=RoomRead,
    summary="Update a room",
    description=(
        "Partial update. Deactivating a room (`is_active=false`) stops new "
        "bookings; existing bookings are left as they are."
    ),
)
async def update_room(
    payload: RoomUpdate,
    room_id: int = Path(..., ge=1),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> RoomRead:
    _require_admin(actor)

    room = await db.get(Room, room_id)
    if room is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Room not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(room, field, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Room with name '{payload.name}' already exists.",
        )
    await db.refresh(room)
    return RoomRead.model_validate(room)


@router.get(
    "/{room_id}/bookings",
    response_model=list[BookingRead],
    summary="Room timeline",
    description="Bookings of a room, ordered by start time, optionally limited to a window.",
)
async def list_room_bookings(
    room_id: int = Path(..., ge=1),
    start: datetime | None = Query(default=None, description="Window start (inclusive)."),
    end: datetime | None = Query(default=None, description="Window end (exclusive)."),
    include_cancelled: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[BookingRead]:
    bookings = await service.list_room_bookings(
        db,
        room_id,
        start=assume_utc(start),
        end=assume_utc(end),
        include_cancelled=include_cancelled,
    )
    return [BookingRead.model_validate(b) for b in bookings]


@router.get(
    "/{room_id}/availability",
    response_model=RoomAvailability,
    summary="Room availability for one day",
    description=(
        "CONFIRMED bookings of the room on `date` and the free slots left "
        "between them within business hours."
    ),
    responses={404: {"description": "Room not found."}},
)
async def room_availability(
    room_id: int = Path(..., ge=1),
    day: date = Query(..., alias="date", examples=["2030-01-07"]),
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> RoomAvailability:
    return await service.room_availability(db, room_id, day)
