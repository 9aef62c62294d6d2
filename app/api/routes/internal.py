# app/api/routes/internal.py
from http import HTTPStatus

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.actor import get_scheduling_service
from app.api.dependencies.internal_auth import verify_internal_api_key
from app.db.session import get_db
from app.schemas.waitlist import ReminderScanSummary, SweepSummary
from app.services.scheduling import SchedulingService

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/sweep-waitlist",
    response_model=SweepSummary,
    status_code=HTTPStatus.OK,
    summary="Expire stale waitlist entries",
    description=(
        "Moves every WAITING or NOTIFIED waitlist entry whose slot has already "
        "started to EXPIRED.\n\n"
        "Intended for a cron job or scheduler; safe to call repeatedly. "
        "Protected via the `X-Internal-Api-Key` header when configured."
    ),
    responses={401: {"description": "Missing or invalid internal API key (if configured)."}},
)
async def sweep_waitlist(
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> SweepSummary:
    return await service.sweep_expired(db)


@router.post(
    "/send-reminders",
    response_model=ReminderScanSummary,
    status_code=HTTPStatus.OK,
    summary="Queue 1h and 24h booking reminders",
    description=(
        "Queues reminders for CONFIRMED bookings starting 1 hour and 24 hours "
        "from now (15-minute windows). Call every 15 minutes."
    ),
    responses={401: {"description": "Missing or invalid internal API key (if configured)."}},
)
async def send_reminders(
    db: AsyncSession = Depends(get_db),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ReminderScanSummary:
    return await service.send_reminders(db)
