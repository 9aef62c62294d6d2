# app/api/dependencies/actor.py
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from app.services.scheduling import SchedulingService


@dataclass(frozen=True)
class Actor:
    """
    The caller on whose behalf a scheduling operation runs.
    """

    user_id: str
    is_admin: bool = False


async def get_actor(
    user_id: Optional[str] = Header(
        default=None,
        alias="X-User-Id",
        description="Identity of the authenticated caller, set by the auth gateway.",
    ),
    role: Optional[str] = Header(
        default=None,
        alias="X-User-Role",
        description="`admin` grants rights over other users' bookings.",
    ),
) -> Actor:
    """
    Build the Actor from gateway headers. Authentication itself happens
    upstream; this service only trusts what the gateway forwards.
    """
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return Actor(user_id=user_id.strip(), is_admin=(role or "").strip().lower() == "admin")


def get_scheduling_service(request: Request) -> SchedulingService:
    return request.app.state.scheduling_service
