# app/services/calendar_sync.py
from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from app.core.config import Settings
from app.models.booking import Booking

logger = logging.getLogger(__name__)


class CalendarSyncError(RuntimeError):
    """
    Raised when the calendar sync service rejects a request or cannot be
    reached.
    """


def booking_snapshot(booking: Booking) -> Dict[str, Any]:
    """
    Detached, JSON-ready view of a booking for the calendar collaborator.

    Taken while the session is still open so the background sync never
    touches ORM state.
    """
    return {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "room_id": booking.room_id,
        "room_name": booking.room.name if booking.room is not None else None,
        "title": booking.title,
        "description": booking.description,
        "start_time": booking.start_time.isoformat(),
        "end_time": booking.end_time.isoformat(),
        "status": booking.status,
        "parent_id": booking.parent_id,
        "attendees": [{"email": a.email, "name": a.name} for a in booking.attendees],
    }


class CalendarSyncClient:
    """
    Thin client for the external calendar synchronization service, which
    mirrors bookings into users' Google/Microsoft calendars.

    Responsibilities
    ----------------
    - create / update / delete a booking's mirrored events;
    - keep HTTP details out of the scheduling core.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    json=json,
                )
        except httpx.HTTPError as exc:
            raise CalendarSyncError(f"Calendar sync {method} {url} failed: {exc}") from exc

        if resp.status_code // 100 != 2:
            raise CalendarSyncError(
                f"Calendar sync {method} failed (status={resp.status_code}): {resp.text}"
            )
        return resp

    async def booking_created(self, snapshot: Dict[str, Any]) -> None:
        await self._request("POST", "/bookings", json=snapshot)

    async def booking_updated(self, snapshot: Dict[str, Any]) -> None:
        await self._request("PUT", f"/bookings/{snapshot['booking_id']}", json=snapshot)

    async def booking_cancelled(self, snapshot: Dict[str, Any]) -> None:
        await self._request("DELETE", f"/bookings/{snapshot['booking_id']}")


class NullCalendarSync:
    """
    Used when no calendar sync service is configured.
    """

    async def booking_created(self, snapshot: Dict[str, Any]) -> None:
        logger.debug("Calendar sync disabled; skipping create for %s", snapshot["booking_id"])

    async def booking_updated(self, snapshot: Dict[str, Any]) -> None:
        logger.debug("Calendar sync disabled; skipping update for %s", snapshot["booking_id"])

    async def booking_cancelled(self, snapshot: Dict[str, Any]) -> None:
        logger.debug("Calendar sync disabled; skipping delete for %s", snapshot["booking_id"])


def build_calendar_sync(settings: Settings) -> CalendarSyncClient | NullCalendarSync:
    if settings.CALENDAR_SYNC_URL:
        return CalendarSyncClient(
            base_url=settings.CALENDAR_SYNC_URL,
            api_key=settings.CALENDAR_SYNC_API_KEY,
            timeout_seconds=settings.CALENDAR_SYNC_TIMEOUT_SECONDS,
        )
    return NullCalendarSync()
