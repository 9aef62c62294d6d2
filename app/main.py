# app/main.py
import logging

from fastapi import FastAPI

from app.api.errors import register_exception_handlers
from app.api.routes import bookings, health, internal, rooms, waitlist
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal, init_db_for_startup
from app.services.calendar_sync import build_calendar_sync
from app.services.maintenance import MaintenanceLoop
from app.services.notifications import build_notification_sink
from app.services.scheduling import SchedulingService
from app.services.side_effects import SideEffectDispatcher

logger = logging.getLogger(__name__)


def build_scheduling_service() -> SchedulingService:
    settings = get_settings()
    dispatcher = SideEffectDispatcher(
        sink=build_notification_sink(settings),
        calendar=build_calendar_sync(settings),
    )
    return SchedulingService(settings=settings, dispatcher=dispatcher)


def create_app(service: SchedulingService | None = None) -> FastAPI:
    """
    Application factory for the Room Scheduler service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service for booking shared rooms.\n"
            "Prevents double bookings per room, expands recurring bookings,\n"
            "and keeps a first-come waitlist for occupied slots."
        ),
        version="0.1.0",
    )

    app.state.scheduling_service = service or build_scheduling_service()
    app.state.maintenance_loop = None

    register_exception_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(rooms.router)
    app.include_router(bookings.router)
    app.include_router(waitlist.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()
        if settings.MAINTENANCE_INTERVAL_SECONDS > 0:
            loop = MaintenanceLoop(
                app.state.scheduling_service,
                AsyncSessionLocal,
                settings.MAINTENANCE_INTERVAL_SECONDS,
            )
            loop.start()
            app.state.maintenance_loop = loop
        logger.info("%s started (env=%s)", settings.APP_NAME, settings.APP_ENV)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        if app.state.maintenance_loop is not None:
            await app.state.maintenance_loop.stop()
        await app.state.scheduling_service.dispatcher.drain()

    return app


app = create_app()
