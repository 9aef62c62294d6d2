# app/db/session.py
import os
from collections.abc import AsyncGenerator

from sqlalchemy import create_engine as create_sync_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import get_settings
from app.db.base import Base

# Import ORM models so that Base.metadata is aware of them.
from app.models.room import Room  # noqa: F401
from app.models.booking import Booking, BookingAttendee  # noqa: F401
from app.models.waitlist_entry import WaitlistEntry  # noqa: F401
from app.models.booking_check_in import BookingCheckIn  # noqa: F401

settings = get_settings()

# Detect if we're running under pytest
IS_TEST = "PYTEST_CURRENT_TEST" in os.environ or "PYTEST_VERSION" in os.environ

# ---------------------------------------------------------------------------
# Main application engine + session
# ---------------------------------------------------------------------------
engine = create_async_engine(
    settings.DB_URL,
    echo=False,
    future=True,
    # TestClient runs the app on its own event loop, so avoid connection
    # reuse across loops in tests.
    poolclass=NullPool if IS_TEST else None,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async SQLAlchemy session.

    The session is automatically closed when the request is completed.
    """
    async with AsyncSessionLocal() as session:
        yield session


# ---------------------------------------------------------------------------
# PRODUCTION / DEV: DB init for app startup
# ---------------------------------------------------------------------------
async def init_db_for_startup() -> None:
    """
    Initialize DB schema for application startup.

    Safe to call from FastAPI startup in non-test environments.
    Typically you'd eventually replace this with Alembic migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# TESTS ONLY: reset schema using a SYNC engine
# ---------------------------------------------------------------------------

def _build_sync_db_url(async_url: str) -> str:
    """
    Convert an async driver URL into its synchronous counterpart:
    'postgresql+asyncpg://...' -> 'postgresql+psycopg://...'
    'sqlite+aiosqlite://...'   -> 'sqlite://...'
    """
    if "+asyncpg" in async_url:
        return async_url.replace("+asyncpg", "+psycopg")
    if "+aiosqlite" in async_url:
        return async_url.replace("+aiosqlite", "")
    return async_url


def reset_schema_sync(db_url: str | None = None) -> None:
    """
    TEST-ONLY: run drop_all + create_all using a synchronous engine.

    This completely bypasses the async driver and event-loop issues, so it
    can be called from plain (non-async) pytest fixtures.
    """
    sync_url = _build_sync_db_url(db_url or settings.DB_URL)
    sync_engine = create_sync_engine(sync_url, future=True)

    with sync_engine.begin() as conn:
        Base.metadata.drop_all(bind=conn)
        Base.metadata.create_all(bind=conn)

    sync_engine.dispose()
