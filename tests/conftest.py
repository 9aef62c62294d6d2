# tests/conftest.py
import os
import tempfile

# Point the app at a throwaway SQLite file before anything imports settings.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="room-scheduler-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.db.session import AsyncSessionLocal, reset_schema_sync
from app.main import create_app
from app.models.room import Room
from app.services.scheduling import SchedulingService
from app.services.side_effects import SideEffectDispatcher
from helpers import FrozenClock, RecordingCalendar, RecordingSink


@pytest.fixture
def clean_db():
    """
    Fresh, empty schema for every test that touches the database.
    """
    reset_schema_sync()
    yield


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def calendar() -> RecordingCalendar:
    return RecordingCalendar()


@pytest.fixture
def service(clean_db, clock, sink, calendar) -> SchedulingService:
    dispatcher = SideEffectDispatcher(sink=sink, calendar=calendar)
    return SchedulingService(settings=get_settings(), dispatcher=dispatcher, clock=clock)


@pytest_asyncio.fixture
async def room_factory(clean_db):
    """
    Returns an async callable that inserts an active room and returns its id.
    """
    counter = {"n": 0}

    async def _create(name: str | None = None, is_active: bool = True) -> int:
        counter["n"] += 1
        async with AsyncSessionLocal() as session:
            room = Room(
                name=name or f"Room {counter['n']}",
                capacity=8,
                floor="2",
                building="HQ",
                is_active=is_active,
            )
            session.add(room)
            await session.commit()
            return room.id

    return _create


@pytest.fixture
def client(service) -> TestClient:
    """
    TestClient over an app wired to the test SchedulingService, so the
    frozen clock applies to HTTP calls too.
    """
    app = create_app(service)
    with TestClient(app) as test_client:
        yield test_client
