from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio

from hackpoints.config import Settings
from hackpoints.db import Database
from hackpoints.dependencies import build_services
from hackpoints.identity import Identity
from hackpoints.models import User
from hackpoints.schemas import ScrapCreate

DATABASE_URL = "sqlite+aiosqlite:///:memory:"
T0 = datetime(2025, 3, 1, 9, 0, 0)


class ManualClock:
    """Clock the tests move by hand."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture(name="clock")
def clock_fixture():
    return ManualClock(T0)


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(
        _env_file=None,
        DATABASE_URL=DATABASE_URL,
        BASE_POINTS_PER_HOUR=10,
        VOTER_POINTS_PER_VOTE=1,
        CREATOR_POINTS_PER_HOUR_PER_VOTE=1,
        MAX_VOTES_PER_HOUR=5,
        VOTE_WINDOW_MINUTES=60,
        MIN_SESSION_DURATION_MINUTES=60,
    )


@pytest_asyncio.fixture(name="database")
async def database_fixture():
    database = Database(DATABASE_URL)
    await database.create_all()
    yield database
    await database.drop_all()
    await database.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(database: Database):
    async with database.session() as session:
        yield session


@pytest.fixture(name="services")
def services_fixture(session, clock, settings):
    return build_services(session, clock, settings)


@pytest.fixture(name="points")
def points_fixture(services):
    return services.points


@pytest.fixture(name="scrapper")
def scrapper_fixture(services):
    return services.scrapper


@pytest_asyncio.fixture(name="users")
async def users_fixture(session):
    alice = User(name="Alice", email="alice@example.com")
    bob = User(name="Bob", email="bob@example.com")
    carol = User(name="Carol", email="carol@example.com", is_organizer=True)
    dave = User(name="Dave", email="dave@example.com")
    session.add_all([alice, bob, carol, dave])
    await session.commit()
    return SimpleNamespace(alice=alice, bob=bob, carol=carol, dave=dave)


@pytest.fixture(name="organizer")
def organizer_fixture(users):
    return Identity(user_id=users.carol.id, is_organizer=True)


@pytest.fixture(name="make_scrap")
def make_scrap_fixture(scrapper, clock):
    async def make_scrap(user_id: int, title: str, hours: int = 2):
        """Run a session for ``user_id`` and close it by submitting one scrap."""
        await scrapper.start_session(user_id)
        clock.advance(hours=hours)
        return await scrapper.create_scrap(user_id, ScrapCreate(title=title, description=f"{title} notes"))

    return make_scrap
