import pytest
from sqlmodel import select

from hackpoints.db import Database
from hackpoints.dependencies import build_services
from hackpoints.init_db import init_db
from hackpoints.models import User
from hackpoints.services import PointsService, ScrapperService


@pytest.mark.asyncio
async def test_init_db_creates_organizer_once(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'init.db'}")
    try:
        await init_db(database, organizer_email="lead@example.com", organizer_name="Lead")
        await init_db(database, organizer_email="lead@example.com", organizer_name="Lead")

        async with database.session() as session:
            organizers = (await session.exec(select(User).where(User.is_organizer))).all()
    finally:
        await database.dispose()

    assert [(u.name, u.email) for u in organizers] == [("Lead", "lead@example.com")]


@pytest.mark.asyncio
async def test_build_services_shares_one_session(session, clock, settings):
    services = build_services(session, clock, settings)

    assert isinstance(services.points, PointsService)
    assert isinstance(services.scrapper, ScrapperService)
    assert services.scrapper.points is services.points
    assert services.scrapper.repo.session is services.points.repo.session
    assert services.scrapper.rate_limiter.max_votes == settings.MAX_VOTES_PER_HOUR
