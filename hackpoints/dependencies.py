from dataclasses import dataclass
from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .db import Database
from .repositories import SqlPointsRepository, SqlScrapperRepository
from .services import PointsService, ScrapperService


@lru_cache
def get_database() -> Database:
    """One engine per process; everything below it is built per request."""
    settings = get_settings()
    return Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)


async def get_db_session(database: Database = Depends(get_database)) -> AsyncIterator[AsyncSession]:
    """Dependency to provide a database session."""
    async with database.session() as session:
        yield session


def get_clock() -> Clock:
    return SystemClock()


def get_points_service(
    session: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> PointsService:
    return PointsService(SqlPointsRepository(session), clock)


def get_scrapper_service(
    session: AsyncSession = Depends(get_db_session),
    points: PointsService = Depends(get_points_service),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> ScrapperService:
    # FastAPI hands the same request-scoped session to both services
    return ScrapperService(SqlScrapperRepository(session), points, clock, settings)


@dataclass
class Services:
    points: PointsService
    scrapper: ScrapperService


def build_services(session: AsyncSession, clock: Optional[Clock] = None, settings: Optional[Settings] = None) -> Services:
    """Wire both services on one session outside of a FastAPI request."""
    clock = clock or SystemClock()
    settings = settings or get_settings()
    points = get_points_service(session, clock)
    return Services(points=points, scrapper=get_scrapper_service(session, points, clock, settings))
