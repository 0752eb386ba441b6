import argparse
import asyncio
import logging
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .config import get_settings
from .db import Database
from .logging_config import configure_logging
from .models import User

log = logging.getLogger(__name__)


async def create_organizer(session: AsyncSession, name: str, email: str) -> User:
    """
    Creates an organizer account if one with this email doesn't already exist.
    """
    user = (await session.exec(select(User).where(User.email == email))).first()
    if user:
        log.info("Organizer %s already exists.", email)
        return user

    user = User(name=name, email=email, is_organizer=True)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("Organizer %s created.", email)
    return user


async def init_db(database: Database, organizer_email: Optional[str] = None, organizer_name: str = "Organizer") -> None:
    await database.create_all()
    log.info("Tables created on %s", database.url)
    if organizer_email:
        async with database.session() as session:
            await create_organizer(session, organizer_name, organizer_email)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Create the hackpoints tables.")
    parser.add_argument("--organizer-email")
    parser.add_argument("--organizer-name", default="Organizer")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    database = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)

    async def run():
        try:
            await init_db(database, args.organizer_email, args.organizer_name)
        finally:
            await database.dispose()

    asyncio.run(run())


if __name__ == "__main__":
    main()
