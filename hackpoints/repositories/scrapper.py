from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import String, cast, exists, func, or_
from sqlalchemy.orm import aliased
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import OPEN_STATUSES, Scrap, ScrapperSession, ScrapVote, SessionStatus, User
from ..schemas import SessionFilters, VoteFilters


def open_session_statement(user_id: int, *, for_update: bool = False):
    """The owner's active or paused session; locked for update when asked."""
    statement = select(ScrapperSession).where(
        ScrapperSession.user_id == user_id,
        ScrapperSession.status.in_(OPEN_STATUSES),
    )
    if for_update:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    return statement


class ScrapperRepository(Protocol):
    async def get_open_session(self, user_id: int, *, for_update: bool = False) -> Optional[ScrapperSession]: ...
    async def get_session(self, session_id: int, *, for_update: bool = False) -> Optional[ScrapperSession]: ...
    async def add_session(self, session: ScrapperSession, *, commit: bool = True) -> ScrapperSession: ...
    async def save_session(self, session: ScrapperSession, *, commit: bool = True) -> ScrapperSession: ...
    async def add_scrap(self, scrap: Scrap, *, commit: bool = True) -> Scrap: ...
    async def save_scrap(self, scrap: Scrap, *, commit: bool = True) -> Scrap: ...
    async def get_scrap_with_owner(self, scrap_id: int) -> Optional[tuple[Scrap, int]]: ...
    async def get_random_scraps_for_voting(self, user_id: int, limit: int) -> List[tuple[Scrap, int]]: ...
    async def add_vote(self, vote: ScrapVote, *, commit: bool = True) -> ScrapVote: ...
    async def get_vote(self, vote_id: int) -> Optional[ScrapVote]: ...
    async def delete_vote(self, vote: ScrapVote, *, commit: bool = True) -> None: ...
    async def count_votes_since(self, since: datetime, user_id: Optional[int] = None) -> int: ...
    async def oldest_vote_since(self, user_id: int, since: datetime) -> Optional[datetime]: ...
    async def count_sessions(self, status: Optional[SessionStatus] = None) -> int: ...
    async def list_sessions(
        self, filters: SessionFilters, limit: Optional[int] = None
    ) -> Sequence[tuple[ScrapperSession, str]]: ...
    async def count_filtered_sessions(self, filters: SessionFilters) -> int: ...
    async def list_session_scraps(self, session_id: int) -> Sequence[tuple[Scrap, int, str]]: ...
    async def list_recent_scraps(self, limit: int) -> Sequence[tuple[Scrap, int, str]]: ...
    async def count_scraps_since(self, since: datetime) -> int: ...
    async def total_points_for_session(self, session_id: int) -> int: ...
    async def list_votes(self, filters: VoteFilters) -> Sequence[tuple[ScrapVote, str, str, str]]: ...
    async def count_filtered_votes(self, filters: VoteFilters) -> int: ...
    async def count_distinct_voters(self) -> int: ...
    async def voting_activity(
        self, limit: Optional[int] = None
    ) -> Sequence[tuple[int, str, int, Optional[datetime]]]: ...
    async def get_user_name(self, user_id: int) -> Optional[str]: ...
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


class SqlScrapperRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # --- Sessions ---

    async def get_open_session(self, user_id: int, *, for_update: bool = False) -> Optional[ScrapperSession]:
        statement = open_session_statement(user_id, for_update=for_update)
        return (await self.session.exec(statement)).first()

    async def get_session(self, session_id: int, *, for_update: bool = False) -> Optional[ScrapperSession]:
        if for_update:
            return await self.session.get(
                ScrapperSession, session_id, with_for_update=True, populate_existing=True
            )
        return await self.session.get(ScrapperSession, session_id)

    async def add_session(self, session: ScrapperSession, *, commit: bool = True) -> ScrapperSession:
        self.session.add(session)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return session

    async def save_session(self, session: ScrapperSession, *, commit: bool = True) -> ScrapperSession:
        self.session.add(session)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return session

    async def count_sessions(self, status: Optional[SessionStatus] = None) -> int:
        statement = select(func.count()).select_from(ScrapperSession)
        if status is not None:
            statement = statement.where(ScrapperSession.status == status)
        return (await self.session.exec(statement)).one()

    def _filtered_sessions(self, statement, filters: SessionFilters):
        if filters.status is not None:
            statement = statement.where(ScrapperSession.status == filters.status)
        if filters.search:
            statement = statement.where(
                or_(
                    func.lower(User.name).like(f"%{filters.search.lower()}%"),
                    cast(ScrapperSession.id, String).like(f"%{filters.search}%"),
                )
            )
        return statement

    async def list_sessions(
        self, filters: SessionFilters, limit: Optional[int] = None
    ) -> Sequence[tuple[ScrapperSession, str]]:
        statement = select(ScrapperSession, User.name).join(User, User.id == ScrapperSession.user_id)
        statement = self._filtered_sessions(statement, filters)
        statement = statement.order_by(ScrapperSession.created_at.desc(), ScrapperSession.id.desc())
        if filters.page and filters.page_size:
            statement = statement.offset((filters.page - 1) * filters.page_size).limit(filters.page_size)
        elif limit is not None:
            statement = statement.limit(limit)
        return (await self.session.exec(statement)).all()

    async def count_filtered_sessions(self, filters: SessionFilters) -> int:
        statement = (
            select(func.count())
            .select_from(ScrapperSession)
            .join(User, User.id == ScrapperSession.user_id)
        )
        statement = self._filtered_sessions(statement, filters)
        return (await self.session.exec(statement)).one()

    # --- Scraps ---

    async def add_scrap(self, scrap: Scrap, *, commit: bool = True) -> Scrap:
        self.session.add(scrap)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return scrap

    async def save_scrap(self, scrap: Scrap, *, commit: bool = True) -> Scrap:
        self.session.add(scrap)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return scrap

    async def get_scrap_with_owner(self, scrap_id: int) -> Optional[tuple[Scrap, int]]:
        statement = (
            select(Scrap, ScrapperSession.user_id)
            .join(ScrapperSession, ScrapperSession.id == Scrap.session_id)
            .where(Scrap.id == scrap_id)
        )
        row = (await self.session.exec(statement)).first()
        if row is None:
            return None
        scrap, owner_id = row
        return scrap, owner_id

    async def get_random_scraps_for_voting(self, user_id: int, limit: int) -> List[tuple[Scrap, int]]:
        """Scraps from other users' completed sessions the user has not voted on yet."""
        already_voted = exists().where(ScrapVote.voter_id == user_id, ScrapVote.scrap_id == Scrap.id)
        statement = (
            select(Scrap, ScrapperSession.user_id)
            .join(ScrapperSession, ScrapperSession.id == Scrap.session_id)
            .where(
                ScrapperSession.user_id != user_id,
                ScrapperSession.status == SessionStatus.COMPLETED,
                ~already_voted,
            )
            .order_by(func.random())
            .limit(limit)
        )
        return [(scrap, owner_id) for scrap, owner_id in (await self.session.exec(statement)).all()]

    async def list_session_scraps(self, session_id: int) -> Sequence[tuple[Scrap, int, str]]:
        statement = (
            select(Scrap, ScrapperSession.user_id, User.name)
            .join(ScrapperSession, ScrapperSession.id == Scrap.session_id)
            .join(User, User.id == ScrapperSession.user_id)
            .where(Scrap.session_id == session_id)
            .order_by(Scrap.created_at.desc(), Scrap.id.desc())
        )
        return (await self.session.exec(statement)).all()

    async def list_recent_scraps(self, limit: int) -> Sequence[tuple[Scrap, int, str]]:
        statement = (
            select(Scrap, ScrapperSession.user_id, User.name)
            .join(ScrapperSession, ScrapperSession.id == Scrap.session_id)
            .join(User, User.id == ScrapperSession.user_id)
            .order_by(Scrap.created_at.desc(), Scrap.id.desc())
            .limit(limit)
        )
        return (await self.session.exec(statement)).all()

    async def count_scraps_since(self, since: datetime) -> int:
        statement = select(func.count()).select_from(Scrap).where(Scrap.created_at >= since)
        return (await self.session.exec(statement)).one()

    async def total_points_for_session(self, session_id: int) -> int:
        statement = select(func.coalesce(func.sum(Scrap.total_points), 0)).where(Scrap.session_id == session_id)
        return int((await self.session.exec(statement)).one())

    # --- Votes ---

    async def add_vote(self, vote: ScrapVote, *, commit: bool = True) -> ScrapVote:
        self.session.add(vote)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return vote

    async def get_vote(self, vote_id: int) -> Optional[ScrapVote]:
        return await self.session.get(ScrapVote, vote_id)

    async def delete_vote(self, vote: ScrapVote, *, commit: bool = True) -> None:
        await self.session.delete(vote)
        await self.session.flush()
        if commit:
            await self.session.commit()

    async def count_votes_since(self, since: datetime, user_id: Optional[int] = None) -> int:
        statement = select(func.count()).select_from(ScrapVote).where(ScrapVote.created_at > since)
        if user_id is not None:
            statement = statement.where(ScrapVote.voter_id == user_id)
        return (await self.session.exec(statement)).one()

    async def oldest_vote_since(self, user_id: int, since: datetime) -> Optional[datetime]:
        statement = select(func.min(ScrapVote.created_at)).where(
            ScrapVote.voter_id == user_id, ScrapVote.created_at > since
        )
        return (await self.session.exec(statement)).one()

    def _filtered_votes(self, statement, filters: VoteFilters):
        if filters.user_id is not None:
            statement = statement.where(ScrapVote.voter_id == filters.user_id)
        if filters.scrap_id is not None:
            statement = statement.where(
                or_(ScrapVote.scrap_id == filters.scrap_id, ScrapVote.other_scrap_id == filters.scrap_id)
            )
        if filters.start_date is not None:
            statement = statement.where(ScrapVote.created_at >= filters.start_date)
        if filters.end_date is not None:
            statement = statement.where(ScrapVote.created_at <= filters.end_date)
        return statement

    async def list_votes(self, filters: VoteFilters) -> Sequence[tuple[ScrapVote, str, str, str]]:
        """(vote, voter name, voted scrap title, other scrap title), newest first."""
        voted = aliased(Scrap)
        other = aliased(Scrap)
        statement = (
            select(ScrapVote, User.name, voted.title, other.title)
            .join(User, User.id == ScrapVote.voter_id)
            .join(voted, voted.id == ScrapVote.scrap_id)
            .join(other, other.id == ScrapVote.other_scrap_id)
        )
        statement = self._filtered_votes(statement, filters)
        statement = statement.order_by(ScrapVote.created_at.desc(), ScrapVote.id.desc())
        if filters.page and filters.page_size:
            statement = statement.offset((filters.page - 1) * filters.page_size).limit(filters.page_size)
        return (await self.session.exec(statement)).all()

    async def count_filtered_votes(self, filters: VoteFilters) -> int:
        statement = select(func.count()).select_from(ScrapVote)
        statement = self._filtered_votes(statement, filters)
        return (await self.session.exec(statement)).one()

    async def count_distinct_voters(self) -> int:
        statement = select(func.count(func.distinct(ScrapVote.voter_id)))
        return (await self.session.exec(statement)).one()

    async def voting_activity(self, limit: Optional[int] = None) -> Sequence[tuple[int, str, int, Optional[datetime]]]:
        """(user id, name, vote count, last vote time) for voters, busiest first."""
        vote_count = func.count(ScrapVote.id).label("vote_count")
        statement = (
            select(User.id, User.name, vote_count, func.max(ScrapVote.created_at))
            .join(ScrapVote, ScrapVote.voter_id == User.id)
            .group_by(User.id, User.name)
            .order_by(vote_count.desc(), User.id)
        )
        if limit is not None:
            statement = statement.limit(limit)
        return (await self.session.exec(statement)).all()

    # --- Users ---

    async def get_user_name(self, user_id: int) -> Optional[str]:
        user = await self.session.get(User, user_id)
        return user.name if user else None

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
