from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from ..clock import Clock
from ..config import Settings, get_settings
from ..errors import (
    InsufficientSessionDurationError,
    InvalidSessionStateError,
    NotEnoughScrapsError,
    PointsError,
    ScrapNotFoundError,
    SelfVoteError,
    SessionAlreadyStartedError,
    SessionNotFoundError,
    VoteNotFoundError,
)
from ..identity import Identity, require_organizer
from ..models import Scrap, ScrapperSession, ScrapVote, SessionStatus, TransactionStatus
from ..repositories.scrapper import ScrapperRepository
from ..schemas import (
    ScrapCreate,
    ScrapView,
    SessionFilters,
    SessionView,
    TopVoter,
    TransactionError,
    UserVotingActivity,
    VoteFilters,
    VoteInvalidationResult,
    VoteStats,
    VoteView,
)
from .duration import pause_interval_seconds, session_active_seconds
from .points import PointsService
from .rate_limit import VoteRateLimiter
from .settlement import SECONDS_PER_HOUR, scrap_total_points, session_points, vote_settlement

log = logging.getLogger(__name__)


class ScrapperService:
    """Scrapper sessions, the scraps they produce, and peer votes on those scraps.

    The repository and the points service must share one database session:
    multi-step transitions run as a single unit of work and commit once.
    """

    def __init__(
        self,
        repo: ScrapperRepository,
        points: PointsService,
        clock: Clock,
        settings: Optional[Settings] = None,
        rate_limiter: Optional[VoteRateLimiter] = None,
    ):
        self.repo = repo
        self.points = points
        self.clock = clock
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or VoteRateLimiter(
            repo,
            clock,
            max_votes=self.settings.MAX_VOTES_PER_HOUR,
            window_minutes=self.settings.VOTE_WINDOW_MINUTES,
        )

    @asynccontextmanager
    async def _unit_of_work(self):
        try:
            yield
            await self.repo.commit()
        except Exception:
            await self.repo.rollback()
            raise

    def _view(self, session: ScrapperSession, user_name: Optional[str] = None) -> SessionView:
        return SessionView(
            id=session.id,
            user_id=session.user_id,
            user_name=user_name,
            status=session.status,
            start_time=session.start_time,
            last_paused_at=session.last_paused_at,
            total_paused_seconds=session.total_paused_seconds,
            completed_at=session.completed_at,
            points_per_hour=session.points_per_hour,
            active_seconds=session_active_seconds(session, self.clock.now()),
        )

    @staticmethod
    def _scrap_view(scrap: Scrap, owner_id: int, user_name: Optional[str] = None) -> ScrapView:
        return ScrapView(
            id=scrap.id,
            session_id=scrap.session_id,
            user_id=owner_id,
            user_name=user_name,
            title=scrap.title,
            description=scrap.description,
            attachment_urls=list(scrap.attachment_urls or []),
            base_points=scrap.base_points,
            total_points=scrap.total_points,
            created_at=scrap.created_at,
        )

    async def _resolve(self, user_id: int, session_id: Optional[int]) -> ScrapperSession:
        """The owner's open session, or a specific session the owner holds.

        The row stays locked until the transition commits, so two requests
        cannot both act on the same status.
        """
        if session_id is None:
            session = await self.repo.get_open_session(user_id, for_update=True)
        else:
            session = await self.repo.get_session(session_id, for_update=True)
            if session is not None and session.user_id != user_id:
                session = None
        if session is None:
            raise SessionNotFoundError()
        return session

    @staticmethod
    def _fold_pause(session: ScrapperSession, now: datetime) -> None:
        if session.status == SessionStatus.PAUSED:
            session.total_paused_seconds = (session.total_paused_seconds or 0) + pause_interval_seconds(
                session.last_paused_at, now
            )
        session.last_paused_at = None

    # --- Session lifecycle ---

    async def start_session(self, user_id: int) -> SessionView:
        if await self.repo.get_open_session(user_id) is not None:
            raise SessionAlreadyStartedError()

        now = self.clock.now()
        session = ScrapperSession(
            user_id=user_id,
            status=SessionStatus.ACTIVE,
            start_time=now,
            total_paused_seconds=0,
            points_per_hour=self.settings.BASE_POINTS_PER_HOUR,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.repo.add_session(session)
        except IntegrityError:
            # A concurrent start won the unique index on open sessions
            await self.repo.rollback()
            if await self.repo.get_open_session(user_id) is not None:
                raise SessionAlreadyStartedError() from None
            raise
        log.info("Session %s started for user %s", session.id, user_id)
        return self._view(session)

    async def get_current_session(self, user_id: int) -> Optional[SessionView]:
        session = await self.repo.get_open_session(user_id)
        log.debug("Open session for user %s: %s", user_id, session.id if session else None)
        return self._view(session) if session else None

    async def get_session_by_id(self, session_id: int) -> Optional[SessionView]:
        session = await self.repo.get_session(session_id)
        if session is None:
            return None
        return self._view(session, await self.repo.get_user_name(session.user_id))

    async def pause_session(self, user_id: int, session_id: Optional[int] = None) -> SessionView:
        session = await self._resolve(user_id, session_id)
        if session.status != SessionStatus.ACTIVE:
            raise InvalidSessionStateError(session.status.value, SessionStatus.ACTIVE.value)

        now = self.clock.now()
        session.status = SessionStatus.PAUSED
        session.last_paused_at = now
        session.updated_at = now
        await self.repo.save_session(session)
        log.info("Session %s paused", session.id)
        return self._view(session)

    async def resume_session(self, user_id: int, session_id: Optional[int] = None) -> SessionView:
        session = await self._resolve(user_id, session_id)
        if session.status == SessionStatus.ACTIVE:
            return self._view(session)
        if session.status != SessionStatus.PAUSED:
            raise InvalidSessionStateError(session.status.value, SessionStatus.PAUSED.value)

        now = self.clock.now()
        self._fold_pause(session, now)
        session.status = SessionStatus.ACTIVE
        session.updated_at = now
        await self.repo.save_session(session)
        log.info("Session %s resumed, %ss paused in total", session.id, session.total_paused_seconds)
        return self._view(session)

    async def complete_session(self, user_id: int, session_id: Optional[int] = None) -> SessionView:
        """Finish the session and settle its points.

        The pause fold, the status change and the ledger entry commit together.
        """
        session = await self._resolve(user_id, session_id)
        if not session.status.is_open:
            raise InvalidSessionStateError(session.status.value, "active or paused")

        async with self._unit_of_work():
            await self._settle(session, self.clock.now())
        return self._view(session)

    async def _settle(self, session: ScrapperSession, now: datetime) -> None:
        """Complete an open session and record its points, without committing."""
        self._fold_pause(session, now)
        session.status = SessionStatus.COMPLETED
        session.completed_at = now
        session.updated_at = now
        await self.repo.save_session(session, commit=False)

        active_seconds = session_active_seconds(session, now)
        points = session_points(active_seconds, session.points_per_hour)
        if points > 0:
            await self.points.record_transaction(
                user_id=session.user_id,
                amount=points,
                reason=f"Completed scrapping session ({active_seconds // SECONDS_PER_HOUR} hours)",
                author_id=session.user_id,
                status=TransactionStatus.APPROVED,
                commit=False,
            )
        log.info("Session %s completed: %ss active, %s points", session.id, active_seconds, points)

    async def cancel_session(self, user_id: int, session_id: Optional[int] = None) -> SessionView:
        session = await self._resolve(user_id, session_id)
        if session.status.is_terminal:
            raise InvalidSessionStateError(session.status.value, "active or paused")

        now = self.clock.now()
        self._fold_pause(session, now)
        session.status = SessionStatus.CANCELLED
        session.completed_at = now
        session.updated_at = now
        await self.repo.save_session(session)
        log.info("Session %s cancelled", session.id)
        return self._view(session)

    # --- Scraps ---

    async def create_scrap(self, user_id: int, data: ScrapCreate) -> ScrapView:
        """Submit the scrap for the owner's open session and complete that session.

        The scrap insert and the session settlement commit together.
        """
        session = await self._resolve(user_id, None)

        now = self.clock.now()
        active_seconds = session_active_seconds(session, now)
        minutes = active_seconds // 60
        if minutes < self.settings.MIN_SESSION_DURATION_MINUTES:
            raise InsufficientSessionDurationError(minutes, self.settings.MIN_SESSION_DURATION_MINUTES)

        base_points = session_points(active_seconds, session.points_per_hour)
        scrap = Scrap(
            session_id=session.id,
            title=data.title,
            description=data.description,
            attachment_urls=list(data.attachment_urls),
            base_points=base_points,
            total_points=base_points,
            created_at=now,
            updated_at=now,
        )
        async with self._unit_of_work():
            await self.repo.add_scrap(scrap, commit=False)
            await self._settle(session, now)
        log.info("Scrap %s created in session %s", scrap.id, session.id)
        return self._scrap_view(scrap, user_id)

    async def get_random_scraps_for_voting(self, user_id: int) -> tuple[ScrapView, ScrapView]:
        candidates = await self.repo.get_random_scraps_for_voting(user_id, 2)
        if len(candidates) < 2:
            raise NotEnoughScrapsError()
        first, second = (self._scrap_view(scrap, owner_id) for scrap, owner_id in candidates[:2])
        return first, second

    async def get_scrap_by_id(self, scrap_id: int) -> Optional[ScrapView]:
        found = await self.repo.get_scrap_with_owner(scrap_id)
        if found is None:
            return None
        scrap, owner_id = found
        return self._scrap_view(scrap, owner_id, await self.repo.get_user_name(owner_id))

    # --- Voting ---

    async def vote_on_scrap(self, user_id: int, scrap_id: int, other_scrap_id: int) -> VoteView:
        if scrap_id == other_scrap_id:
            raise ValueError("A vote compares two different scraps")
        await self.rate_limiter.ensure_can_vote(user_id)

        found = await self.repo.get_scrap_with_owner(scrap_id)
        if found is None:
            raise ScrapNotFoundError(scrap_id)
        scrap, creator_id = found
        if creator_id == user_id:
            raise SelfVoteError()
        if await self.repo.get_scrap_with_owner(other_scrap_id) is None:
            raise ScrapNotFoundError(other_scrap_id)

        now = self.clock.now()
        creator_session = await self.repo.get_session(scrap.session_id)
        settlement = vote_settlement(
            session_active_seconds(creator_session, now),
            self.settings.VOTER_POINTS_PER_VOTE,
            self.settings.CREATOR_POINTS_PER_HOUR_PER_VOTE,
        )

        async with self._unit_of_work():
            voter_tx = creator_tx = None
            if settlement.voter_points > 0:
                voter_tx = await self.points.record_transaction(
                    user_id=user_id,
                    amount=settlement.voter_points,
                    reason=f"Voted on scrap #{scrap_id}",
                    author_id=user_id,
                    status=TransactionStatus.APPROVED,
                    commit=False,
                )
            if settlement.creator_points > 0:
                creator_tx = await self.points.record_transaction(
                    user_id=creator_id,
                    amount=settlement.creator_points,
                    reason=f"Received vote on scrap #{scrap_id} ({settlement.creator_hours} hours)",
                    author_id=user_id,
                    status=TransactionStatus.APPROVED,
                    commit=False,
                )
                scrap.total_points = scrap_total_points(scrap.total_points, settlement.creator_points)
                scrap.updated_at = now
                await self.repo.save_scrap(scrap, commit=False)

            vote = ScrapVote(
                voter_id=user_id,
                scrap_id=scrap_id,
                other_scrap_id=other_scrap_id,
                points_awarded=settlement.creator_points,
                voter_transaction_id=voter_tx.id if voter_tx else None,
                creator_transaction_id=creator_tx.id if creator_tx else None,
                created_at=now,
            )
            await self.repo.add_vote(vote, commit=False)

        log.info("User %s voted for scrap %s (vote %s)", user_id, scrap_id, vote.id)
        return self._vote_view(vote)

    @staticmethod
    def _vote_view(vote: ScrapVote, voter_name=None, scrap_title=None, other_title=None) -> VoteView:
        return VoteView(
            id=vote.id,
            voter_id=vote.voter_id,
            voter_name=voter_name,
            scrap_id=vote.scrap_id,
            scrap_title=scrap_title,
            other_scrap_id=vote.other_scrap_id,
            other_scrap_title=other_title,
            points_awarded=vote.points_awarded,
            voter_transaction_id=vote.voter_transaction_id,
            creator_transaction_id=vote.creator_transaction_id,
            created_at=vote.created_at,
        )

    async def invalidate_vote(self, identity: Identity, vote_id: int) -> VoteInvalidationResult:
        """Void the ledger entries a vote produced and remove the vote.

        Ledger failures do not stop the cleanup; they come back in
        ``transaction_errors`` so the caller can surface a warning.
        """
        organizer_id = require_organizer(identity)
        vote = await self.repo.get_vote(vote_id)
        if vote is None:
            raise VoteNotFoundError(vote_id)

        deleted: List[int] = []
        errors: List[TransactionError] = []
        async with self._unit_of_work():
            for transaction_id in vote.transaction_ids:
                try:
                    await self.points.review(
                        transaction_id, organizer_id, TransactionStatus.DELETED, commit=False
                    )
                except PointsError as exc:
                    log.warning(
                        "Could not delete transaction %s of vote %s: %s", transaction_id, vote_id, exc
                    )
                    errors.append(TransactionError(transaction_id=transaction_id, error=str(exc)))
                else:
                    deleted.append(transaction_id)

            if vote.creator_transaction_id is not None and vote.creator_transaction_id in deleted:
                found = await self.repo.get_scrap_with_owner(vote.scrap_id)
                if found is not None:
                    scrap, _ = found
                    scrap.total_points = max(scrap.base_points, scrap.total_points - vote.points_awarded)
                    scrap.updated_at = self.clock.now()
                    await self.repo.save_scrap(scrap, commit=False)

            await self.repo.delete_vote(vote, commit=False)

        log.info("Vote %s invalidated by %s, %s transaction(s) deleted", vote_id, organizer_id, len(deleted))
        return VoteInvalidationResult(
            vote_id=vote_id,
            deleted_vote=True,
            deleted_transaction_ids=deleted,
            transaction_errors=errors,
        )

    # --- Organizer views ---

    async def get_active_session_count(self) -> int:
        return await self.repo.count_sessions(SessionStatus.ACTIVE)

    async def get_scrap_count_since(self, since: datetime) -> int:
        return await self.repo.count_scraps_since(since)

    async def get_vote_count_since(self, since: datetime) -> int:
        return await self.repo.count_votes_since(since)

    async def get_sessions(self, filters: SessionFilters) -> List[SessionView]:
        rows = await self.repo.list_sessions(filters)
        return [self._view(session, name) for session, name in rows]

    async def get_recent_sessions(self, limit: int) -> List[SessionView]:
        rows = await self.repo.list_sessions(SessionFilters(), limit=limit)
        return [self._view(session, name) for session, name in rows]

    async def get_session_count(self, filters: SessionFilters) -> int:
        return await self.repo.count_filtered_sessions(filters)

    async def get_session_scraps(self, session_id: int) -> List[ScrapView]:
        rows = await self.repo.list_session_scraps(session_id)
        return [self._scrap_view(scrap, owner_id, name) for scrap, owner_id, name in rows]

    async def get_recent_scraps(self, limit: int) -> List[ScrapView]:
        rows = await self.repo.list_recent_scraps(limit)
        return [self._scrap_view(scrap, owner_id, name) for scrap, owner_id, name in rows]

    async def get_total_points_for_session(self, session_id: int) -> int:
        return await self.repo.total_points_for_session(session_id)

    async def get_votes(self, filters: VoteFilters) -> List[VoteView]:
        rows = await self.repo.list_votes(filters)
        return [self._vote_view(vote, name, title, other) for vote, name, title, other in rows]

    async def get_vote_count(self, filters: VoteFilters) -> int:
        return await self.repo.count_filtered_votes(filters)

    async def get_vote_stats(self) -> VoteStats:
        now = self.clock.now()
        total = await self.repo.count_filtered_votes(VoteFilters())
        voters = await self.repo.count_distinct_voters()
        top = await self.repo.voting_activity(limit=5)
        return VoteStats(
            total_votes=total,
            last_hour_votes=await self.repo.count_votes_since(now - timedelta(hours=1)),
            last_24_hour_votes=await self.repo.count_votes_since(now - timedelta(hours=24)),
            average_votes_per_user=total / voters if voters else 0.0,
            top_voters=[TopVoter(user_id=u, user_name=n, vote_count=c) for u, n, c, _ in top],
        )

    async def get_user_voting_activity(self, limit: Optional[int] = None) -> List[UserVotingActivity]:
        rows = await self.repo.voting_activity(limit=limit)
        return [
            UserVotingActivity(user_id=u, user_name=n, total_votes=c, last_vote_time=last)
            for u, n, c, last in rows
        ]
