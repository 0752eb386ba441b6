from __future__ import annotations

import logging
from typing import List, Optional

from ..clock import Clock
from ..errors import SelfReviewError, TransactionNotFoundError, TransactionNotPendingError
from ..identity import Identity, require_organizer
from ..models import PointTransaction, TransactionStatus
from ..repositories.points import PointsRepository
from ..schemas import LeaderboardEntry, PointsStatistics, ReviewRequest, TopEarner, UserRank

log = logging.getLogger(__name__)

REVIEW_DECISIONS = (TransactionStatus.APPROVED, TransactionStatus.REJECTED, TransactionStatus.DELETED)


class PointsService:
    """The points ledger and its review workflow."""

    def __init__(self, repo: PointsRepository, clock: Clock):
        self.repo = repo
        self.clock = clock

    # --- Writes ---

    async def record_transaction(
        self,
        user_id: int,
        amount: int,
        reason: str,
        author_id: int,
        status: TransactionStatus = TransactionStatus.PENDING,
        *,
        commit: bool = True,
    ) -> PointTransaction:
        """Append a ledger entry. Negative amounts are debits.

        If commit=False the caller owns the surrounding unit of work.
        """
        if amount == 0:
            raise ValueError("Transaction amount must be non-zero")
        status = TransactionStatus(status)
        transaction = await self.repo.create_transaction(
            user_id=user_id,
            amount=amount,
            reason=reason,
            author_id=author_id,
            status=status,
            created_at=self.clock.now(),
            commit=commit,
        )
        log.info(
            "Recorded transaction %s: user=%s amount=%s status=%s",
            transaction.id, user_id, amount, status.value,
        )
        return transaction

    async def award_points(self, identity: Identity, user_id: int, amount: int, reason: str) -> PointTransaction:
        """Organizer award; lands pending until another organizer reviews it."""
        organizer_id = require_organizer(identity)
        return await self.record_transaction(user_id, amount, reason, organizer_id)

    async def review(
        self,
        transaction_id: int,
        reviewer_id: int,
        decision: TransactionStatus,
        rejection_reason: Optional[str] = None,
        *,
        commit: bool = True,
    ) -> PointTransaction:
        decision = TransactionStatus(decision)
        if decision not in REVIEW_DECISIONS:
            raise ValueError(f"Invalid review decision: {decision.value}")

        transaction = await self.repo.get_transaction(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        if transaction.user_id == reviewer_id:
            raise SelfReviewError()

        current = TransactionStatus(transaction.status)
        # Deleting may retroactively void an approved award; nothing else leaves a terminal state
        superseding = decision == TransactionStatus.DELETED and current == TransactionStatus.APPROVED
        if current.is_terminal and not superseding:
            raise TransactionNotPendingError(transaction_id, current.value)

        updated = await self.repo.save_review(
            transaction,
            status=decision,
            reviewer_id=reviewer_id,
            reviewed_at=self.clock.now(),
            rejection_reason=rejection_reason if decision == TransactionStatus.REJECTED else None,
            commit=commit,
        )
        log.info(
            "Transaction %s reviewed by %s: %s -> %s",
            transaction_id, reviewer_id, current.value, decision.value,
        )
        return updated

    async def review_transaction(self, identity: Identity, request: ReviewRequest) -> PointTransaction:
        reviewer_id = require_organizer(identity)
        return await self.review(request.transaction_id, reviewer_id, request.status, request.rejection_reason)

    # --- Reads ---

    async def get_balance(self, user_id: int) -> int:
        balance = await self.repo.get_total_points(user_id)
        log.debug("Balance for user %s: %s", user_id, balance)
        return balance

    async def get_transaction(self, transaction_id: int) -> Optional[PointTransaction]:
        return await self.repo.get_transaction(transaction_id)

    async def get_transactions(self) -> List[PointTransaction]:
        return await self.repo.list_transactions()

    async def get_pending_transactions(self) -> List[PointTransaction]:
        return await self.repo.list_transactions(status=TransactionStatus.PENDING)

    async def get_transactions_by_user(self, user_id: int) -> List[PointTransaction]:
        return await self.repo.list_transactions(user_id=user_id)

    async def get_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        balances = await self.repo.get_balances()
        entries = [LeaderboardEntry(user_id=u, name=n, total_points=p) for u, n, p in balances]
        return entries[:limit] if limit is not None else entries

    async def get_user_rank(self, user_id: int) -> UserRank:
        balances = await self.repo.get_balances()
        for position, (ranked_id, _, _) in enumerate(balances, start=1):
            if ranked_id == user_id:
                return UserRank(rank=position, total_users=len(balances))
        return UserRank(rank=0, total_users=len(balances))

    async def get_statistics(self) -> PointsStatistics:
        balances = await self.repo.get_balances()
        total = sum(points for _, _, points in balances)
        average = total / len(balances) if balances else 0.0
        top_earner = None
        if balances:
            user_id, name, points = balances[0]
            top_earner = TopEarner(user_id=user_id, name=name, total_points=points)
        return PointsStatistics(total_points_awarded=total, average_points_per_user=average, top_earner=top_earner)
