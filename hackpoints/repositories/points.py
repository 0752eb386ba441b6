from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import and_, func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import EXCLUDED_FROM_BALANCE, PointTransaction, TransactionStatus, User


class PointsRepository(Protocol):
    async def create_transaction(
        self,
        *,
        user_id: int,
        amount: int,
        reason: str,
        author_id: int,
        status: TransactionStatus,
        created_at: datetime,
        commit: bool = True,
    ) -> PointTransaction: ...

    async def get_transaction(self, transaction_id: int) -> Optional[PointTransaction]: ...

    async def save_review(
        self,
        transaction: PointTransaction,
        *,
        status: TransactionStatus,
        reviewer_id: int,
        reviewed_at: datetime,
        rejection_reason: Optional[str],
        commit: bool = True,
    ) -> PointTransaction: ...

    async def get_total_points(self, user_id: int) -> int: ...

    async def list_transactions(
        self, *, user_id: Optional[int] = None, status: Optional[TransactionStatus] = None
    ) -> List[PointTransaction]: ...

    async def get_balances(self) -> Sequence[tuple[int, str, int]]: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class SqlPointsRepository:
    """Ledger persistence on top of a request-scoped AsyncSession.

    Rows are only ever inserted or updated by id; balances are aggregated at
    read time so concurrent writers never race on a cached total.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_transaction(
        self,
        *,
        user_id: int,
        amount: int,
        reason: str,
        author_id: int,
        status: TransactionStatus,
        created_at: datetime,
        commit: bool = True,
    ) -> PointTransaction:
        transaction = PointTransaction(
            user_id=user_id,
            amount=amount,
            reason=reason,
            author_id=author_id,
            status=status,
            created_at=created_at,
        )
        self.session.add(transaction)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return transaction

    async def get_transaction(self, transaction_id: int) -> Optional[PointTransaction]:
        return await self.session.get(PointTransaction, transaction_id)

    async def save_review(
        self,
        transaction: PointTransaction,
        *,
        status: TransactionStatus,
        reviewer_id: int,
        reviewed_at: datetime,
        rejection_reason: Optional[str],
        commit: bool = True,
    ) -> PointTransaction:
        transaction.status = status
        transaction.reviewer_id = reviewer_id
        transaction.reviewed_at = reviewed_at
        transaction.rejection_reason = rejection_reason
        self.session.add(transaction)
        await self.session.flush()
        if commit:
            await self.session.commit()
        return transaction

    async def get_total_points(self, user_id: int) -> int:
        statement = select(func.coalesce(func.sum(PointTransaction.amount), 0)).where(
            PointTransaction.user_id == user_id,
            PointTransaction.status.not_in(EXCLUDED_FROM_BALANCE),
        )
        total = (await self.session.exec(statement)).one()
        return int(total)

    async def list_transactions(
        self, *, user_id: Optional[int] = None, status: Optional[TransactionStatus] = None
    ) -> List[PointTransaction]:
        statement = select(PointTransaction)
        if user_id is not None:
            statement = statement.where(PointTransaction.user_id == user_id)
        if status is not None:
            statement = statement.where(PointTransaction.status == status)
        statement = statement.order_by(PointTransaction.created_at, PointTransaction.id)
        return list((await self.session.exec(statement)).all())

    async def get_balances(self) -> Sequence[tuple[int, str, int]]:
        """(user_id, name, balance) for every user, richest first."""
        balance = func.coalesce(func.sum(PointTransaction.amount), 0).label("balance")
        statement = (
            select(User.id, User.name, balance)
            .outerjoin(
                PointTransaction,
                and_(
                    PointTransaction.user_id == User.id,
                    PointTransaction.status.not_in(EXCLUDED_FROM_BALANCE),
                ),
            )
            .group_by(User.id, User.name)
            .order_by(balance.desc(), User.id)
        )
        rows = (await self.session.exec(statement)).all()
        return [(user_id, name, int(total)) for user_id, name, total in rows]

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
