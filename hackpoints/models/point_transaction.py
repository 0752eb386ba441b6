from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint

from ..clock import utcnow
from .columns import enum_column


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


EXCLUDED_FROM_BALANCE = (TransactionStatus.REJECTED, TransactionStatus.DELETED)


class PointTransaction(SQLModel, table=True):
    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_transaction_amount_nonzero"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    amount: int  # negative for debits
    reason: str
    author_id: int = Field(foreign_key="users.id")
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING,
        sa_column=enum_column(TransactionStatus, "transaction_status", TransactionStatus.PENDING),
    )
    reviewer_id: Optional[int] = Field(default=None, foreign_key="users.id")
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
