from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel
from sqlalchemy import CheckConstraint, Index, text

from ..clock import utcnow
from .columns import enum_column


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_open


OPEN_STATUSES = (SessionStatus.ACTIVE, SessionStatus.PAUSED)

_OPEN_PREDICATE = text("status IN ('active', 'paused')")


class ScrapperSession(SQLModel, table=True):
    __tablename__ = "scrapper_sessions"
    __table_args__ = (
        # One open session per owner; closes the race between concurrent starts.
        Index(
            "uq_scrapper_sessions_open_user",
            "user_id",
            unique=True,
            sqlite_where=_OPEN_PREDICATE,
            postgresql_where=_OPEN_PREDICATE,
        ),
        CheckConstraint("total_paused_seconds >= 0", name="ck_session_paused_nonneg"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    status: SessionStatus = Field(
        default=SessionStatus.ACTIVE,
        sa_column=enum_column(SessionStatus, "session_status", SessionStatus.ACTIVE),
    )
    start_time: datetime = Field(default_factory=utcnow)
    last_paused_at: Optional[datetime] = None
    total_paused_seconds: int = Field(default=0)
    completed_at: Optional[datetime] = None
    points_per_hour: int
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
