from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

from ..clock import utcnow


class ScrapVote(SQLModel, table=True):
    __tablename__ = "scrap_votes"

    id: Optional[int] = Field(default=None, primary_key=True)
    voter_id: int = Field(foreign_key="users.id", index=True)
    scrap_id: int = Field(foreign_key="scraps.id", index=True)
    other_scrap_id: int = Field(foreign_key="scraps.id")
    points_awarded: int = Field(default=0)
    voter_transaction_id: Optional[int] = Field(default=None, foreign_key="point_transactions.id")
    creator_transaction_id: Optional[int] = Field(default=None, foreign_key="point_transactions.id")
    created_at: datetime = Field(default_factory=utcnow, index=True)

    @property
    def transaction_ids(self) -> list[int]:
        return [t for t in (self.voter_transaction_id, self.creator_transaction_id) if t is not None]
