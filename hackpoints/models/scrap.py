from typing import List, Optional
from datetime import datetime
from sqlmodel import Field, SQLModel
from sqlalchemy import JSON, CheckConstraint, Column

from ..clock import utcnow


class Scrap(SQLModel, table=True):
    __tablename__ = "scraps"
    __table_args__ = (
        CheckConstraint("total_points >= base_points", name="ck_scrap_total_covers_base"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="scrapper_sessions.id", index=True)
    title: str
    description: str
    attachment_urls: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    base_points: int = Field(default=0)
    total_points: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
