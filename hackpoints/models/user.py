from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel

from ..clock import utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    is_organizer: bool = False
    created_at: datetime = Field(default_factory=utcnow)
