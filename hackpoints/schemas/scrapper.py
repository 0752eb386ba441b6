from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from ..models.session import SessionStatus


class SessionView(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    status: SessionStatus
    start_time: datetime
    last_paused_at: Optional[datetime] = None
    total_paused_seconds: int
    completed_at: Optional[datetime] = None
    points_per_hour: int
    active_seconds: int

    @property
    def duration_minutes(self) -> int:
        return self.active_seconds // 60


class ScrapView(BaseModel):
    id: int
    session_id: int
    user_id: int
    user_name: Optional[str] = None
    title: str
    description: str
    attachment_urls: List[str]
    base_points: int
    total_points: int
    created_at: datetime


class ScrapCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    attachment_urls: List[str] = []


class VoteView(BaseModel):
    id: int
    voter_id: int
    voter_name: Optional[str] = None
    scrap_id: int
    scrap_title: Optional[str] = None
    other_scrap_id: int
    other_scrap_title: Optional[str] = None
    points_awarded: int
    voter_transaction_id: Optional[int] = None
    creator_transaction_id: Optional[int] = None
    created_at: datetime


class SessionFilters(BaseModel):
    status: Optional[SessionStatus] = None
    search: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None


class VoteFilters(BaseModel):
    user_id: Optional[int] = None
    scrap_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: Optional[int] = None
    page_size: Optional[int] = None


class TopVoter(BaseModel):
    user_id: int
    user_name: str
    vote_count: int


class VoteStats(BaseModel):
    total_votes: int
    last_hour_votes: int
    last_24_hour_votes: int
    average_votes_per_user: float
    top_voters: List[TopVoter]


class UserVotingActivity(BaseModel):
    user_id: int
    user_name: str
    total_votes: int
    last_vote_time: Optional[datetime] = None


class TransactionError(BaseModel):
    transaction_id: int
    error: str


class VoteInvalidationResult(BaseModel):
    """Outcome of invalidating a vote; transaction errors mean partial cleanup."""
    vote_id: int
    deleted_vote: bool
    deleted_transaction_ids: List[int] = []
    transaction_errors: List[TransactionError] = []

    @property
    def is_partial(self) -> bool:
        return bool(self.transaction_errors)
