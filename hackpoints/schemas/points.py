from typing import Optional
from pydantic import BaseModel

from ..models.point_transaction import TransactionStatus


class LeaderboardEntry(BaseModel):
    user_id: int
    name: str
    total_points: int


class UserRank(BaseModel):
    rank: int
    total_users: int


class TopEarner(BaseModel):
    user_id: int
    name: str
    total_points: int


class PointsStatistics(BaseModel):
    total_points_awarded: int
    average_points_per_user: float
    top_earner: Optional[TopEarner] = None


class ReviewRequest(BaseModel):
    transaction_id: int
    status: TransactionStatus
    rejection_reason: Optional[str] = None
