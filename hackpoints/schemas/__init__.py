from .points import LeaderboardEntry, UserRank, TopEarner, PointsStatistics, ReviewRequest
from .scrapper import (
    SessionView, ScrapView, ScrapCreate, VoteView, SessionFilters, VoteFilters,
    TopVoter, VoteStats, UserVotingActivity, TransactionError, VoteInvalidationResult,
)

__all__ = [
    "LeaderboardEntry", "UserRank", "TopEarner", "PointsStatistics", "ReviewRequest",
    "SessionView", "ScrapView", "ScrapCreate", "VoteView", "SessionFilters", "VoteFilters",
    "TopVoter", "VoteStats", "UserVotingActivity", "TransactionError", "VoteInvalidationResult",
]
