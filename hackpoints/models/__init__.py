from .user import User
from .point_transaction import PointTransaction, TransactionStatus, EXCLUDED_FROM_BALANCE
from .session import ScrapperSession, SessionStatus, OPEN_STATUSES
from .scrap import Scrap
from .vote import ScrapVote

__all__ = [
    "User",
    "PointTransaction", "TransactionStatus", "EXCLUDED_FROM_BALANCE",
    "ScrapperSession", "SessionStatus", "OPEN_STATUSES",
    "Scrap",
    "ScrapVote",
]
