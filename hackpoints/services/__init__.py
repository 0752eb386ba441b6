from .points import PointsService
from .rate_limit import VoteRateLimiter
from .scrapper import ScrapperService

__all__ = ["PointsService", "VoteRateLimiter", "ScrapperService"]
