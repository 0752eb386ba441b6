from .points import PointsRepository, SqlPointsRepository
from .scrapper import ScrapperRepository, SqlScrapperRepository

__all__ = ["PointsRepository", "SqlPointsRepository", "ScrapperRepository", "SqlScrapperRepository"]
