from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DATABASE_URL: str = "sqlite+aiosqlite:///hackpoints.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Rate table
    BASE_POINTS_PER_HOUR: int = 100
    VOTER_POINTS_PER_VOTE: int = 1
    CREATOR_POINTS_PER_HOUR_PER_VOTE: int = 1
    MAX_VOTES_PER_HOUR: int = 5
    VOTE_WINDOW_MINUTES: int = 60
    MIN_SESSION_DURATION_MINUTES: int = 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
