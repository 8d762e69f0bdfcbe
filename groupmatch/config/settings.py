# groupmatch/config/settings.py

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./groupmatch.db"
    LOG_LEVEL: str = "INFO"

    # recompute worker pool
    RECOMPUTE_WORKERS: int = 4
    DISPATCHER_DRAIN_TIMEOUT: float = 30.0

    # optimistic concurrency on characteristic profiles
    PROFILE_WRITE_RETRIES: int = 3

    # matching
    MATCH_CEILING_BASE: Optional[float] = None  # None -> variance of a one-hot role vector
    MATCH_RESULT_LIMIT: Optional[int] = None

    # quiz
    QUIZ_NORMALIZE_SCORES: bool = False

    class Config:
        env_file = ".env"


settings = Settings()
