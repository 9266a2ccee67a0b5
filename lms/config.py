"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str = "sqlite:///./lms.db"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_ENABLED: bool = True

    # Application
    APP_NAME: str = "Ekskul LMS"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    TIMEZONE: str = "Asia/Jakarta"

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_PER_HOUR: int = 1000

    # Gamification
    CHECK_IN_POINTS: int = 10
    POINTS_PER_LEVEL: int = 100
    DEFAULT_MATERIAL_XP: int = 50
    LEADERBOARD_LIMIT: int = 50
    LEADERBOARD_CACHE_TTL: int = 30  # seconds

    # Quiz Settings
    DEFAULT_QUIZ_XP: int = 100
    PASSING_SCORE: int = 60
    QUIZ_TICK_SECONDS: float = 1.0
    QUIZ_SESSION_IDLE_SECONDS: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
