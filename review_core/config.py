"""
Configuration management for the review core
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application Configuration
    log_level: str = Field(default="INFO")

    # Spaced Repetition Configuration
    mastered_interval_days: int = Field(default=21)
    daily_review_goal: int = Field(default=20)

    # Wrong Answer Review Configuration
    wrong_answer_mastery_streak: int = Field(default=3)
    wrong_answer_review_limit: int = Field(default=10)
    max_review_sessions: int = Field(default=50)
    recent_sessions_limit: int = Field(default=5)

    # Distractor Configuration
    min_options: int = Field(default=4)
    max_peer_distractors: int = Field(default=2)
    similar_items_max_count: int = Field(default=5)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings"""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
