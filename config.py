"""
Configuration settings for the practice engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.time_budget import DEFAULT_SECONDS_BY_DIFFICULTY, TimeBudgetTable


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default="sqlite:///data/practice.db",
        description="SQLAlchemy connection string for attempts, mastery and sessions",
    )
    content_dir: str = Field(
        default="content",
        description="Directory holding index/questions.json and answers/normalized.json",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level written to stderr",
    )

    # ========================================
    # Time Budgets
    # ========================================
    time_budget_seconds: dict[int, int] = Field(
        default_factory=lambda: dict(DEFAULT_SECONDS_BY_DIFFICULTY),
        description="Seconds allowed per question, keyed by difficulty (JSON in env)",
    )
    time_budget_default_seconds: int = Field(
        default=120,
        description="Budget for questions with unknown difficulty",
    )

    # ========================================
    # Sessions & Mastery
    # ========================================
    session_default_size: int = Field(default=10, ge=1, description="Default session size")
    session_history_window: int = Field(
        default=50,
        ge=1,
        description="Recent attempts considered when recommending a difficulty",
    )
    mastery_window: int = Field(
        default=10,
        ge=1,
        description="Attempts per pattern used for mastery classification",
    )

    @field_validator("time_budget_seconds")
    @classmethod
    def _positive_budgets(cls, value: dict[int, int]) -> dict[int, int]:
        for difficulty, seconds in value.items():
            if seconds <= 0:
                raise ValueError(f"time budget for difficulty {difficulty} must be positive")
        return value

    def get_time_budget_table(self) -> TimeBudgetTable:
        """Build the immutable time budget table from settings."""
        return TimeBudgetTable(
            seconds_by_difficulty=self.time_budget_seconds,
            default_seconds=self.time_budget_default_seconds,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
