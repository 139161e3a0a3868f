"""
Configuration settings for learning-analytics.

Uses Pydantic Settings for environment variable management with .env file support.
Engine defaults live here so deployments can tune thresholds without code changes.
"""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from learning_analytics.adaptive.recommendation_engine import RecommendationType


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr by the CLI",
    )

    # ========================================
    # Mastery Engine
    # ========================================
    mastery_alpha: float = Field(
        default=0.3,
        gt=0.0,
        le=1.0,
        description="EMA smoothing weight (higher favours recent attempts)",
    )
    mastery_min_attempts: int = Field(
        default=3,
        ge=0,
        description="Attempts scored by simple average before EMA applies",
    )
    mastery_decay_factor: float = Field(
        default=0.95,
        gt=0.0,
        le=1.0,
        description="Multiplicative decay per overdue day",
    )
    mastery_decay_period_days: int = Field(
        default=7,
        ge=0,
        description="Days without practice before decay starts",
    )

    # ========================================
    # Retention Engine
    # ========================================
    retention_initial_stability: float = Field(
        default=1.0,
        gt=0.0,
        description="Initial stability for new items (days)",
    )
    retention_stability_growth_factor: float = Field(
        default=2.5,
        gt=0.0,
        description="Stability multiplier after a good review",
    )
    retention_difficulty_weight: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="How strongly difficulty slows stability growth",
    )
    retention_target: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Target retention used for scheduling (90% recall)",
    )

    # ========================================
    # Streak Engine
    # ========================================
    streak_freeze_days: int = Field(
        default=0,
        ge=0,
        description="Missed days tolerated without breaking a streak",
    )
    streak_grace_period_hours: int = Field(
        default=0,
        ge=0,
        description="Hours past midnight still counted as the previous day",
    )

    # ========================================
    # Recommendation Engine
    # ========================================
    recommendation_accuracy_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Accuracy below this triggers accuracy recommendations",
    )
    recommendation_skip_threshold: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Skip rate above this counts as a high-skip session",
    )
    recommendation_time_threshold_seconds: int = Field(
        default=60,
        gt=0,
        description="Average seconds per question above this is considered slow",
    )
    recommendation_retention_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Retrievability below this counts an item as due",
    )
    recommendation_max_results: int = Field(
        default=5,
        ge=1,
        description="Maximum recommendations returned per analysis",
    )
    recommendation_min_sessions: int = Field(
        default=3,
        ge=0,
        description="Sessions or quizzes required before analysis runs",
    )
    recommendation_disabled_types: str = Field(
        default="",
        description="Comma-separated recommendation types to skip (e.g. 'streak,retention')",
    )

    @field_validator("recommendation_disabled_types")
    @classmethod
    def validate_disabled_types(cls, value: str) -> str:
        known = {t.value for t in RecommendationType}
        unknown = [name for name in _split_names(value) if name not in known]
        if unknown:
            raise ValueError(f"Unknown recommendation types: {', '.join(unknown)}")
        return value

    def get_mastery_config(self) -> dict[str, Any]:
        """Get MasteryEngine keyword arguments."""
        return {
            "alpha": self.mastery_alpha,
            "min_attempts": self.mastery_min_attempts,
            "decay_factor": self.mastery_decay_factor,
            "decay_period_days": self.mastery_decay_period_days,
        }

    def get_retention_config(self) -> dict[str, Any]:
        """Get RetentionEngine keyword arguments."""
        return {
            "initial_stability": self.retention_initial_stability,
            "stability_growth_factor": self.retention_stability_growth_factor,
            "difficulty_weight": self.retention_difficulty_weight,
            "target_retention": self.retention_target,
        }

    def get_streak_config(self) -> dict[str, Any]:
        """Get StreakEngine keyword arguments."""
        return {
            "freeze_days": self.streak_freeze_days,
            "grace_period_hours": self.streak_grace_period_hours,
        }

    def get_recommendation_config(self) -> dict[str, Any]:
        """Get RecommendationConfig keyword arguments."""
        disabled = {RecommendationType(name) for name in _split_names(self.recommendation_disabled_types)}
        return {
            "accuracy_threshold": self.recommendation_accuracy_threshold,
            "skip_threshold": self.recommendation_skip_threshold,
            "time_threshold": timedelta(seconds=self.recommendation_time_threshold_seconds),
            "retention_threshold": self.recommendation_retention_threshold,
            "max_recommendations": self.recommendation_max_results,
            "min_sessions_for_analysis": self.recommendation_min_sessions,
            "enabled_types": frozenset(RecommendationType) - disabled,
        }


def _split_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
