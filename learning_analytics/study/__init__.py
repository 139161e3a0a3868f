"""
Study Module.

Provides:
- Retention modelling and review scheduling (Ebbinghaus forgetting curve)
- Streak tracking with freeze days and a grace period
"""

from learning_analytics.study.retention_engine import (
    RetentionEngine,
    RetentionRecord,
    RetentionStats,
    RetentionSummary,
    ReviewEvent,
    ScheduledReview,
)
from learning_analytics.study.streak_engine import (
    DailyActivity,
    StreakEngine,
    StreakPeriod,
    StreakRecord,
)

__all__ = [
    "RetentionEngine",
    "RetentionRecord",
    "RetentionStats",
    "RetentionSummary",
    "ReviewEvent",
    "ScheduledReview",
    "StreakEngine",
    "StreakRecord",
    "StreakPeriod",
    "DailyActivity",
]
