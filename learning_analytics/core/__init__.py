"""
Core Module - Shared domain models.

Components:
- mastery: MasteryEngine, MasteryLevel, MasteryProgress
- sessions: LearningSession, QuizAnalytics, QuestionPerformance
- dates: calendar and serialization helpers
"""

from learning_analytics.core.mastery import (
    MasteryEngine,
    MasteryHistoryPoint,
    MasteryLevel,
    MasteryProgress,
    TimedAttempt,
    mastery_score_from_outcomes,
)
from learning_analytics.core.sessions import (
    LearningSession,
    QuestionPerformance,
    QuizAnalytics,
)

__all__ = [
    # Mastery
    "MasteryEngine",
    "MasteryHistoryPoint",
    "MasteryLevel",
    "MasteryProgress",
    "TimedAttempt",
    "mastery_score_from_outcomes",
    # Sessions
    "LearningSession",
    "QuestionPerformance",
    "QuizAnalytics",
]
