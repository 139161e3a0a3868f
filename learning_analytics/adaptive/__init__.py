"""
Adaptive Recommendations.

Components:
- RecommendationEngine: Rule-based suggestions from learner summaries
- LearningAnalyticsData: Aggregate of everything known about one learner
"""
from learning_analytics.adaptive.analytics_data import LearningAnalyticsData
from learning_analytics.adaptive.recommendation_engine import (
    Recommendation,
    RecommendationConfig,
    RecommendationEngine,
    RecommendationPriority,
    RecommendationType,
)

__all__ = [
    "LearningAnalyticsData",
    "Recommendation",
    "RecommendationConfig",
    "RecommendationEngine",
    "RecommendationPriority",
    "RecommendationType",
]
