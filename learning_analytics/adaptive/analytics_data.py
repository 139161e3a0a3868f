"""
Learning analytics aggregate.

Bundles the records a caller holds for one learner and derives the
dashboard-level totals from them. This is also the JSON document the CLI
reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from learning_analytics.adaptive.recommendation_engine import (
    Recommendation,
    RecommendationEngine,
    RecommendationPriority,
)
from learning_analytics.core.dates import parse_date, to_iso
from learning_analytics.core.mastery import MasteryLevel, MasteryProgress
from learning_analytics.core.sessions import LearningSession, QuizAnalytics
from learning_analytics.study.retention_engine import RetentionRecord, RetentionStats
from learning_analytics.study.streak_engine import StreakRecord


@dataclass(frozen=True)
class LearningAnalyticsData:
    """All analytics inputs for a learner. Sessions are most recent first."""

    sessions: tuple[LearningSession, ...] = field(default_factory=tuple)
    quizzes: tuple[QuizAnalytics, ...] = field(default_factory=tuple)
    mastery_progress: tuple[MasteryProgress, ...] = field(default_factory=tuple)
    streak: StreakRecord | None = None
    retention_items: tuple[RetentionRecord, ...] = field(default_factory=tuple)
    recommendations: tuple[Recommendation, ...] = field(default_factory=tuple)
    activity_map: dict[date, int] = field(default_factory=dict)
    total_xp: int = 0
    current_level: int = 1
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def total_questions_answered(self) -> int:
        return sum(s.questions_attempted for s in self.sessions)

    @property
    def total_correct_answers(self) -> int:
        return sum(s.correct_answers for s in self.sessions)

    @property
    def total_wrong_answers(self) -> int:
        return sum(s.wrong_answers for s in self.sessions)

    @property
    def total_skipped_questions(self) -> int:
        return sum(s.skipped_questions for s in self.sessions)

    @property
    def overall_accuracy(self) -> float:
        if self.total_questions_answered == 0:
            return 0.0
        return self.total_correct_answers / self.total_questions_answered

    @property
    def total_time_spent(self) -> timedelta:
        return sum((s.duration for s in self.sessions), timedelta(0))

    @property
    def average_session_duration(self) -> timedelta:
        if not self.sessions:
            return timedelta(0)
        total_ms = self.total_time_spent // timedelta(milliseconds=1)
        return timedelta(milliseconds=total_ms // len(self.sessions))

    @property
    def mastery_distribution(self) -> dict[MasteryLevel, int]:
        distribution = dict.fromkeys(MasteryLevel, 0)
        for progress in self.mastery_progress:
            distribution[progress.level] += 1
        return distribution

    @property
    def topics_needing_attention(self) -> list[MasteryProgress]:
        """Novice and beginner topics, weakest first."""
        weak = [
            p
            for p in self.mastery_progress
            if p.level in (MasteryLevel.NOVICE, MasteryLevel.BEGINNER)
        ]
        return sorted(weak, key=lambda p: p.current_score)

    @property
    def top_performing_topics(self) -> list[MasteryProgress]:
        """Advanced and expert topics, strongest first."""
        strong = [
            p
            for p in self.mastery_progress
            if p.level in (MasteryLevel.ADVANCED, MasteryLevel.EXPERT)
        ]
        return sorted(strong, key=lambda p: p.current_score, reverse=True)

    @property
    def high_priority_recommendations(self) -> list[Recommendation]:
        return [
            r
            for r in self.recommendations
            if r.priority in (RecommendationPriority.HIGH, RecommendationPriority.CRITICAL)
        ]

    def items_due_for_review(
        self,
        threshold: float = 0.9,
        now: datetime | None = None,
    ) -> list[RetentionRecord]:
        """Due items, lowest retrievability first."""
        due = [item for item in self.retention_items if item.is_review_due(threshold, now)]
        return sorted(due, key=lambda item: item.current_retrievability(now))

    def retention_stats(self, now: datetime | None = None) -> RetentionStats:
        return RetentionStats.from_records(self.retention_items, now=now)

    def recommend(
        self,
        engine: RecommendationEngine | None = None,
        now: datetime | None = None,
    ) -> list[Recommendation]:
        """Run the recommendation engine over this data."""
        engine = engine or RecommendationEngine()
        return engine.analyze(
            sessions=self.sessions,
            quizzes=self.quizzes,
            mastery_progress=self.mastery_progress,
            retention_items=self.retention_items,
            streak=self.streak,
            now=now,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "quizzes": [q.to_dict() for q in self.quizzes],
            "masteryProgress": [p.to_dict() for p in self.mastery_progress],
            "streakData": self.streak.to_dict() if self.streak else None,
            "retentionItems": [r.to_dict() for r in self.retention_items],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "activityMap": {to_iso(day): count for day, count in self.activity_map.items()},
            "totalXp": self.total_xp,
            "currentLevel": self.current_level,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LearningAnalyticsData:
        streak = data.get("streakData")
        return cls(
            sessions=tuple(LearningSession.from_dict(s) for s in data.get("sessions") or []),
            quizzes=tuple(QuizAnalytics.from_dict(q) for q in data.get("quizzes") or []),
            mastery_progress=tuple(
                MasteryProgress.from_dict(p) for p in data.get("masteryProgress") or []
            ),
            streak=StreakRecord.from_dict(streak) if streak else None,
            retention_items=tuple(
                RetentionRecord.from_dict(r) for r in data.get("retentionItems") or []
            ),
            recommendations=tuple(
                Recommendation.from_dict(r) for r in data.get("recommendations") or []
            ),
            activity_map={
                parse_date(day): int(count) for day, count in (data.get("activityMap") or {}).items()
            },
            total_xp=int(data.get("totalXp") or 0),
            current_level=int(data.get("currentLevel") or 1),
            metadata=dict(data.get("metadata") or {}),
        )
