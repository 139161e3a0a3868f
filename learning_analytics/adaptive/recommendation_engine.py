"""
Recommendation Engine.

Rule-based analysis of learner summaries producing prioritized, typed
suggestions. Rule groups run in a fixed order:

1. Time management  - slow quizzes
2. Accuracy         - low recent session accuracy
3. Skip pattern     - repeated high skip rates
4. Subject focus    - novice/beginner topics
5. Streak           - streak at risk, near personal record
6. Retention        - items due, items at risk
7. Encouragement    - improving accuracy, streak milestones

The engine reads precomputed fields on the records it is given and never
calls the mastery, retention, or streak engines directly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from loguru import logger

from learning_analytics.core.dates import epoch_millis, parse_datetime, to_iso
from learning_analytics.core.mastery import MasteryLevel, MasteryProgress
from learning_analytics.core.sessions import LearningSession, QuizAnalytics
from learning_analytics.study.retention_engine import CRITICAL_RETENTION, RetentionRecord
from learning_analytics.study.streak_engine import StreakRecord

if TYPE_CHECKING:
    from learning_analytics.config import Settings

STREAK_MILESTONES = (7, 14, 30, 60, 100, 365)

# Sessions and thresholds used by individual rules
ACCURACY_WINDOW = 5
ACCURACY_MIN_SESSIONS = 3
LOW_ACCURACY = 0.4
SLOW_QUIZ_MIN_COUNT = 2
HIGH_SKIP_MIN_SESSIONS = 3
MAX_WEAK_TOPICS = 2
STREAK_RISK_HIGH = 7
STREAK_RECORD_MIN = 5
DUE_ITEMS_MIN = 5
DUE_ITEMS_HIGH = 20
TREND_MIN_SESSIONS = 5
TREND_WINDOW = 3
TREND_MIN_IMPROVEMENT = 0.1


class RecommendationType(str, Enum):
    """Kind of recommendation."""

    REVIEW_TOPIC = "reviewTopic"
    PRACTICE_MORE = "practiceMore"
    TIME_MANAGEMENT = "timeManagement"
    ACCURACY = "accuracy"
    SKIP_PATTERN = "skipPattern"
    SUBJECT_FOCUS = "subjectFocus"
    STREAK = "streak"
    RETENTION = "retention"
    REVIEW_DIFFICULT = "reviewDifficult"
    ENCOURAGEMENT = "encouragement"


class RecommendationPriority(str, Enum):
    """Ordered urgency of a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(RecommendationPriority).index(self)


@dataclass(frozen=True)
class Recommendation:
    """A single generated recommendation."""

    id: str
    type: RecommendationType
    title: str
    description: str
    priority: RecommendationPriority
    created_at: datetime
    action_label: str | None = None
    related_topic_id: str | None = None
    expires_at: datetime | None = None
    related_data: dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "actionLabel": self.action_label,
            "relatedTopicId": self.related_topic_id,
            "createdAt": to_iso(self.created_at),
            "expiresAt": to_iso(self.expires_at),
            "relatedData": dict(self.related_data),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recommendation:
        return cls(
            id=data["id"],
            type=RecommendationType(data["type"]),
            title=data["title"],
            description=data["description"],
            priority=RecommendationPriority(data["priority"]),
            action_label=data.get("actionLabel"),
            related_topic_id=data.get("relatedTopicId"),
            created_at=parse_datetime(data["createdAt"]),
            expires_at=parse_datetime(data.get("expiresAt")),
            related_data=dict(data.get("relatedData") or {}),
        )


@dataclass(frozen=True)
class RecommendationConfig:
    """Thresholds and limits for the recommendation engine."""

    accuracy_threshold: float = 0.6
    skip_threshold: float = 0.2
    time_threshold: timedelta = timedelta(seconds=60)
    retention_threshold: float = 0.7
    max_recommendations: int = 5
    min_sessions_for_analysis: int = 3
    enabled_types: frozenset[RecommendationType] = frozenset(RecommendationType)

    def is_type_enabled(self, recommendation_type: RecommendationType) -> bool:
        return recommendation_type in self.enabled_types

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RecommendationConfig:
        from learning_analytics.config import get_settings

        settings = settings or get_settings()
        return cls(**settings.get_recommendation_config())


def _percent(value: float) -> int:
    """Whole percentage, rounding halves up."""
    return int(math.floor(value * 100 + 0.5))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


class RecommendationEngine:
    """
    Generate recommendations from learning data.

    Output is sorted by descending priority. The sort is stable, so equal
    priorities keep rule-evaluation order.
    """

    def __init__(self, config: RecommendationConfig | None = None):
        self.config = config or RecommendationConfig()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RecommendationEngine:
        return cls(RecommendationConfig.from_settings(settings))

    def analyze(
        self,
        sessions: Sequence[LearningSession] = (),
        quizzes: Sequence[QuizAnalytics] = (),
        mastery_progress: Sequence[MasteryProgress] = (),
        retention_items: Sequence[RetentionRecord] = (),
        streak: StreakRecord | None = None,
        now: datetime | None = None,
    ) -> list[Recommendation]:
        """
        Analyze all available data.

        Args:
            sessions: Learning sessions, most recent first
            quizzes: Quiz results
            mastery_progress: Per-topic mastery records
            retention_items: Retention records
            streak: Streak record, if the learner has one
            now: Reference time for ids, expiry and retrievability

        Returns:
            Recommendations sorted by priority, capped at max_recommendations
        """
        config = self.config
        moment = now or datetime.now()

        if (
            len(sessions) < config.min_sessions_for_analysis
            and len(quizzes) < config.min_sessions_for_analysis
        ):
            logger.debug(
                f"Not enough data for analysis ({len(sessions)} sessions, {len(quizzes)} quizzes)"
            )
            return [self._not_enough_data(moment)]

        recommendations: list[Recommendation] = []

        if config.is_type_enabled(RecommendationType.TIME_MANAGEMENT):
            recommendations.extend(self._analyze_time_management(quizzes, moment))

        if config.is_type_enabled(RecommendationType.ACCURACY):
            recommendations.extend(self._analyze_accuracy(sessions, moment))

        if config.is_type_enabled(RecommendationType.SKIP_PATTERN):
            recommendations.extend(self._analyze_skip_patterns(sessions, moment))

        if config.is_type_enabled(RecommendationType.SUBJECT_FOCUS):
            recommendations.extend(self._analyze_subject_performance(mastery_progress, moment))

        if config.is_type_enabled(RecommendationType.STREAK) and streak is not None:
            recommendations.extend(self._analyze_streak(streak, now, moment))

        if config.is_type_enabled(RecommendationType.RETENTION):
            recommendations.extend(self._analyze_retention(retention_items, now, moment))

        if config.is_type_enabled(RecommendationType.ENCOURAGEMENT):
            recommendations.extend(self._generate_encouragement(sessions, streak, moment))

        ranked = sorted(recommendations, key=lambda r: r.priority.rank, reverse=True)
        logger.debug(
            f"Generated {len(recommendations)} recommendations, "
            f"returning {min(len(ranked), config.max_recommendations)}"
        )
        return ranked[: config.max_recommendations]

    def analyze_quiz(self, quiz: QuizAnalytics, now: datetime | None = None) -> list[Recommendation]:
        """Immediate feedback for a single quiz."""
        config = self.config
        moment = now or datetime.now()
        recommendations = []

        average_time = quiz.average_time_per_question
        if average_time is not None and average_time > config.time_threshold:
            recommendations.append(self._time_recommendation(average_time, moment))

        if quiz.accuracy < config.accuracy_threshold:
            recommendations.append(self._accuracy_recommendation(quiz.accuracy, moment))

        if quiz.skip_rate > config.skip_threshold:
            recommendations.append(self._skip_recommendation(quiz.skip_rate, moment))

        for topic, accuracy in quiz.topic_breakdown.items():
            if accuracy < config.accuracy_threshold:
                recommendations.append(self._topic_recommendation(topic, accuracy, moment))

        return recommendations

    # =========================================================================
    # Rule groups
    # =========================================================================

    def _analyze_time_management(
        self,
        quizzes: Sequence[QuizAnalytics],
        moment: datetime,
    ) -> list[Recommendation]:
        slow_times = [
            q.average_time_per_question
            for q in quizzes
            if q.average_time_per_question is not None
            and q.average_time_per_question > self.config.time_threshold
        ]
        if len(slow_times) < SLOW_QUIZ_MIN_COUNT:
            return []

        average_ms = sum(t // timedelta(milliseconds=1) for t in slow_times) // len(slow_times)
        return [self._time_recommendation(timedelta(milliseconds=average_ms), moment)]

    def _analyze_accuracy(
        self,
        sessions: Sequence[LearningSession],
        moment: datetime,
    ) -> list[Recommendation]:
        if len(sessions) < ACCURACY_MIN_SESSIONS:
            return []

        average = _mean([s.accuracy for s in sessions[:ACCURACY_WINDOW]])
        if average >= self.config.accuracy_threshold:
            return []
        return [self._accuracy_recommendation(average, moment)]

    def _analyze_skip_patterns(
        self,
        sessions: Sequence[LearningSession],
        moment: datetime,
    ) -> list[Recommendation]:
        skip_rates = [s.skip_rate for s in sessions if s.skip_rate > self.config.skip_threshold]
        if len(skip_rates) < HIGH_SKIP_MIN_SESSIONS:
            return []
        return [self._skip_recommendation(_mean(skip_rates), moment)]

    def _analyze_subject_performance(
        self,
        mastery_progress: Sequence[MasteryProgress],
        moment: datetime,
    ) -> list[Recommendation]:
        weak_topics = [
            p for p in mastery_progress if p.level in (MasteryLevel.NOVICE, MasteryLevel.BEGINNER)
        ]
        return [
            self._topic_recommendation(p.topic_name, p.accuracy, moment, topic_id=p.topic_id)
            for p in weak_topics[:MAX_WEAK_TOPICS]
        ]

    def _analyze_streak(
        self,
        streak: StreakRecord,
        now: datetime | None,
        moment: datetime,
    ) -> list[Recommendation]:
        recommendations = []
        stamp = epoch_millis(moment)

        if not streak.has_activity_today(now) and streak.current_streak > 0:
            recommendations.append(
                Recommendation(
                    id=f"streak_risk_{stamp}",
                    type=RecommendationType.STREAK,
                    title="Keep Your Streak Alive!",
                    description=(
                        f"You have a {streak.current_streak}-day streak. "
                        "Complete a quick study session today to maintain it."
                    ),
                    priority=(
                        RecommendationPriority.HIGH
                        if streak.current_streak >= STREAK_RISK_HIGH
                        else RecommendationPriority.MEDIUM
                    ),
                    action_label="Start Session",
                    created_at=moment,
                    expires_at=moment + timedelta(hours=24),
                )
            )

        if (
            streak.current_streak >= streak.longest_streak - 1
            and streak.current_streak > STREAK_RECORD_MIN
        ):
            relation = "matching" if streak.current_streak == streak.longest_streak else "close to"
            recommendations.append(
                Recommendation(
                    id=f"streak_record_{stamp}",
                    type=RecommendationType.STREAK,
                    title="You're Close to a Record!",
                    description=(
                        f"Your current streak of {streak.current_streak} days is {relation} "
                        f"your personal best of {streak.longest_streak} days!"
                    ),
                    priority=RecommendationPriority.MEDIUM,
                    created_at=moment,
                )
            )

        return recommendations

    def _analyze_retention(
        self,
        items: Sequence[RetentionRecord],
        now: datetime | None,
        moment: datetime,
    ) -> list[Recommendation]:
        recommendations = []
        stamp = epoch_millis(moment)
        retention = [item.current_retrievability(now) for item in items]

        due_count = sum(1 for r in retention if r < self.config.retention_threshold)
        if due_count >= DUE_ITEMS_MIN:
            recommendations.append(
                Recommendation(
                    id=f"retention_due_{stamp}",
                    type=RecommendationType.RETENTION,
                    title=f"{due_count} Items Need Review",
                    description=(
                        f"You have {due_count} items with declining retention. "
                        "Review them soon to maintain your knowledge."
                    ),
                    priority=(
                        RecommendationPriority.HIGH
                        if due_count >= DUE_ITEMS_HIGH
                        else RecommendationPriority.MEDIUM
                    ),
                    action_label="Start Review",
                    created_at=moment,
                    related_data={"dueCount": due_count},
                )
            )

        # Critical items are counted again here even when already due
        critical_count = sum(1 for r in retention if r < CRITICAL_RETENTION)
        if critical_count:
            recommendations.append(
                Recommendation(
                    id=f"retention_critical_{stamp}",
                    type=RecommendationType.REVIEW_DIFFICULT,
                    title=f"Critical: {critical_count} Items at Risk",
                    description=(
                        f"{critical_count} items have very low retention and "
                        "may be forgotten soon. Prioritize reviewing these."
                    ),
                    priority=RecommendationPriority.CRITICAL,
                    action_label="Review Now",
                    created_at=moment,
                    related_data={"criticalCount": critical_count},
                )
            )

        return recommendations

    def _generate_encouragement(
        self,
        sessions: Sequence[LearningSession],
        streak: StreakRecord | None,
        moment: datetime,
    ) -> list[Recommendation]:
        recommendations = []
        stamp = epoch_millis(moment)

        if len(sessions) >= TREND_MIN_SESSIONS:
            recent = sessions[:TREND_WINDOW]
            older = sessions[TREND_WINDOW : TREND_WINDOW * 2]
            if older:
                recent_average = _mean([s.accuracy for s in recent])
                older_average = _mean([s.accuracy for s in older])
                if recent_average > older_average + TREND_MIN_IMPROVEMENT:
                    improvement = _percent(recent_average - older_average)
                    recommendations.append(
                        Recommendation(
                            id=f"encouragement_improvement_{stamp}",
                            type=RecommendationType.ENCOURAGEMENT,
                            title="Great Progress!",
                            description=(
                                f"Your accuracy has improved by {improvement}% recently. "
                                "Keep up the excellent work!"
                            ),
                            priority=RecommendationPriority.LOW,
                            created_at=moment,
                        )
                    )

        if streak is not None and streak.current_streak in STREAK_MILESTONES:
            milestone = streak.current_streak
            recommendations.append(
                Recommendation(
                    id=f"encouragement_milestone_{stamp}",
                    type=RecommendationType.ENCOURAGEMENT,
                    title=f"{milestone} Day Streak!",
                    description=(
                        f"Congratulations! You've maintained a {milestone}-day "
                        "learning streak. This is a fantastic achievement!"
                    ),
                    priority=RecommendationPriority.LOW,
                    created_at=moment,
                )
            )

        return recommendations

    # =========================================================================
    # Builders
    # =========================================================================

    def _not_enough_data(self, moment: datetime) -> Recommendation:
        return Recommendation(
            id=f"not_enough_data_{epoch_millis(moment)}",
            type=RecommendationType.ENCOURAGEMENT,
            title="Keep Learning!",
            description=(
                "Complete a few more sessions and we'll have personalized "
                "recommendations for you."
            ),
            priority=RecommendationPriority.LOW,
            created_at=moment,
        )

    def _time_recommendation(self, average_time: timedelta, moment: datetime) -> Recommendation:
        average_seconds = int(average_time.total_seconds())
        threshold_seconds = int(self.config.time_threshold.total_seconds())
        return Recommendation(
            id=f"time_{epoch_millis(moment)}",
            type=RecommendationType.TIME_MANAGEMENT,
            title="Improve Your Pace",
            description=(
                f"Your average response time ({average_seconds}s) is above "
                f"the recommended {threshold_seconds}s. Try to read questions "
                "more quickly and trust your first instinct."
            ),
            priority=RecommendationPriority.MEDIUM,
            created_at=moment,
            related_data={
                "averageTimeSeconds": average_seconds,
                "thresholdSeconds": threshold_seconds,
            },
        )

    def _accuracy_recommendation(self, accuracy: float, moment: datetime) -> Recommendation:
        threshold = self.config.accuracy_threshold
        return Recommendation(
            id=f"accuracy_{epoch_millis(moment)}",
            type=RecommendationType.ACCURACY,
            title="Focus on Accuracy",
            description=(
                f"Your recent accuracy ({_percent(accuracy)}%) is below "
                f"the target of {_percent(threshold)}%. Consider reviewing "
                "the material before attempting more questions."
            ),
            priority=(
                RecommendationPriority.HIGH
                if accuracy < LOW_ACCURACY
                else RecommendationPriority.MEDIUM
            ),
            action_label="Review Material",
            created_at=moment,
            related_data={"accuracy": accuracy, "threshold": threshold},
        )

    def _skip_recommendation(self, skip_rate: float, moment: datetime) -> Recommendation:
        return Recommendation(
            id=f"skip_{epoch_millis(moment)}",
            type=RecommendationType.SKIP_PATTERN,
            title="Reduce Skipping",
            description=(
                f"You're skipping {_percent(skip_rate)}% of questions. "
                "Try to attempt more questions, even if you're unsure - "
                "it helps reinforce your learning."
            ),
            priority=RecommendationPriority.MEDIUM,
            created_at=moment,
            related_data={"skipRate": skip_rate, "threshold": self.config.skip_threshold},
        )

    def _topic_recommendation(
        self,
        topic: str,
        accuracy: float,
        moment: datetime,
        topic_id: str | None = None,
    ) -> Recommendation:
        return Recommendation(
            id=f"topic_{topic_id or topic}_{epoch_millis(moment)}",
            type=RecommendationType.SUBJECT_FOCUS,
            title=f"Focus on {topic}",
            description=(
                f"Your performance in {topic} ({_percent(accuracy)}%) "
                "needs improvement. Consider dedicating more study time to this area."
            ),
            priority=(
                RecommendationPriority.HIGH
                if accuracy < LOW_ACCURACY
                else RecommendationPriority.MEDIUM
            ),
            action_label=f"Study {topic}",
            related_topic_id=topic_id,
            created_at=moment,
            related_data={"topic": topic, "accuracy": accuracy},
        )
