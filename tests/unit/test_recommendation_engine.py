"""
Unit tests for RecommendationEngine.

Tests:
- Not-enough-data guard
- Each rule group (time, accuracy, skips, subjects, streak, retention, encouragement)
- Priority ordering, result cap and disabled types
- Single-quiz feedback
- Recommendation records and config from settings
"""

from datetime import datetime, timedelta

import pytest

from learning_analytics.adaptive.recommendation_engine import (
    Recommendation,
    RecommendationConfig,
    RecommendationEngine,
    RecommendationPriority,
    RecommendationType,
)
from learning_analytics.config import Settings
from learning_analytics.core.dates import epoch_millis
from learning_analytics.core.mastery import MasteryProgress
from learning_analytics.core.sessions import QuizAnalytics
from learning_analytics.study.retention_engine import RetentionRecord
from learning_analytics.study.streak_engine import StreakRecord


@pytest.fixture
def good_sessions(make_session):
    return [make_session(session_id=f"s{i}") for i in range(3)]


@pytest.fixture
def make_quiz(now):
    def _make(correct=8, wrong=2, skipped=0, seconds=(), topics=None):
        return QuizAnalytics(
            quiz_id="q1",
            total_questions=correct + wrong + skipped,
            correct_answers=correct,
            wrong_answers=wrong,
            skipped_questions=skipped,
            completed_at=now,
            question_times=tuple(timedelta(seconds=s) for s in seconds),
            topic_breakdown=topics or {},
        )

    return _make


def forgotten_items(now, count):
    """Items last seen two days ago with one-day stability (about 13.5% retention)."""
    return [
        RetentionRecord(item_id=f"i{i}", created_at=now - timedelta(days=2), stability=1.0)
        for i in range(count)
    ]


def types_of(recommendations):
    return [r.type for r in recommendations]


class TestNotEnoughData:
    """Tests for the minimum-data guard."""

    def test_no_data(self, recommendation_engine, now):
        result = recommendation_engine.analyze(now=now)

        assert len(result) == 1
        rec = result[0]
        assert rec.type == RecommendationType.ENCOURAGEMENT
        assert rec.priority == RecommendationPriority.LOW
        assert rec.title == "Keep Learning!"
        assert rec.id == f"not_enough_data_{epoch_millis(now)}"
        assert rec.created_at == now

    def test_guard_ignores_other_inputs(self, recommendation_engine, make_session, now):
        result = recommendation_engine.analyze(
            sessions=[make_session(correct=0, wrong=10)] * 2,
            retention_items=forgotten_items(now, 10),
            now=now,
        )
        assert [r.title for r in result] == ["Keep Learning!"]

    def test_quizzes_alone_are_enough(self, recommendation_engine, make_quiz, now):
        result = recommendation_engine.analyze(quizzes=[make_quiz()] * 3, now=now)
        assert result == []


class TestRuleGroups:
    """Tests for individual rule groups."""

    def test_good_learner_gets_nothing(self, recommendation_engine, good_sessions, now):
        assert recommendation_engine.analyze(sessions=good_sessions, now=now) == []

    def test_slow_quizzes(self, recommendation_engine, good_sessions, make_quiz, now):
        quizzes = [make_quiz(seconds=(90, 70)), make_quiz(seconds=(90, 70)), make_quiz(seconds=(10,))]
        result = recommendation_engine.analyze(sessions=good_sessions, quizzes=quizzes, now=now)

        assert types_of(result) == [RecommendationType.TIME_MANAGEMENT]
        assert result[0].priority == RecommendationPriority.MEDIUM
        assert result[0].related_data == {"averageTimeSeconds": 80, "thresholdSeconds": 60}
        assert "(80s)" in result[0].description

    def test_single_slow_quiz_ignored(self, recommendation_engine, good_sessions, make_quiz, now):
        result = recommendation_engine.analyze(
            sessions=good_sessions, quizzes=[make_quiz(seconds=(120,))], now=now
        )
        assert result == []

    def test_low_accuracy(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=5, wrong=5)] * 3
        result = recommendation_engine.analyze(sessions=sessions, now=now)

        assert types_of(result) == [RecommendationType.ACCURACY]
        assert result[0].priority == RecommendationPriority.MEDIUM
        assert result[0].action_label == "Review Material"
        assert "(50%)" in result[0].description
        assert "target of 60%" in result[0].description

    def test_very_low_accuracy_is_high(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=3, wrong=7)] * 3
        result = recommendation_engine.analyze(sessions=sessions, now=now)
        assert result[0].priority == RecommendationPriority.HIGH

    def test_accuracy_uses_five_most_recent(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=9, wrong=1)] * 5 + [make_session(correct=0, wrong=10)] * 5
        result = recommendation_engine.analyze(sessions=sessions, now=now)
        assert RecommendationType.ACCURACY not in types_of(result)

    def test_skip_pattern(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=7, wrong=0, skipped=3)] * 3
        result = recommendation_engine.analyze(sessions=sessions, now=now)

        assert types_of(result) == [RecommendationType.SKIP_PATTERN]
        assert "skipping 30%" in result[0].description

    def test_two_skipping_sessions_ignored(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=7, wrong=0, skipped=3)] * 2 + [make_session()]
        result = recommendation_engine.analyze(sessions=sessions, now=now)
        assert result == []

    def test_weak_subjects_capped_at_two(self, recommendation_engine, good_sessions, now):
        progress = [
            MasteryProgress("t1", "Subnetting", 0.1, 10, 2),
            MasteryProgress("t2", "VLANs", 0.3, 10, 5),
            MasteryProgress("t3", "ACLs", 0.15, 10, 1),
            MasteryProgress("t4", "OSPF", 0.7, 10, 8),
        ]
        result = recommendation_engine.analyze(
            sessions=good_sessions, mastery_progress=progress, now=now
        )

        assert [r.title for r in result] == ["Focus on Subnetting", "Focus on VLANs"]
        assert [r.priority for r in result] == [
            RecommendationPriority.HIGH,
            RecommendationPriority.MEDIUM,
        ]
        assert result[0].related_topic_id == "t1"
        assert result[0].id == f"topic_t1_{epoch_millis(now)}"

    def test_streak_at_risk(self, recommendation_engine, good_sessions, now):
        streak = StreakRecord(
            current_streak=8, longest_streak=20, last_activity_date=now - timedelta(days=1)
        )
        result = recommendation_engine.analyze(sessions=good_sessions, streak=streak, now=now)

        assert [r.title for r in result] == ["Keep Your Streak Alive!"]
        assert result[0].priority == RecommendationPriority.HIGH
        assert result[0].expires_at == now + timedelta(hours=24)

    def test_short_streak_at_risk_is_medium(self, recommendation_engine, good_sessions, now):
        streak = StreakRecord(
            current_streak=3, longest_streak=10, last_activity_date=now - timedelta(days=1)
        )
        result = recommendation_engine.analyze(sessions=good_sessions, streak=streak, now=now)
        assert result[0].priority == RecommendationPriority.MEDIUM

    def test_near_record_and_milestone(self, recommendation_engine, good_sessions, now):
        streak = StreakRecord(
            current_streak=7, longest_streak=7, last_activity_date=now - timedelta(hours=2)
        )
        result = recommendation_engine.analyze(sessions=good_sessions, streak=streak, now=now)

        assert [r.title for r in result] == ["You're Close to a Record!", "7 Day Streak!"]
        assert "matching your personal best of 7 days" in result[0].description

    def test_retention_due_and_critical(self, recommendation_engine, good_sessions, now):
        result = recommendation_engine.analyze(
            sessions=good_sessions, retention_items=forgotten_items(now, 5), now=now
        )

        assert types_of(result) == [
            RecommendationType.REVIEW_DIFFICULT,
            RecommendationType.RETENTION,
        ]
        assert result[0].priority == RecommendationPriority.CRITICAL
        assert result[0].related_data == {"criticalCount": 5}
        assert result[1].title == "5 Items Need Review"
        assert result[1].priority == RecommendationPriority.MEDIUM

    def test_many_due_items_is_high(self, recommendation_engine, good_sessions, now):
        result = recommendation_engine.analyze(
            sessions=good_sessions, retention_items=forgotten_items(now, 20), now=now
        )
        due = [r for r in result if r.type == RecommendationType.RETENTION]
        assert due[0].priority == RecommendationPriority.HIGH

    def test_single_critical_item(self, recommendation_engine, good_sessions, now):
        result = recommendation_engine.analyze(
            sessions=good_sessions, retention_items=forgotten_items(now, 1), now=now
        )
        assert [r.title for r in result] == ["Critical: 1 Items at Risk"]

    def test_improvement_encouragement(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=9, wrong=1)] * 3 + [make_session(correct=6, wrong=4)] * 3
        result = recommendation_engine.analyze(sessions=sessions, now=now)

        assert [r.title for r in result] == ["Great Progress!"]
        assert "improved by 30%" in result[0].description


class TestOrderingAndConfig:
    """Tests for sorting, limits and type filtering."""

    def test_sorted_by_priority(self, recommendation_engine, make_session, now):
        sessions = [make_session(correct=3, wrong=7)] * 3
        result = recommendation_engine.analyze(
            sessions=sessions, retention_items=forgotten_items(now, 5), now=now
        )

        assert [r.priority for r in result] == [
            RecommendationPriority.CRITICAL,
            RecommendationPriority.HIGH,
            RecommendationPriority.MEDIUM,
        ]

    def test_equal_priorities_keep_rule_order(
        self, recommendation_engine, make_session, make_quiz, now
    ):
        sessions = [make_session(correct=5, wrong=2, skipped=3)] * 3
        quizzes = [make_quiz(seconds=(90, 70))] * 2
        result = recommendation_engine.analyze(sessions=sessions, quizzes=quizzes, now=now)

        # 50% accuracy and 30% skips in every session, two slow quizzes
        assert types_of(result) == [
            RecommendationType.TIME_MANAGEMENT,
            RecommendationType.ACCURACY,
            RecommendationType.SKIP_PATTERN,
        ]
        assert {r.priority for r in result} == {RecommendationPriority.MEDIUM}

    def test_capped_at_max(self, make_session, now):
        engine = RecommendationEngine(RecommendationConfig(max_recommendations=1))
        sessions = [make_session(correct=3, wrong=7)] * 3
        result = engine.analyze(sessions=sessions, retention_items=forgotten_items(now, 5), now=now)

        assert types_of(result) == [RecommendationType.REVIEW_DIFFICULT]

    def test_disabled_types_skipped(self, make_session, now):
        config = RecommendationConfig(enabled_types=frozenset({RecommendationType.ACCURACY}))
        sessions = [make_session(correct=3, wrong=7)] * 3
        result = RecommendationEngine(config).analyze(
            sessions=sessions, retention_items=forgotten_items(now, 5), now=now
        )

        assert types_of(result) == [RecommendationType.ACCURACY]

    def test_priority_rank(self):
        ranks = [p.rank for p in RecommendationPriority]
        assert ranks == [0, 1, 2, 3]
        assert RecommendationPriority.CRITICAL.rank > RecommendationPriority.HIGH.rank

    def test_config_from_settings(self):
        settings = Settings(
            recommendation_max_results=3,
            recommendation_time_threshold_seconds=45,
            recommendation_disabled_types="streak, encouragement",
        )
        config = RecommendationConfig.from_settings(settings)

        assert config.max_recommendations == 3
        assert config.time_threshold == timedelta(seconds=45)
        assert not config.is_type_enabled(RecommendationType.STREAK)
        assert not config.is_type_enabled(RecommendationType.ENCOURAGEMENT)
        assert config.is_type_enabled(RecommendationType.RETENTION)

    def test_engine_from_settings(self):
        engine = RecommendationEngine.from_settings(Settings(recommendation_accuracy_threshold=0.8))
        assert engine.config.accuracy_threshold == 0.8


class TestAnalyzeQuiz:
    """Tests for single-quiz feedback."""

    def test_struggling_quiz(self, recommendation_engine, make_quiz, now):
        quiz = make_quiz(
            correct=5,
            wrong=2,
            skipped=3,
            seconds=(90,) * 10,
            topics={"OSPF": 0.3, "VLAN": 0.9},
        )
        result = recommendation_engine.analyze_quiz(quiz, now=now)

        assert types_of(result) == [
            RecommendationType.TIME_MANAGEMENT,
            RecommendationType.ACCURACY,
            RecommendationType.SKIP_PATTERN,
            RecommendationType.SUBJECT_FOCUS,
        ]
        assert result[1].priority == RecommendationPriority.MEDIUM
        assert result[3].title == "Focus on OSPF"
        assert result[3].priority == RecommendationPriority.HIGH
        assert result[3].related_topic_id is None

    def test_clean_quiz(self, recommendation_engine, make_quiz, now):
        assert recommendation_engine.analyze_quiz(make_quiz(correct=10, wrong=0), now=now) == []


class TestRecommendationRecord:
    """Tests for the recommendation value type."""

    @pytest.fixture
    def recommendation(self, now):
        return Recommendation(
            id="streak_risk_1",
            type=RecommendationType.STREAK,
            title="Keep Your Streak Alive!",
            description="Study today.",
            priority=RecommendationPriority.HIGH,
            created_at=now,
            action_label="Start Session",
            expires_at=now + timedelta(hours=24),
            related_data={"streak": 8},
        )

    def test_expiry(self, recommendation, now):
        assert not recommendation.is_expired(now)
        assert recommendation.is_expired(now + timedelta(hours=24))

    def test_no_expiry(self, now):
        rec = Recommendation("x", RecommendationType.ACCURACY, "t", "d", RecommendationPriority.LOW, now)
        assert not rec.is_expired(datetime(2099, 1, 1))

    def test_dict_round_trip(self, recommendation):
        data = recommendation.to_dict()

        assert data["type"] == "streak"
        assert data["priority"] == "high"
        assert data["actionLabel"] == "Start Session"
        assert data["expiresAt"] == "2024-03-14T15:30:00"
        assert Recommendation.from_dict(data) == recommendation
