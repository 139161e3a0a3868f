"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from learning_analytics.adaptive.recommendation_engine import RecommendationEngine  # noqa: E402
from learning_analytics.core.mastery import MasteryEngine  # noqa: E402
from learning_analytics.core.sessions import LearningSession  # noqa: E402
from learning_analytics.study.retention_engine import RetentionEngine  # noqa: E402
from learning_analytics.study.streak_engine import StreakEngine  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time (a Wednesday afternoon)."""
    return datetime(2024, 3, 13, 15, 30)


@pytest.fixture
def mastery_engine():
    return MasteryEngine()


@pytest.fixture
def retention_engine():
    return RetentionEngine()


@pytest.fixture
def streak_engine():
    return StreakEngine()


@pytest.fixture
def recommendation_engine():
    return RecommendationEngine()


@pytest.fixture
def make_session(now):
    """Factory for learning sessions ending at the reference time."""

    def _make(
        correct: int = 8,
        wrong: int = 2,
        skipped: int = 0,
        session_id: str = "s1",
        minutes: int = 20,
    ) -> LearningSession:
        return LearningSession(
            id=session_id,
            start_time=now - timedelta(minutes=minutes),
            end_time=now,
            questions_attempted=correct + wrong + skipped,
            correct_answers=correct,
            wrong_answers=wrong,
            skipped_questions=skipped,
        )

    return _make
