"""
Core Mastery Module.

Scores a learner's competence in a topic from a stream of right/wrong
attempts.

Design:
- MasteryLevel: Enum for categorizing mastery scores
- TimedAttempt: Optional timing pair used for time-adjusted credit
- MasteryEngine: Blended simple-average/EMA scoring with inactivity decay
- MasteryProgress: Per-topic progress record read by the recommendation engine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from loguru import logger

from learning_analytics.core.dates import parse_datetime, to_iso, whole_days

if TYPE_CHECKING:
    from learning_analytics.config import Settings

# Upper bound on simulated attempts in estimate_attempts_to_target
MAX_ESTIMATE_ITERATIONS = 100

# Floor kept after decay so a practiced topic never drops to zero
DECAY_FLOOR = 0.1


class MasteryLevel(str, Enum):
    """
    Mastery level categorization.

    Five ordered levels, each covering a 0.2-wide band of the 0-1 score.
    Lower bounds are inclusive.
    """

    NOVICE = "novice"  # 0-19%
    BEGINNER = "beginner"  # 20-39%
    INTERMEDIATE = "intermediate"  # 40-59%
    ADVANCED = "advanced"  # 60-79%
    EXPERT = "expert"  # 80-100%

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        """
        Convert a 0-1 mastery score to a level.

        Args:
            score: Mastery score between 0 and 1

        Returns:
            Corresponding MasteryLevel
        """
        for level in reversed(list(cls)):
            if score >= level.min_threshold:
                return level
        return cls.NOVICE

    @property
    def rank(self) -> int:
        """Numeric rank of the level (0-4)."""
        return _LEVEL_TABLE[self][0]

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return _LEVEL_TABLE[self][1]

    @property
    def min_threshold(self) -> float:
        return _LEVEL_TABLE[self][2]

    @property
    def max_threshold(self) -> float:
        return _LEVEL_TABLE[self][3]

    @property
    def next_level(self) -> MasteryLevel | None:
        """The level above this one, or None at expert."""
        levels = list(MasteryLevel)
        if self.rank + 1 >= len(levels):
            return None
        return levels[self.rank + 1]

    def progress_in_level(self, score: float) -> float:
        """Progress within this level's band (0.0 to 1.0)."""
        if score < self.min_threshold:
            return 0.0
        if score >= self.max_threshold:
            return 1.0
        return (score - self.min_threshold) / (self.max_threshold - self.min_threshold)


# level -> (rank, display name, lower threshold, upper threshold)
_LEVEL_TABLE: dict[MasteryLevel, tuple[int, str, float, float]] = {
    MasteryLevel.NOVICE: (0, "Novice", 0.0, 0.2),
    MasteryLevel.BEGINNER: (1, "Beginner", 0.2, 0.4),
    MasteryLevel.INTERMEDIATE: (2, "Intermediate", 0.4, 0.6),
    MasteryLevel.ADVANCED: (3, "Advanced", 0.6, 0.8),
    MasteryLevel.EXPERT: (4, "Expert", 0.8, 1.0),
}


@dataclass(frozen=True)
class TimedAttempt:
    """Time taken on an attempt together with the time it was expected to take."""

    time_taken: timedelta
    expected_time: timedelta

    @property
    def ratio(self) -> float:
        expected = self.expected_time.total_seconds()
        if expected <= 0:
            return float("inf")
        return self.time_taken.total_seconds() / expected


class MasteryEngine:
    """
    Mastery scoring with a simple-average bootstrap and EMA afterwards.

    Formula (after the bootstrap phase):
        new_score = alpha × observation + (1 − alpha) × current_score

    Scores decay multiplicatively once a topic goes unpracticed for longer
    than the decay period.
    """

    def __init__(
        self,
        alpha: float = 0.3,
        min_attempts: int = 3,
        decay_factor: float = 0.95,
        decay_period_days: int = 7,
    ):
        """
        Initialize engine.

        Args:
            alpha: EMA smoothing weight in (0, 1]; higher favours recent attempts
            min_attempts: Attempts scored by simple average before EMA applies
            decay_factor: Multiplicative decay per overdue day
            decay_period_days: Days without practice before decay starts
        """
        self.alpha = alpha
        self.min_attempts = min_attempts
        self.decay_factor = decay_factor
        self.decay_period_days = decay_period_days

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MasteryEngine:
        """Build an engine from application settings."""
        from learning_analytics.config import get_settings

        settings = settings or get_settings()
        return cls(**settings.get_mastery_config())

    def score_after_attempt(
        self,
        current_score: float,
        was_correct: bool,
        total_attempts: int,
        timing: TimedAttempt | None = None,
    ) -> float:
        """
        Calculate the new mastery score after an attempt.

        Args:
            current_score: Current mastery score (0-1), not validated
            was_correct: Whether the attempt was correct
            total_attempts: Total attempts including this one
            timing: Optional timing pair; only correct answers are time-adjusted

        Returns:
            New mastery score
        """
        if total_attempts <= self.min_attempts:
            return self._simple_average(current_score, was_correct, total_attempts)

        observation = 1.0 if was_correct else 0.0
        if timing is not None and was_correct:
            observation = self._time_adjusted_credit(timing)

        return self.alpha * observation + (1 - self.alpha) * current_score

    def decay(
        self,
        current_score: float,
        last_attempt_date: datetime,
        current_date: datetime | None = None,
    ) -> float:
        """
        Apply inactivity decay to a score.

        Returns the score unchanged within the decay period, otherwise
        score × decay_factor^overdue_days clamped to [0.1, 1.0].
        """
        now = current_date or datetime.now()
        overdue_days = whole_days(now - last_attempt_date) - self.decay_period_days

        if overdue_days <= 0:
            return current_score

        decayed = current_score * self.decay_factor**overdue_days
        return min(max(decayed, DECAY_FLOOR), 1.0)

    def score_from_batch(
        self,
        outcomes: Sequence[bool],
        weights: Sequence[float] | None = None,
    ) -> float:
        """
        Calculate mastery from a batch of outcomes, oldest first.

        Default weights are 1.5^index so later attempts count more. An empty
        batch or one whose weights sum to zero scores 0.0.

        Raises:
            ValueError: If weights are given with a different length
        """
        if not outcomes:
            return 0.0

        if weights is not None and len(weights) != len(outcomes):
            raise ValueError("Weights length must match attempts length")

        if weights is None:
            weights = [1.5**i for i in range(len(outcomes))]

        weighted_sum = 0.0
        total_weight = 0.0
        for outcome, weight in zip(outcomes, weights):
            weighted_sum += (1.0 if outcome else 0.0) * weight
            total_weight += weight

        if total_weight == 0:
            return 0.0
        return weighted_sum / total_weight

    def estimate_attempts_to_target(self, current_score: float, target_score: float) -> int:
        """
        Estimate consecutive correct answers needed to reach a target score.

        Returns:
            0 if already at target, -1 if the target exceeds 1.0, otherwise
            the simulated count capped at MAX_ESTIMATE_ITERATIONS
        """
        if current_score >= target_score:
            return 0
        if target_score > 1.0:
            return -1

        score = current_score
        attempts = 0
        while score < target_score and attempts < MAX_ESTIMATE_ITERATIONS:
            score = self.alpha * 1.0 + (1 - self.alpha) * score
            attempts += 1

        if score < target_score:
            logger.debug(
                f"Target {target_score:.3f} not reached within "
                f"{MAX_ESTIMATE_ITERATIONS} simulated attempts"
            )
        return attempts

    def level_for_score(self, score: float) -> MasteryLevel:
        """Get mastery level from score (0-1)."""
        return MasteryLevel.from_score(score)

    def progress_to_next_level(self, score: float) -> float:
        """Progress within the current level toward the next (0-1)."""
        return MasteryLevel.from_score(score).progress_in_level(score)

    def _simple_average(
        self,
        current_score: float,
        was_correct: bool,
        total_attempts: int,
    ) -> float:
        outcome = 1.0 if was_correct else 0.0
        if total_attempts == 1:
            return outcome
        return (current_score * (total_attempts - 1) + outcome) / total_attempts

    def _time_adjusted_credit(self, timing: TimedAttempt) -> float:
        ratio = timing.ratio
        if ratio <= 1.0:
            return 1.0
        if ratio <= 2.0:
            return 1.0 - (ratio - 1.0) * 0.3
        return 0.4


def mastery_score_from_outcomes(
    outcomes: Sequence[bool],
    engine: MasteryEngine | None = None,
) -> float:
    """Score a list of outcomes with default recency weights."""
    return (engine or MasteryEngine()).score_from_batch(outcomes)


# ============================================================================
# Progress records
# ============================================================================


@dataclass(frozen=True)
class MasteryHistoryPoint:
    """A single point in mastery score history."""

    date: datetime
    score: float

    @property
    def level(self) -> MasteryLevel:
        return MasteryLevel.from_score(self.score)

    def to_dict(self) -> dict[str, Any]:
        return {"date": to_iso(self.date), "score": self.score}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MasteryHistoryPoint:
        return cls(date=parse_datetime(data["date"]), score=float(data["score"]))


@dataclass(frozen=True)
class MasteryProgress:
    """
    Mastery progress for a single topic.

    Callers own the topic -> score mapping; the engine never stores it.
    """

    topic_id: str
    topic_name: str
    current_score: float
    total_attempts: int
    correct_attempts: int
    last_attempt_date: datetime | None = None
    score_history: tuple[MasteryHistoryPoint, ...] = field(default_factory=tuple)

    @property
    def level(self) -> MasteryLevel:
        return MasteryLevel.from_score(self.current_score)

    @property
    def progress_in_level(self) -> float:
        return self.level.progress_in_level(self.current_score)

    @property
    def accuracy(self) -> float:
        """Correct attempts over total attempts (0.0 when unattempted)."""
        if self.total_attempts == 0:
            return 0.0
        return self.correct_attempts / self.total_attempts

    @property
    def points_to_next_level(self) -> float | None:
        """Score still needed for the next level, None at expert."""
        next_level = self.level.next_level
        if next_level is None:
            return None
        return next_level.min_threshold - self.current_score

    def to_dict(self) -> dict[str, Any]:
        return {
            "topicId": self.topic_id,
            "topicName": self.topic_name,
            "currentScore": self.current_score,
            "totalAttempts": self.total_attempts,
            "correctAttempts": self.correct_attempts,
            "lastAttemptDate": to_iso(self.last_attempt_date),
            "scoreHistory": [point.to_dict() for point in self.score_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MasteryProgress:
        return cls(
            topic_id=data["topicId"],
            topic_name=data["topicName"],
            current_score=float(data["currentScore"]),
            total_attempts=int(data["totalAttempts"]),
            correct_attempts=int(data["correctAttempts"]),
            last_attempt_date=parse_datetime(data.get("lastAttemptDate")),
            score_history=tuple(
                MasteryHistoryPoint.from_dict(point) for point in data.get("scoreHistory") or []
            ),
        )
