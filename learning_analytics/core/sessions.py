"""
Learning session and quiz records.

These are the activity summaries the recommendation engine reads. Rates
resolve to 0.0 when there are no questions rather than dividing by zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from learning_analytics.core.dates import from_millis, parse_datetime, to_iso, to_millis


@dataclass(frozen=True)
class LearningSession:
    """A single study session."""

    id: str
    start_time: datetime
    end_time: datetime
    questions_attempted: int
    correct_answers: int
    wrong_answers: int
    skipped_questions: int
    subject_id: str | None = None
    topic_id: str | None = None
    average_time_per_question: timedelta | None = None
    xp_earned: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def accuracy(self) -> float:
        """Correct answers over questions attempted (0-1)."""
        if self.questions_attempted == 0:
            return 0.0
        return self.correct_answers / self.questions_attempted

    @property
    def completion_rate(self) -> float:
        """Answered (correct or wrong) over questions attempted."""
        if self.questions_attempted == 0:
            return 0.0
        return (self.correct_answers + self.wrong_answers) / self.questions_attempted

    @property
    def skip_rate(self) -> float:
        if self.questions_attempted == 0:
            return 0.0
        return self.skipped_questions / self.questions_attempted

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "questionsAttempted": self.questions_attempted,
            "correctAnswers": self.correct_answers,
            "wrongAnswers": self.wrong_answers,
            "skippedQuestions": self.skipped_questions,
            "subjectId": self.subject_id,
            "topicId": self.topic_id,
            "averageTimePerQuestion": to_millis(self.average_time_per_question),
            "xpEarned": self.xp_earned,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LearningSession:
        return cls(
            id=data["id"],
            start_time=parse_datetime(data["startTime"]),
            end_time=parse_datetime(data["endTime"]),
            questions_attempted=int(data["questionsAttempted"]),
            correct_answers=int(data["correctAnswers"]),
            wrong_answers=int(data["wrongAnswers"]),
            skipped_questions=int(data["skippedQuestions"]),
            subject_id=data.get("subjectId"),
            topic_id=data.get("topicId"),
            average_time_per_question=from_millis(data.get("averageTimePerQuestion")),
            xp_earned=int(data.get("xpEarned") or 0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class QuizAnalytics:
    """
    Performance metrics for one quiz.

    topic_breakdown and difficulty_breakdown map a topic name or difficulty
    label to accuracy (0-1).
    """

    quiz_id: str
    total_questions: int
    correct_answers: int
    wrong_answers: int
    skipped_questions: int
    completed_at: datetime
    time_taken: timedelta | None = None
    question_times: tuple[timedelta, ...] = field(default_factory=tuple)
    topic_breakdown: dict[str, float] = field(default_factory=dict)
    difficulty_breakdown: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_answers / self.total_questions

    @property
    def percentage_score(self) -> float:
        return self.accuracy * 100

    @property
    def skip_rate(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.skipped_questions / self.total_questions

    @property
    def error_rate(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.wrong_answers / self.total_questions

    @property
    def average_time_per_question(self) -> timedelta | None:
        """
        Mean time per question in whole milliseconds.

        Uses per-question times when present, otherwise spreads the total
        time evenly over the questions. None when neither is available.
        """
        if not self.question_times:
            if self.time_taken is not None and self.total_questions > 0:
                return timedelta(milliseconds=to_millis(self.time_taken) // self.total_questions)
            return None
        total_ms = sum(to_millis(t) for t in self.question_times)
        return timedelta(milliseconds=total_ms // len(self.question_times))

    @property
    def fastest_time(self) -> timedelta | None:
        return min(self.question_times) if self.question_times else None

    @property
    def slowest_time(self) -> timedelta | None:
        return max(self.question_times) if self.question_times else None

    @property
    def grade(self) -> str:
        """Letter grade from the percentage score."""
        score = self.percentage_score
        if score >= 90:
            return "A"
        if score >= 80:
            return "B"
        if score >= 70:
            return "C"
        if score >= 60:
            return "D"
        return "F"

    def to_dict(self) -> dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "wrongAnswers": self.wrong_answers,
            "skippedQuestions": self.skipped_questions,
            "completedAt": to_iso(self.completed_at),
            "timeTaken": to_millis(self.time_taken),
            "questionTimes": [to_millis(t) for t in self.question_times],
            "topicBreakdown": dict(self.topic_breakdown),
            "difficultyBreakdown": dict(self.difficulty_breakdown),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizAnalytics:
        return cls(
            quiz_id=data["quizId"],
            total_questions=int(data["totalQuestions"]),
            correct_answers=int(data["correctAnswers"]),
            wrong_answers=int(data["wrongAnswers"]),
            skipped_questions=int(data["skippedQuestions"]),
            completed_at=parse_datetime(data["completedAt"]),
            time_taken=from_millis(data.get("timeTaken")),
            question_times=tuple(from_millis(ms) for ms in data.get("questionTimes") or []),
            topic_breakdown={k: float(v) for k, v in (data.get("topicBreakdown") or {}).items()},
            difficulty_breakdown={
                k: float(v) for k, v in (data.get("difficultyBreakdown") or {}).items()
            },
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class QuestionPerformance:
    """Outcome of a single question within a quiz."""

    question_id: str
    is_correct: bool
    time_taken: timedelta
    was_skipped: bool = False
    topic: str | None = None
    difficulty: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "timeTaken": to_millis(self.time_taken),
            "wasSkipped": self.was_skipped,
            "topic": self.topic,
            "difficulty": self.difficulty,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestionPerformance:
        return cls(
            question_id=data["questionId"],
            is_correct=bool(data["isCorrect"]),
            time_taken=from_millis(data["timeTaken"]),
            was_skipped=bool(data.get("wasSkipped", False)),
            topic=data.get("topic"),
            difficulty=data.get("difficulty"),
        )
