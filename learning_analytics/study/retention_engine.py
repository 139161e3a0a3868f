"""
Retention Engine - Forgetting Curve Modelling and Review Scheduling.

Models memory decay with the Ebbinghaus forgetting curve:

    R = e^(-t/S)

Where:
    R = retrievability (probability of recall)
    t = time since last review in days
    S = stability in days

Stability grows after successful reviews and resets after a failure.
Items that are harder grow stability more slowly. The engine only returns
new values; callers decide whether to persist them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from loguru import logger

from learning_analytics.core.dates import (
    days_to_hours_delta,
    fractional_days_from_hours,
    parse_datetime,
    to_iso,
)

if TYPE_CHECKING:
    from learning_analytics.config import Settings

# Review ratings
RATING_FAIL = 1  # Complete failure
RATING_HARD = 2  # Correct but difficult
RATING_GOOD = 3  # Correct with normal effort
RATING_EASY = 4  # Correct with little effort

# Retrievability below this is considered at risk of being forgotten
CRITICAL_RETENTION = 0.5


def _validate_rating(rating: int) -> None:
    if rating < RATING_FAIL or rating > RATING_EASY:
        raise ValueError("Rating must be between 1 and 4")


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class ReviewEvent:
    """A single review of an item."""

    reviewed_at: datetime
    rating: int  # 1-4 (fail, hard, good, easy)

    def to_dict(self) -> dict[str, Any]:
        return {"date": to_iso(self.reviewed_at), "rating": self.rating}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewEvent:
        return cls(reviewed_at=parse_datetime(data["date"]), rating=int(data["rating"]))


@dataclass(frozen=True)
class RetentionPoint:
    """A dated point on an item's retention curve."""

    date: datetime
    retention: float

    @property
    def percentage(self) -> float:
        return self.retention * 100


@dataclass(frozen=True)
class RetentionRecord:
    """
    Memory state for one learned item.

    Review history is append-only; add_review returns a new record.
    """

    item_id: str
    created_at: datetime
    stability: float  # Days; higher means slower forgetting
    difficulty: float = 0.5  # 0.0 (easy) to 1.0 (hard)
    reviews: tuple[ReviewEvent, ...] = field(default_factory=tuple)
    retrievability: float | None = None  # Precomputed value, if any

    @property
    def last_review_at(self) -> datetime:
        """Last review time, or creation time for never-reviewed items."""
        return self.reviews[-1].reviewed_at if self.reviews else self.created_at

    @property
    def review_count(self) -> int:
        return len(self.reviews)

    @property
    def average_review_interval(self) -> float | None:
        """Mean days between consecutive reviews, None with fewer than two."""
        if len(self.reviews) < 2:
            return None
        total_days = 0.0
        for previous, current in zip(self.reviews, self.reviews[1:]):
            total_days += fractional_days_from_hours(current.reviewed_at - previous.reviewed_at)
        return total_days / (len(self.reviews) - 1)

    def current_retrievability(self, at: datetime | None = None) -> float:
        """
        Retrievability at a moment, using hours elapsed since the last review.

        A precomputed retrievability is returned when no time is given.
        """
        if self.retrievability is not None and at is None:
            return self.retrievability

        now = at or datetime.now()
        days_since_review = fractional_days_from_hours(now - self.last_review_at)
        if days_since_review <= 0:
            return 1.0
        return math.exp(-days_since_review / self.stability)

    def retention_curve(self, days: int = 30, points_per_day: int = 4) -> list[RetentionPoint]:
        """Dated retention points starting at the last review."""
        start = self.last_review_at
        points = []
        for i in range(days * points_per_day + 1):
            moment = start + timedelta(hours=(i * 24) // points_per_day)
            points.append(RetentionPoint(date=moment, retention=self.current_retrievability(moment)))
        return points

    def optimal_review_time(self, target_retention: float = 0.9) -> datetime:
        """When retrievability falls to the target, rounded to the hour."""
        days_until_target = -self.stability * math.log(target_retention)
        return self.last_review_at + days_to_hours_delta(days_until_target)

    def is_review_due(self, threshold: float = 0.9, now: datetime | None = None) -> bool:
        return self.current_retrievability(now) < threshold

    def days_until_review_due(self, threshold: float = 0.9, now: datetime | None = None) -> float:
        """Days from now until retrievability drops below the threshold."""
        current = self.current_retrievability(now)
        if current < threshold:
            return 0.0
        return -self.stability * math.log(threshold / current)

    def add_review(
        self,
        reviewed_at: datetime,
        rating: int,
        new_stability: float | None = None,
    ) -> RetentionRecord:
        """Append a review, optionally adopting a new stability."""
        return replace(
            self,
            reviews=(*self.reviews, ReviewEvent(reviewed_at=reviewed_at, rating=rating)),
            stability=self.stability if new_stability is None else new_stability,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "createdAt": to_iso(self.created_at),
            "stability": self.stability,
            "difficulty": self.difficulty,
            "reviews": [review.to_dict() for review in self.reviews],
            "retrievability": self.retrievability,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetentionRecord:
        retrievability = data.get("retrievability")
        difficulty = data.get("difficulty")
        return cls(
            item_id=data["itemId"],
            created_at=parse_datetime(data["createdAt"]),
            stability=float(data["stability"]),
            difficulty=0.5 if difficulty is None else float(difficulty),
            reviews=tuple(ReviewEvent.from_dict(r) for r in data.get("reviews") or []),
            retrievability=None if retrievability is None else float(retrievability),
        )


# =============================================================================
# Engine outputs
# =============================================================================


@dataclass(frozen=True)
class RetentionCurvePoint:
    """A point on the forgetting curve."""

    day: float
    retention: float
    is_above_threshold: bool

    @property
    def percentage(self) -> float:
        return self.retention * 100


@dataclass(frozen=True)
class ScheduledReview:
    """A projected review in a review schedule."""

    review_number: int  # 1-based
    scheduled_date: datetime
    expected_retention: float
    stability_at_review: float
    interval_days: float


@dataclass(frozen=True)
class RetentionSummary:
    """Bulk retention statistics for a collection of records."""

    total_items: int
    average_retention: float
    items_due: int
    items_critical: int
    average_stability: float

    @property
    def percentage_due(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.items_due / self.total_items * 100

    @property
    def percentage_critical(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.items_critical / self.total_items * 100

    @property
    def average_retention_percentage(self) -> float:
        return self.average_retention * 100


DISTRIBUTION_BUCKETS = ("0-20", "20-40", "40-60", "60-80", "80-100")


@dataclass(frozen=True)
class RetentionStats:
    """Retention statistics with a five-bucket distribution of retrievability."""

    total_items: int
    items_due: int
    average_retention: float
    average_stability: float
    retention_distribution: dict[str, int] = field(default_factory=dict)

    @property
    def percentage_due(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.items_due / self.total_items * 100

    @classmethod
    def from_records(
        cls,
        items: Sequence[RetentionRecord],
        due_threshold: float = 0.9,
        now: datetime | None = None,
    ) -> RetentionStats:
        if not items:
            return cls(total_items=0, items_due=0, average_retention=0.0, average_stability=0.0)

        distribution = dict.fromkeys(DISTRIBUTION_BUCKETS, 0)
        total_retention = 0.0
        total_stability = 0.0
        due = 0

        for item in items:
            retention = item.current_retrievability(now)
            total_retention += retention
            total_stability += item.stability
            if retention < due_threshold:
                due += 1
            bucket = min(int(retention * 100 // 20), len(DISTRIBUTION_BUCKETS) - 1)
            distribution[DISTRIBUTION_BUCKETS[bucket]] += 1

        return cls(
            total_items=len(items),
            items_due=due,
            average_retention=total_retention / len(items),
            average_stability=total_stability / len(items),
            retention_distribution=distribution,
        )


# =============================================================================
# Engine
# =============================================================================


class RetentionEngine:
    """
    Forgetting-curve calculator and review scheduler.

    All operations are pure; "now" defaults can be overridden for
    deterministic results.
    """

    def __init__(
        self,
        initial_stability: float = 1.0,
        stability_growth_factor: float = 2.5,
        difficulty_weight: float = 0.5,
        target_retention: float = 0.9,
    ):
        self.initial_stability = initial_stability
        self.stability_growth_factor = stability_growth_factor
        self.difficulty_weight = difficulty_weight
        self.target_retention = target_retention

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RetentionEngine:
        from learning_analytics.config import get_settings

        settings = settings or get_settings()
        return cls(**settings.get_retention_config())

    def retrievability(self, days_since_review: float, stability: float) -> float:
        """
        Calculate retrievability after a number of days.

        Returns 1.0 for zero or negative elapsed time.
        """
        if days_since_review <= 0:
            return 1.0
        return math.exp(-days_since_review / stability)

    def days_until_threshold(self, stability: float, threshold: float) -> float:
        """
        Days until retrievability decays to a threshold.

        Solves threshold = e^(-t/S) for t, giving t = -S × ln(threshold).

        Raises:
            ValueError: If threshold is not strictly between 0 and 1
        """
        if threshold <= 0 or threshold >= 1:
            raise ValueError("Threshold must be between 0 and 1 (exclusive)")
        return -stability * math.log(threshold)

    def next_review_date(
        self,
        last_review_date: datetime,
        stability: float,
        threshold: float | None = None,
    ) -> datetime:
        """Optimal next review, rounded to the nearest hour."""
        target = self.target_retention if threshold is None else threshold
        days_until = self.days_until_threshold(stability, target)
        return last_review_date + days_to_hours_delta(days_until)

    def new_stability(
        self,
        current_stability: float,
        rating: int,
        difficulty: float = 0.5,
    ) -> float:
        """
        Calculate stability after a review.

        A failed review (rating 1) discards the current stability and resets
        to half the initial stability, never below half a day.

        Raises:
            ValueError: If rating is outside 1-4
        """
        _validate_rating(rating)

        if rating == RATING_FAIL:
            return max(self.initial_stability * 0.5, 0.5)

        if rating == RATING_HARD:
            rating_multiplier = 1.2
        elif rating == RATING_GOOD:
            rating_multiplier = self.stability_growth_factor
        else:
            rating_multiplier = self.stability_growth_factor * 1.3

        # Harder items grow stability more slowly
        difficulty_multiplier = 1.0 - self.difficulty_weight * difficulty

        return current_stability * rating_multiplier * difficulty_multiplier

    def new_difficulty(self, current_difficulty: float, rating: int) -> float:
        """Adjust difficulty after a review, clamped to [0, 1]."""
        adjustment = 0.1
        if rating == RATING_FAIL:
            target = 1.0
        elif rating == RATING_HARD:
            target = current_difficulty + adjustment
        elif rating == RATING_GOOD:
            target = current_difficulty - adjustment * 0.5
        elif rating == RATING_EASY:
            target = current_difficulty - adjustment
        else:
            target = current_difficulty
        return min(max(target, 0.0), 1.0)

    def forgetting_curve(
        self,
        stability: float,
        days: int = 30,
        points_per_day: int = 4,
    ) -> list[RetentionCurvePoint]:
        """
        Sample the forgetting curve from day 0 through `days` inclusive.

        Returns an empty list when `points_per_day` is not positive.
        """
        if points_per_day <= 0:
            return []

        points = []
        for i in range(days * points_per_day + 1):
            day_offset = i / points_per_day
            retention = self.retrievability(day_offset, stability)
            points.append(
                RetentionCurvePoint(
                    day=day_offset,
                    retention=retention,
                    is_above_threshold=retention >= self.target_retention,
                )
            )
        return points

    def review_schedule(
        self,
        initial_stability: float | None = None,
        number_of_reviews: int = 10,
        target_retention: float | None = None,
        start: datetime | None = None,
    ) -> list[ScheduledReview]:
        """
        Project a review schedule.

        Every projected review is assumed to be rated "good", so this is a
        planning estimate rather than a guarantee.
        """
        stability = self.initial_stability if initial_stability is None else initial_stability
        threshold = self.target_retention if target_retention is None else target_retention
        current_date = start or datetime.now()

        schedule = []
        for i in range(number_of_reviews):
            interval = self.days_until_threshold(stability, threshold)
            review_date = current_date + days_to_hours_delta(interval)
            schedule.append(
                ScheduledReview(
                    review_number=i + 1,
                    scheduled_date=review_date,
                    expected_retention=threshold,
                    stability_at_review=stability,
                    interval_days=interval,
                )
            )
            stability = self.new_stability(stability, RATING_GOOD)
            current_date = review_date

        return schedule

    def prioritize_for_review(
        self,
        items: Iterable[RetentionRecord],
        max_items: int = 20,
        now: datetime | None = None,
    ) -> list[RetentionRecord]:
        """Lowest retrievability first, truncated to max_items."""
        ranked = sorted(items, key=lambda item: item.current_retrievability(now))
        return ranked[:max_items]

    def bulk_summary(
        self,
        items: Sequence[RetentionRecord],
        now: datetime | None = None,
    ) -> RetentionSummary:
        """Count, averages, due and critical counts over a set of records."""
        if not items:
            return RetentionSummary(
                total_items=0,
                average_retention=0.0,
                items_due=0,
                items_critical=0,
                average_stability=0.0,
            )

        total_retention = 0.0
        total_stability = 0.0
        items_due = 0
        items_critical = 0

        for item in items:
            retention = item.current_retrievability(now)
            total_retention += retention
            total_stability += item.stability
            if retention < self.target_retention:
                items_due += 1
            if retention < CRITICAL_RETENTION:
                items_critical += 1

        logger.debug(
            f"Retention summary: {len(items)} items, {items_due} due, {items_critical} critical"
        )
        return RetentionSummary(
            total_items=len(items),
            average_retention=total_retention / len(items),
            items_due=items_due,
            items_critical=items_critical,
            average_stability=total_stability / len(items),
        )
