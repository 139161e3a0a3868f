"""
Streak Engine - Consecutive-Day Activity Tracking.

Tracks learning streaks with tolerance for missed days:
- Freeze days: missed days absorbed without breaking the streak
- Grace period: hours past midnight still counted toward the previous day

Also buckets raw activity counts into heatmap intensity levels and builds
the weekly activity grid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from loguru import logger

from learning_analytics.core.dates import (
    calendar_days_between,
    normalize_date,
    parse_date,
    parse_datetime,
    to_iso,
)

if TYPE_CHECKING:
    from learning_analytics.config import Settings


def intensity_level(count: int) -> int:
    """
    Bucket an activity count into a heatmap intensity level.

    0 → 0, 1-2 → 1, 3-5 → 2, 6-10 → 3, more → 4.
    """
    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 5:
        return 2
    if count <= 10:
        return 3
    return 4


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class StreakPeriod:
    """A closed, historical streak."""

    start_date: date
    end_date: date
    length: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "startDate": to_iso(self.start_date),
            "endDate": to_iso(self.end_date),
            "length": self.length,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreakPeriod:
        return cls(
            start_date=parse_date(data["startDate"]),
            end_date=parse_date(data["endDate"]),
            length=int(data["length"]),
        )


@dataclass(frozen=True)
class StreakRecord:
    """
    Streak state for one learner.

    weekly_activity maps ISO weekday (1 = Monday, 7 = Sunday) to whether
    there was activity; monthly_activity maps day-of-month to a count.
    """

    current_streak: int
    longest_streak: int
    last_activity_date: datetime
    total_active_days: int = 0
    weekly_activity: dict[int, bool] = field(default_factory=dict)
    monthly_activity: dict[int, int] = field(default_factory=dict)
    streak_history: tuple[StreakPeriod, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, now: datetime | None = None) -> StreakRecord:
        """A record with no streak, last active two days ago."""
        now = now or datetime.now()
        return cls(current_streak=0, longest_streak=0, last_activity_date=now - timedelta(days=2))

    def is_streak_active(self, now: datetime | None = None) -> bool:
        """Activity today or yesterday."""
        return calendar_days_between(now or datetime.now(), self.last_activity_date) <= 1

    def has_activity_today(self, now: datetime | None = None) -> bool:
        return normalize_date(self.last_activity_date) == normalize_date(now or datetime.now())

    def days_until_streak_breaks(self, now: datetime | None = None) -> int:
        """0 if already broken, 1 if today is the last chance, 2 if today is done."""
        if not self.is_streak_active(now):
            return 0
        if self.has_activity_today(now):
            return 2
        return 1

    def day_has_activity(self, day_of_week: int) -> bool:
        return self.weekly_activity.get(day_of_week, False)

    @property
    def active_days_this_week(self) -> int:
        return sum(1 for active in self.weekly_activity.values() if active)

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "lastActivityDate": to_iso(self.last_activity_date),
            "totalActiveDays": self.total_active_days,
            "weeklyActivity": {str(k): v for k, v in self.weekly_activity.items()},
            "monthlyActivity": {str(k): v for k, v in self.monthly_activity.items()},
            "streakHistory": [period.to_dict() for period in self.streak_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreakRecord:
        return cls(
            current_streak=int(data["currentStreak"]),
            longest_streak=int(data["longestStreak"]),
            last_activity_date=parse_datetime(data["lastActivityDate"]),
            total_active_days=int(data.get("totalActiveDays") or 0),
            weekly_activity={
                int(k): bool(v) for k, v in (data.get("weeklyActivity") or {}).items()
            },
            monthly_activity={
                int(k): int(v) for k, v in (data.get("monthlyActivity") or {}).items()
            },
            streak_history=tuple(
                StreakPeriod.from_dict(p) for p in data.get("streakHistory") or []
            ),
        )


@dataclass(frozen=True)
class DailyActivity:
    """Aggregated activity for one day."""

    date: date
    activity_count: int
    minutes_spent: int = 0
    questions_answered: int = 0
    xp_earned: int = 0

    @property
    def has_activity(self) -> bool:
        return self.activity_count > 0

    @property
    def intensity_level(self) -> int:
        return intensity_level(self.activity_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": to_iso(self.date),
            "activityCount": self.activity_count,
            "minutesSpent": self.minutes_spent,
            "questionsAnswered": self.questions_answered,
            "xpEarned": self.xp_earned,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyActivity:
        return cls(
            date=parse_date(data["date"]),
            activity_count=int(data["activityCount"]),
            minutes_spent=int(data.get("minutesSpent") or 0),
            questions_answered=int(data.get("questionsAnswered") or 0),
            xp_earned=int(data.get("xpEarned") or 0),
        )


@dataclass(frozen=True)
class DailyActivityStatus:
    """Status of one day in the weekly grid."""

    date: date
    day_of_week: int  # 1 = Monday, 7 = Sunday
    has_activity: bool
    is_today: bool = False
    is_future: bool = False

    @property
    def short_day_name(self) -> str:
        return "MTWTFSS"[self.day_of_week - 1]


@dataclass(frozen=True)
class HeatmapDay:
    """One calendar day in a heatmap."""

    date: date
    count: int
    level: int  # Intensity 0-4


# =============================================================================
# Engine
# =============================================================================


class StreakEngine:
    """
    Streak calculator.

    Decision table for a new activity, by whole days since the last one:
    - 0: same day, streak unchanged
    - 1: consecutive day, streak + 1
    - up to 1 + freeze_days: gap absorbed, streak unchanged
    - more: streak broken, archived if longer than 1, restarts at 1
    """

    def __init__(self, freeze_days: int = 0, grace_period_hours: int = 0):
        self.freeze_days = freeze_days
        self.grace_period_hours = grace_period_hours

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> StreakEngine:
        from learning_analytics.config import get_settings

        settings = settings or get_settings()
        return cls(**settings.get_streak_config())

    def record_activity(
        self,
        record: StreakRecord,
        activity_date: datetime | None = None,
    ) -> StreakRecord:
        """
        Return the streak record updated with a new activity.

        Args:
            record: Current streak record
            activity_date: When the activity happened (defaults to now)
        """
        now = activity_date or datetime.now()
        today = normalize_date(now)
        last_activity = normalize_date(record.last_activity_date)
        days_difference = (today - last_activity).days

        history = record.streak_history

        if days_difference == 0:
            new_streak = record.current_streak
        elif days_difference == 1:
            new_streak = record.current_streak + 1
        elif days_difference <= 1 + self.freeze_days:
            new_streak = record.current_streak
        else:
            if record.current_streak > 1:
                period = StreakPeriod(
                    start_date=last_activity - timedelta(days=record.current_streak - 1),
                    end_date=last_activity,
                    length=record.current_streak,
                )
                history = (*history, period)
                logger.debug(
                    f"Streak of {record.current_streak} days broken after "
                    f"{days_difference} days; archived {period.start_date} to {period.end_date}"
                )
            new_streak = 1

        weekly_activity = dict(record.weekly_activity)
        weekly_activity[now.isoweekday()] = True

        monthly_activity = dict(record.monthly_activity)
        monthly_activity[now.day] = monthly_activity.get(now.day, 0) + 1

        return StreakRecord(
            current_streak=new_streak,
            longest_streak=max(record.longest_streak, new_streak),
            last_activity_date=now,
            total_active_days=record.total_active_days + (1 if days_difference > 0 else 0),
            weekly_activity=weekly_activity,
            monthly_activity=monthly_activity,
            streak_history=history,
        )

    def is_streak_valid(self, last_activity_date: datetime, now: datetime | None = None) -> bool:
        """Whether a streak last extended on last_activity_date is still alive."""
        now = now or datetime.now()
        days_difference = calendar_days_between(now, last_activity_date)

        if days_difference == 1 and self.grace_period_hours > 0:
            if now.hour < self.grace_period_hours:
                return True

        return days_difference <= 1 + self.freeze_days

    def time_until_streak_breaks(
        self,
        last_activity_date: datetime,
        now: datetime | None = None,
    ) -> timedelta | None:
        """
        Time left before the streak breaks, None if it already has.

        The deadline is the end of the day after the last activity, extended
        by freeze days and the grace period.
        """
        now = now or datetime.now()
        last_day = normalize_date(last_activity_date)

        if (normalize_date(now) - last_day).days > 1 + self.freeze_days:
            return None

        deadline = datetime.combine(last_day, time.min, tzinfo=now.tzinfo) + timedelta(
            days=2 + self.freeze_days, hours=self.grace_period_hours
        )
        remaining = deadline - now
        if remaining < timedelta(0):
            return None
        return remaining

    def calculate_current_streak(
        self,
        activity_dates: Iterable[date | datetime],
        today: date | datetime | None = None,
    ) -> int:
        """
        Strict consecutive-day streak ending today or yesterday.

        Returns 0 when the latest activity is older than yesterday.
        """
        days = sorted({normalize_date(d) for d in activity_dates}, reverse=True)
        if not days:
            return 0

        current_day = normalize_date(today or datetime.now())
        if days[0] not in (current_day, current_day - timedelta(days=1)):
            return 0

        streak = 1
        for newer, older in zip(days, days[1:]):
            if (newer - older).days != 1:
                break
            streak += 1
        return streak

    def calculate_longest_streak(self, activity_dates: Iterable[date | datetime]) -> int:
        """Longest strict consecutive-day run in a set of dates."""
        days = sorted({normalize_date(d) for d in activity_dates})
        if not days:
            return 0

        longest = 1
        current = 1
        for earlier, later in zip(days, days[1:]):
            if (later - earlier).days == 1:
                current += 1
                longest = max(longest, current)
            else:
                current = 1
        return longest

    def heatmap(
        self,
        activity_counts: Mapping[date | datetime, int],
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> list[HeatmapDay]:
        """One entry per calendar day from start_date to end_date inclusive."""
        counts: dict[date, int] = {}
        for moment, count in activity_counts.items():
            day = normalize_date(moment)
            counts[day] = counts.get(day, 0) + count

        days = []
        current = normalize_date(start_date)
        end = normalize_date(end_date)
        while current <= end:
            count = counts.get(current, 0)
            days.append(HeatmapDay(date=current, count=count, level=intensity_level(count)))
            current += timedelta(days=1)
        return days

    def week_grid(
        self,
        activity_dates: Iterable[date | datetime],
        week_start: date | datetime | None = None,
        now: datetime | None = None,
    ) -> list[DailyActivityStatus]:
        """Seven-day activity grid, Monday first unless week_start is given."""
        today = normalize_date(now or datetime.now())
        active_days = {normalize_date(d) for d in activity_dates}

        if week_start is None:
            start = today - timedelta(days=today.isoweekday() - 1)
        else:
            start = normalize_date(week_start)

        grid = []
        for offset in range(7):
            day = start + timedelta(days=offset)
            grid.append(
                DailyActivityStatus(
                    date=day,
                    day_of_week=day.isoweekday(),
                    has_activity=day in active_days,
                    is_today=day == today,
                    is_future=day > today,
                )
            )
        return grid
