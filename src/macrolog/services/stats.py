"""Daily totals, goal checks and progress summaries."""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from macrolog.domain.meals import DayTotals, Meal
from macrolog.domain.settings import DailyGoals
from macrolog.services.dates import day_key, last_7_days
from macrolog.services.streaks import calculate_streak

GOAL_LOWER_BOUND = 0.9
GOAL_UPPER_BOUND = 1.1
HEALTH_RATINGS = ((90, "Nutritious"), (70, "Good"), (50, "Fair"))


class MealSnapshotSource(Protocol):
    """Read access to a device's meal history."""

    def list_meals(self, device_id: str) -> list[Meal]:
        """Return all meals for a device, newest first."""


class GoalsSource(Protocol):
    """Read access to goals and the stored longest streak."""

    def get_daily_goals(self, device_id: str) -> DailyGoals:
        """Return the device's daily goals."""

    def get_longest_streak(self, device_id: str) -> int:
        """Return the stored longest streak."""


@dataclass(frozen=True)
class DaySummary:
    """Totals and goal state for a single day."""

    day: date
    totals: DayTotals
    goal_met: bool
    health_rating: str | None
    meals: list[Meal]


@dataclass(frozen=True)
class StreakSummary:
    """Live streak figures for display."""

    current_streak: int
    longest_streak: int
    last_logged_date: str | None


@dataclass
class StatsService:
    """Service for progress views over the meal history."""

    meals: MealSnapshotSource
    goals: GoalsSource

    def get_day(self, device_id: str, day: date) -> DaySummary:
        """Return the summary for one day."""
        meals = self.meals.list_meals(device_id)
        goals = self.goals.get_daily_goals(device_id)
        return _summarize_day(day, meals, goals)

    def get_week(self, device_id: str, now: datetime | None = None) -> list[DaySummary]:
        """Return summaries for the last seven days, oldest first."""
        meals = self.meals.list_meals(device_id)
        goals = self.goals.get_daily_goals(device_id)
        return [_summarize_day(day, meals, goals) for day in last_7_days(now)]

    def get_streak(self, device_id: str, now: datetime | None = None) -> StreakSummary:
        """Return the streak computed from the current meal history."""
        result = calculate_streak(self.meals.list_meals(device_id), now)
        longest = self.goals.get_longest_streak(device_id)
        return StreakSummary(
            current_streak=result.current_streak,
            longest_streak=max(longest, result.current_streak),
            last_logged_date=result.last_logged_date,
        )


def meals_for_day(meals: Iterable[Meal], day: datetime | date) -> list[Meal]:
    """Return meals whose day key matches the given day."""
    key = day_key(day)
    return [meal for meal in meals if day_key(meal.timestamp) == key]


def totals_for_day(meals: Iterable[Meal], day: datetime | date) -> DayTotals:
    """Sum nutrition for the meals logged on a day."""
    day_meals = meals_for_day(meals, day)
    count = len(day_meals)
    score_sum = sum(meal.health_score or 0 for meal in day_meals)
    return DayTotals(
        calories=sum(meal.total_calories for meal in day_meals),
        protein=sum(meal.total_protein for meal in day_meals),
        carbs=sum(meal.total_carbs for meal in day_meals),
        fat=sum(meal.total_fat for meal in day_meals),
        meals=count,
        avg_health_score=round_half_up(score_sum / count) if count else 0,
    )


def is_goal_met(totals: DayTotals, goals: DailyGoals) -> bool:
    """Return True when calories are within 10% of the calorie goal.

    Protein, carbs and fat are not part of the check.
    """
    low = goals.calories * GOAL_LOWER_BOUND
    high = goals.calories * GOAL_UPPER_BOUND
    return low <= totals.calories <= high


def health_rating(score: int) -> str:
    """Return a display rating for a 0-100 health score."""
    for threshold, label in HEALTH_RATINGS:
        if score >= threshold:
            return label
    return "Limited"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)


def _summarize_day(day: date, meals: list[Meal], goals: DailyGoals) -> DaySummary:
    totals = totals_for_day(meals, day)
    return DaySummary(
        day=day,
        totals=totals,
        goal_met=is_goal_met(totals, goals),
        health_rating=health_rating(totals.avg_health_score) if totals.meals else None,
        meals=meals_for_day(meals, day),
    )
