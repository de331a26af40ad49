"""Meal logging service."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from macrolog.domain.meals import FoodItem, Meal
from macrolog.domain.settings import Achievement, StreakData
from macrolog.services.achievements import evaluate_achievements
from macrolog.services.health import HealthSyncService
from macrolog.services.stats import round_half_up
from macrolog.services.streaks import calculate_streak, update_streak
from macrolog.services.user_settings import UserSettingsService, record_health_sync

logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Persistence interface for meals."""

    def list_meals(self, device_id: str) -> list[Meal]:
        """Return all meals for a device, newest first."""

    def add_meal(self, device_id: str, meal: Meal) -> None:
        """Persist a new meal."""

    def delete_meal(self, device_id: str, meal_id: UUID) -> bool:
        """Delete a meal and return whether it existed."""

    def delete_all_meals(self, device_id: str) -> None:
        """Delete every meal for a device."""


@dataclass(frozen=True)
class MealSaveResult:
    """Outcome of confirming and saving a meal."""

    meal: Meal
    streak: StreakData
    newly_unlocked: list[Achievement]
    celebration: Achievement | None


@dataclass
class MealLogService:
    """Service that builds meals, persists them and updates progress."""

    repository: MealRepository
    settings_service: UserSettingsService
    health_service: HealthSyncService

    async def save_meal(
        self, device_id: str, items: list[FoodItem], now: datetime | None = None
    ) -> MealSaveResult:
        """Save confirmed items as a meal and update streak and achievements.

        Settings are read once and written once so streak, achievement and
        sync bookkeeping land together.
        """
        logged_at = now or datetime.now(tz=UTC)
        meal = build_meal(items, logged_at)
        settings = self.settings_service.get_settings(device_id)

        apple_health = settings.apple_health
        if apple_health.enabled and apple_health.permission_granted:
            synced = await self.health_service.sync_meal(meal)
            if not synced:
                logger.warning(
                    "Apple Health sync failed",
                    extra={"meal_id": str(meal.id)},
                )
            meal = meal.model_copy(update={"synced_to_apple_health": synced})
            apple_health = record_health_sync(apple_health, synced, logged_at)

        self.repository.add_meal(device_id, meal)

        result = calculate_streak(self.repository.list_meals(device_id), logged_at)
        streak = update_streak(settings.streak, result)
        evaluation = evaluate_achievements(
            streak.current_streak, settings.achievements, logged_at
        )
        self.settings_service.save_settings(
            device_id,
            settings.model_copy(
                update={
                    "streak": streak,
                    "achievements": evaluation.achievements,
                    "apple_health": apple_health,
                }
            ),
        )
        if evaluation.newly_unlocked:
            logger.info(
                "Achievements unlocked",
                extra={"ids": [item.id for item in evaluation.newly_unlocked]},
            )
        return MealSaveResult(
            meal=meal,
            streak=streak,
            newly_unlocked=evaluation.newly_unlocked,
            celebration=evaluation.celebration,
        )

    def list_meals(self, device_id: str) -> list[Meal]:
        """Return all meals for a device, newest first."""
        return self.repository.list_meals(device_id)

    def delete_meal(self, device_id: str, meal_id: UUID) -> bool:
        """Delete a meal; the stored streak is left as is."""
        return self.repository.delete_meal(device_id, meal_id)

    def reset(self, device_id: str) -> None:
        """Remove all meals and settings for a device."""
        self.repository.delete_all_meals(device_id)
        self.settings_service.delete_settings(device_id)


def build_meal(items: list[FoodItem], logged_at: datetime) -> Meal:
    """Create a meal with totals and a rounded mean health score."""
    health_score = (
        round_half_up(sum(item.health_score for item in items) / len(items))
        if items
        else 0
    )
    return Meal(
        id=uuid4(),
        timestamp=logged_at,
        items=items,
        total_calories=sum(item.calories for item in items),
        total_protein=sum(item.protein for item in items),
        total_carbs=sum(item.carbs for item in items),
        total_fat=sum(item.fat for item in items),
        health_score=health_score,
    )
