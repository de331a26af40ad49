"""Tests for meal logging and progress updates."""

import asyncio
from datetime import UTC, datetime, timedelta

from macrolog.services.meals import MealLogService, build_meal
from tests.conftest import (
    DEVICE_ID,
    FakeHealthClient,
    InMemoryMealRepository,
    InMemoryUserSettingsRepository,
    at,
    make_item,
    make_meal,
)

NOW = datetime(2024, 1, 21, 18, 0, tzinfo=UTC)


def _enable_health_sync(
    settings_repository: InMemoryUserSettingsRepository, sync_errors: int = 0
) -> None:
    settings_repository.documents[DEVICE_ID] = {
        "apple_health": {
            "enabled": True,
            "permission_granted": True,
            "sync_errors": sync_errors,
        }
    }


def test_build_meal_sums_items_and_rounds_health_score() -> None:
    meal = build_meal(
        [
            make_item(calories=300, protein=40, carbs=0, fat=10, health_score=80),
            make_item(calories=150, protein=3, carbs=30, fat=1, health_score=75),
        ],
        NOW,
    )

    assert meal.timestamp == NOW
    assert meal.total_calories == 450
    assert meal.total_protein == 43
    assert meal.total_carbs == 30
    assert meal.total_fat == 11
    assert meal.health_score == 78
    assert not meal.synced_to_apple_health


def test_build_meal_without_items_scores_zero() -> None:
    meal = build_meal([], NOW)

    assert meal.health_score == 0
    assert meal.total_calories == 0


def test_save_meal_updates_streak_and_unlocks_achievements(
    meal_log_service: MealLogService,
    meal_repository: InMemoryMealRepository,
    settings_repository: InMemoryUserSettingsRepository,
) -> None:
    meal_repository.meals[DEVICE_ID] = [
        make_meal(NOW - timedelta(days=offset)) for offset in range(1, 7)
    ]

    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert result.streak.current_streak == 7
    assert result.streak.longest_streak == 7
    assert result.streak.last_logged_date == "2024-01-21"
    assert [item.id for item in result.newly_unlocked] == ["week_warrior"]
    assert result.celebration is not None
    assert result.celebration.id == "week_warrior"
    assert settings_repository.saves == 1
    stored = meal_log_service.settings_service.get_settings(DEVICE_ID)
    assert stored.streak == result.streak
    assert stored.achievements[0].unlocked
    assert len(meal_repository.list_meals(DEVICE_ID)) == 7


def test_second_meal_same_day_does_not_celebrate_again(
    meal_log_service: MealLogService,
    meal_repository: InMemoryMealRepository,
) -> None:
    meal_repository.meals[DEVICE_ID] = [
        make_meal(NOW - timedelta(days=offset)) for offset in range(1, 7)
    ]
    asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    result = asyncio.run(
        meal_log_service.save_meal(
            DEVICE_ID, [make_item()], NOW + timedelta(hours=1)
        )
    )

    assert result.streak.current_streak == 7
    assert result.newly_unlocked == []
    assert result.celebration is None


def test_save_meal_keeps_longest_streak_after_break(
    meal_log_service: MealLogService,
    settings_repository: InMemoryUserSettingsRepository,
) -> None:
    settings_repository.documents[DEVICE_ID] = {
        "streak": {"current_streak": 0, "longest_streak": 12}
    }

    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert result.streak.current_streak == 1
    assert result.streak.longest_streak == 12


def test_save_meal_skips_health_sync_when_disabled(
    meal_log_service: MealLogService, health_client: FakeHealthClient
) -> None:
    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert health_client.written == []
    assert not result.meal.synced_to_apple_health


def test_save_meal_syncs_and_resets_error_count(
    meal_log_service: MealLogService,
    settings_repository: InMemoryUserSettingsRepository,
    health_client: FakeHealthClient,
) -> None:
    _enable_health_sync(settings_repository, sync_errors=3)

    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert result.meal.synced_to_apple_health
    assert len(health_client.written) == 1
    apple_health = meal_log_service.settings_service.get_settings(
        DEVICE_ID
    ).apple_health
    assert apple_health.sync_errors == 0
    assert apple_health.last_sync_attempt == NOW


def test_save_meal_counts_failed_sync_and_still_saves(
    meal_log_service: MealLogService,
    meal_repository: InMemoryMealRepository,
    settings_repository: InMemoryUserSettingsRepository,
    health_client: FakeHealthClient,
) -> None:
    _enable_health_sync(settings_repository, sync_errors=1)
    health_client.raise_error = True

    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert not result.meal.synced_to_apple_health
    assert meal_repository.list_meals(DEVICE_ID) == [result.meal]
    apple_health = meal_log_service.settings_service.get_settings(
        DEVICE_ID
    ).apple_health
    assert apple_health.sync_errors == 2


def test_delete_meal_leaves_stored_streak(
    meal_log_service: MealLogService,
    meal_repository: InMemoryMealRepository,
) -> None:
    result = asyncio.run(meal_log_service.save_meal(DEVICE_ID, [make_item()], NOW))

    assert meal_log_service.delete_meal(DEVICE_ID, result.meal.id)
    assert not meal_log_service.delete_meal(DEVICE_ID, result.meal.id)
    assert meal_repository.list_meals(DEVICE_ID) == []
    stored = meal_log_service.settings_service.get_settings(DEVICE_ID)
    assert stored.streak.current_streak == 1


def test_reset_removes_meals_and_settings(
    meal_log_service: MealLogService,
    meal_repository: InMemoryMealRepository,
    settings_repository: InMemoryUserSettingsRepository,
) -> None:
    meal_repository.meals[DEVICE_ID] = [make_meal(at("2024-01-20"))]
    meal_log_service.settings_service.update_api_key(DEVICE_ID, "sk-abc")

    meal_log_service.reset(DEVICE_ID)

    assert meal_log_service.list_meals(DEVICE_ID) == []
    assert DEVICE_ID not in settings_repository.documents
