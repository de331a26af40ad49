"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from macrolog.adapters.openai_vision_client import OpenAIVisionClient
from macrolog.adapters.supabase_meal_repository import SupabaseMealRepository
from macrolog.adapters.supabase_user_settings_repository import (
    SupabaseUserSettingsRepository,
)
from macrolog.adapters.unavailable_health_client import UnavailableHealthClient
from macrolog.config import Settings
from macrolog.services.health import HealthSyncService
from macrolog.services.meals import MealLogService
from macrolog.services.stats import StatsService
from macrolog.services.user_settings import UserSettingsService
from macrolog.services.vision import VisionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    user_settings_service: UserSettingsService
    health_service: HealthSyncService
    vision_service: VisionService
    meal_log_service: MealLogService
    stats_service: StatsService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    meal_repository = SupabaseMealRepository(supabase_client)
    user_settings_service = UserSettingsService(
        SupabaseUserSettingsRepository(supabase_client)
    )
    health_service = HealthSyncService(UnavailableHealthClient())
    openai_client = OpenAIVisionClient.create(resolved_settings.openai_api_key)
    vision_service = VisionService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    meal_log_service = MealLogService(
        repository=meal_repository,
        settings_service=user_settings_service,
        health_service=health_service,
    )
    stats_service = StatsService(meals=meal_repository, goals=user_settings_service)

    async def close_resources() -> None:
        await openai_client.client.close()

    return AppContainer(
        settings=resolved_settings,
        user_settings_service=user_settings_service,
        health_service=health_service,
        vision_service=vision_service,
        meal_log_service=meal_log_service,
        stats_service=stats_service,
        close_resources=close_resources,
    )
