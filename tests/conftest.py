"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from macrolog.config import Settings
from macrolog.containers import AppContainer
from macrolog.domain.meals import FoodItem, HealthBreakdown, Meal
from macrolog.services.health import HealthSyncClient, HealthSyncService
from macrolog.services.meals import MealLogService, MealRepository
from macrolog.services.stats import StatsService
from macrolog.services.user_settings import (
    UserSettingsRepository,
    UserSettingsService,
)
from macrolog.services.vision import VisionClient, VisionService

DEVICE_ID = "device-1"


def make_item(  # noqa: PLR0913
    name: str = "Grilled chicken",
    calories: float = 300,
    protein: float = 40,
    carbs: float = 0,
    fat: float = 10,
    health_score: int = 85,
) -> FoodItem:
    """Build a food item with sensible defaults."""
    return FoodItem(
        name=name,
        amount=1,
        unit="piece",
        calories=calories,
        protein=protein,
        carbs=carbs,
        fat=fat,
        health_score=health_score,
        health_breakdown=HealthBreakdown(
            nutrient_density=health_score,
            processing_level=health_score,
            goal_alignment=health_score,
        ),
        health_reason="Lean protein.",
        encouragement="Great choice!",
    )


def make_meal(  # noqa: PLR0913
    timestamp: datetime,
    calories: float = 500,
    protein: float = 30,
    carbs: float = 50,
    fat: float = 15,
    health_score: int | None = 80,
) -> Meal:
    """Build a meal logged at the given instant."""
    return Meal(
        id=uuid4(),
        timestamp=timestamp,
        items=[make_item(calories=calories, protein=protein, carbs=carbs, fat=fat)],
        total_calories=calories,
        total_protein=protein,
        total_carbs=carbs,
        total_fat=fat,
        health_score=health_score,
    )


def at(day: str, hour: int = 12) -> datetime:
    """Return a UTC instant on a YYYY-MM-DD day."""
    return datetime.fromisoformat(day).replace(hour=hour, tzinfo=UTC)


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    meals: dict[str, list[Meal]] = field(default_factory=dict)

    def list_meals(self, device_id: str) -> list[Meal]:
        return sorted(
            self.meals.get(device_id, []),
            key=lambda meal: meal.timestamp,
            reverse=True,
        )

    def add_meal(self, device_id: str, meal: Meal) -> None:
        self.meals.setdefault(device_id, []).append(meal)

    def delete_meal(self, device_id: str, meal_id: UUID) -> bool:
        existing = self.meals.get(device_id, [])
        remaining = [meal for meal in existing if meal.id != meal_id]
        self.meals[device_id] = remaining
        return len(remaining) != len(existing)

    def delete_all_meals(self, device_id: str) -> None:
        self.meals.pop(device_id, None)


@dataclass
class InMemoryUserSettingsRepository(UserSettingsRepository):
    """In-memory user settings repository for tests."""

    documents: dict[str, dict[str, object]] = field(default_factory=dict)
    saves: int = 0

    def get_settings(self, device_id: str) -> dict[str, object] | None:
        return self.documents.get(device_id)

    def save_settings(self, device_id: str, data: dict[str, object]) -> None:
        self.saves += 1
        self.documents[device_id] = data

    def delete_settings(self, device_id: str) -> None:
        self.documents.pop(device_id, None)


@dataclass
class FakeHealthClient(HealthSyncClient):
    """Fake health store recording writes."""

    available: bool = True
    grant: bool = True
    succeed: bool = True
    raise_error: bool = False
    written: list[Meal] = field(default_factory=list)

    def is_available(self) -> bool:
        return self.available

    async def request_permissions(self) -> bool:
        return self.grant

    async def write_meal(self, meal: Meal) -> bool:
        if self.raise_error:
            raise RuntimeError("health store offline")
        self.written.append(meal)
        return self.succeed


@dataclass
class FakeVisionClient(VisionClient):
    """Fake vision client returning a fixed payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "items": [make_item(name="Brown rice", health_score=75).model_dump()]
        }
    )
    error: Exception | None = None
    valid_keys: set[str] = field(default_factory=lambda: {"sk-valid"})
    calls: list[dict[str, object]] = field(default_factory=list)

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
        api_key: str | None = None,
    ) -> dict[str, object]:
        self.calls.append(
            {"image_data_url": image_data_url, "prompt": prompt, "api_key": api_key}
        )
        if self.error is not None:
            raise self.error
        return self.payload

    async def validate_api_key(self, api_key: str) -> bool:
        return api_key in self.valid_keys


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        api_token="api-token",
        openai_api_key="openai-key",
        environment="production",
    )


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def settings_repository() -> InMemoryUserSettingsRepository:
    return InMemoryUserSettingsRepository()


@pytest.fixture
def health_client() -> FakeHealthClient:
    return FakeHealthClient()


@pytest.fixture
def vision_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture
def user_settings_service(
    settings_repository: InMemoryUserSettingsRepository,
) -> UserSettingsService:
    return UserSettingsService(settings_repository)


@pytest.fixture
def meal_log_service(
    meal_repository: InMemoryMealRepository,
    user_settings_service: UserSettingsService,
    health_client: FakeHealthClient,
) -> MealLogService:
    return MealLogService(
        repository=meal_repository,
        settings_service=user_settings_service,
        health_service=HealthSyncService(health_client),
    )


@pytest.fixture
def container(
    settings: Settings,
    meal_repository: InMemoryMealRepository,
    user_settings_service: UserSettingsService,
    meal_log_service: MealLogService,
    vision_client: FakeVisionClient,
) -> AppContainer:
    vision_service = VisionService(
        client=vision_client,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        user_settings_service=user_settings_service,
        health_service=meal_log_service.health_service,
        vision_service=vision_service,
        meal_log_service=meal_log_service,
        stats_service=StatsService(
            meals=meal_repository, goals=user_settings_service
        ),
        close_resources=close_resources,
    )
