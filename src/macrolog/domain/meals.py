"""Domain models for meal logging."""

from dataclasses import dataclass
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class HealthBreakdown(BaseModel):
    """Sub-scores behind a food item's health score."""

    model_config = ConfigDict(frozen=True)

    nutrient_density: int = Field(ge=0, le=100)
    processing_level: int = Field(ge=0, le=100)
    goal_alignment: int = Field(ge=0, le=100)


class FoodItem(BaseModel):
    """Single food item estimated from a meal photo."""

    model_config = ConfigDict(frozen=True)

    name: str
    amount: float = Field(gt=0)
    unit: str
    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    health_score: int = Field(ge=0, le=100)
    health_breakdown: HealthBreakdown
    health_reason: str
    encouragement: str


class Meal(BaseModel):
    """A confirmed, logged meal."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    timestamp: AwareDatetime
    items: list[FoodItem]
    total_calories: float
    total_protein: float
    total_carbs: float
    total_fat: float
    health_score: int | None = None
    synced_to_apple_health: bool = False


@dataclass(frozen=True)
class DayTotals:
    """Nutrition totals for one calendar day."""

    calories: float
    protein: float
    carbs: float
    fat: float
    meals: int
    avg_health_score: int
