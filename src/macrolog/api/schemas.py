"""Request bodies for the HTTP API."""

from pydantic import BaseModel, Field

from macrolog.domain.meals import FoodItem


class AnalyzeMealRequest(BaseModel):
    """Base64-encoded meal photo to analyze."""

    image_base64: str = Field(min_length=1)


class SaveMealRequest(BaseModel):
    """Food items confirmed by the user."""

    items: list[FoodItem] = Field(min_length=1)


class DailyGoalsRequest(BaseModel):
    """New daily goals."""

    calories: float
    protein: float
    carbs: float
    fat: float


class ApiKeyRequest(BaseModel):
    """Per-device OpenAI API key; null clears it."""

    api_key: str | None = None
    validate_key: bool = True


class AppleHealthRequest(BaseModel):
    """Apple Health toggle."""

    enabled: bool
