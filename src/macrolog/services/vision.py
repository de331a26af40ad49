"""Meal photo analysis using LLM vision."""

import base64
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ValidationError

from macrolog.domain.meals import FoodItem
from macrolog.domain.settings import DailyGoals

_SCORE = {"type": "integer", "minimum": 0, "maximum": 100}
_AMOUNT = {"type": "number", "minimum": 0}

FOOD_ITEMS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "amount": {"type": "number", "exclusiveMinimum": 0},
                    "unit": {"type": "string"},
                    "calories": _AMOUNT,
                    "protein": _AMOUNT,
                    "carbs": _AMOUNT,
                    "fat": _AMOUNT,
                    "health_score": _SCORE,
                    "health_breakdown": {
                        "type": "object",
                        "properties": {
                            "nutrient_density": _SCORE,
                            "processing_level": _SCORE,
                            "goal_alignment": _SCORE,
                        },
                        "required": [
                            "nutrient_density",
                            "processing_level",
                            "goal_alignment",
                        ],
                        "additionalProperties": False,
                    },
                    "health_reason": {"type": "string"},
                    "encouragement": {"type": "string"},
                },
                "required": [
                    "name",
                    "amount",
                    "unit",
                    "calories",
                    "protein",
                    "carbs",
                    "fat",
                    "health_score",
                    "health_breakdown",
                    "health_reason",
                    "encouragement",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["items"],
    "additionalProperties": False,
}


class VisionAnalysisError(Exception):
    """Raised when a meal photo could not be analyzed."""

    user_message = "Sorry, we couldn't analyze that photo. Please try again."


class InvalidApiKeyError(VisionAnalysisError):
    """The OpenAI API key was rejected."""

    user_message = "Invalid API key. Please check your OpenAI API key in Settings."


class RateLimitedError(VisionAnalysisError):
    """The OpenAI API rate limit was hit."""

    user_message = "Rate limit exceeded. Please try again in a moment."


class VisionUnavailableError(VisionAnalysisError):
    """The OpenAI API is temporarily unavailable."""

    user_message = "OpenAI service temporarily unavailable. Please try again."


class MalformedAnalysisError(VisionAnalysisError):
    """The model response could not be read as food items."""

    user_message = (
        "We couldn't read the analysis for that photo. Please try a clearer shot."
    )


class VisionClient(Protocol):
    """Interface for LLM vision extraction."""

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
        """Return structured vision extraction data."""

    async def validate_api_key(self, api_key: str) -> bool:
        """Return True when the API key is accepted."""


class _FoodItemsPayload(BaseModel):
    items: list[FoodItem]


@dataclass
class VisionService:
    """Service that prepares meal analysis prompts and validates results."""

    client: VisionClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def analyze(
        self, image_bytes: bytes, goals: DailyGoals, api_key: str | None = None
    ) -> list[FoodItem]:
        """Estimate food items, nutrition and health scores for a photo."""
        raw = await self.client.extract(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            image_data_url=_to_data_url(image_bytes),
            schema=FOOD_ITEMS_SCHEMA,
            prompt=build_prompt(goals),
            api_key=api_key,
        )
        try:
            payload = _FoodItemsPayload.model_validate(raw)
        except ValidationError as exc:
            raise MalformedAnalysisError(str(exc)) from exc
        return payload.items

    async def validate_api_key(self, api_key: str) -> bool:
        """Check an API key against the provider."""
        return await self.client.validate_api_key(api_key)


def build_prompt(goals: DailyGoals) -> str:
    """Return the analysis prompt with the user's goals for goal alignment."""
    return (
        "Analyze this meal photo and list each food item. For each item provide:\n"
        "- name: descriptive name of the food\n"
        "- amount: estimated portion size as a number\n"
        "- unit: unit of measurement (oz, cup, g, piece, etc.)\n"
        "- calories, protein, carbs, fat: estimated calories and grams\n"
        "- health_breakdown: three scores from 0-100:\n"
        "  - nutrient_density: vitamins, minerals, fiber content\n"
        "  - processing_level: whole foods (high) vs processed foods (low)\n"
        "  - goal_alignment: how well it fits the user's goals "
        f"({goals.calories:.0f} cal, {goals.protein:.0f}g protein, "
        f"{goals.carbs:.0f}g carbs, {goals.fat:.0f}g fat)\n"
        "- health_score: nutrient_density * 0.33 + processing_level * 0.33 "
        "+ goal_alignment * 0.34, rounded\n"
        "- health_reason: brief technical explanation of the scores (1 sentence)\n"
        "- encouragement: positive, personal feedback on the benefits, gently "
        "noting areas for improvement if any (1-2 sentences)"
    )


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
