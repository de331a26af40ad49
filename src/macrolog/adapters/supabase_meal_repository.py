"""Supabase repository for meals."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from macrolog.domain.meals import FoodItem, Meal
from macrolog.services.meals import MealRepository


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals."""

    client: Client

    def list_meals(self, device_id: str) -> list[Meal]:
        """Return meals for a device, newest first."""
        response = (
            self.client.table("meals")
            .select(
                "id, logged_at, items, total_calories, total_protein, total_carbs, "
                "total_fat, health_score, synced_to_apple_health"
            )
            .eq("device_id", device_id)
            .order("logged_at", desc=True)
            .execute()
        )
        return [_parse_row(row) for row in response.data or []]

    def add_meal(self, device_id: str, meal: Meal) -> None:
        """Insert a meal row with its items as JSON."""
        response = (
            self.client.table("meals")
            .insert(
                {
                    "id": str(meal.id),
                    "device_id": device_id,
                    "logged_at": meal.timestamp.isoformat(),
                    "items": [item.model_dump(mode="json") for item in meal.items],
                    "total_calories": meal.total_calories,
                    "total_protein": meal.total_protein,
                    "total_carbs": meal.total_carbs,
                    "total_fat": meal.total_fat,
                    "health_score": meal.health_score,
                    "synced_to_apple_health": meal.synced_to_apple_health,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create meal")

    def delete_meal(self, device_id: str, meal_id: UUID) -> bool:
        """Delete a meal and report whether a row was removed."""
        response = (
            self.client.table("meals")
            .delete()
            .eq("device_id", device_id)
            .eq("id", str(meal_id))
            .execute()
        )
        return bool(response.data)

    def delete_all_meals(self, device_id: str) -> None:
        """Delete every meal for a device."""
        self.client.table("meals").delete().eq("device_id", device_id).execute()


def _parse_row(row: dict[str, object]) -> Meal:
    health_score = row.get("health_score")
    return Meal(
        id=UUID(str(row["id"])),
        timestamp=datetime.fromisoformat(str(row["logged_at"])),
        items=[FoodItem.model_validate(item) for item in row.get("items") or []],
        total_calories=float(row.get("total_calories") or 0.0),
        total_protein=float(row.get("total_protein") or 0.0),
        total_carbs=float(row.get("total_carbs") or 0.0),
        total_fat=float(row.get("total_fat") or 0.0),
        health_score=int(health_score) if health_score is not None else None,
        synced_to_apple_health=bool(row.get("synced_to_apple_health")),
    )
