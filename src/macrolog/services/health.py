"""Apple Health sync service."""

import logging
from dataclasses import dataclass
from typing import Protocol

from macrolog.domain.meals import Meal

logger = logging.getLogger(__name__)


class HealthSyncClient(Protocol):
    """Interface for writing nutrition to a health store."""

    def is_available(self) -> bool:
        """Return True when the health store can be reached."""

    async def request_permissions(self) -> bool:
        """Ask for write access and return whether it was granted."""

    async def write_meal(self, meal: Meal) -> bool:
        """Write a meal's calories and macros; return True on success."""


@dataclass
class HealthSyncService:
    """Service that writes meals to the health store without raising."""

    client: HealthSyncClient

    def is_available(self) -> bool:
        """Return True when the health store can be reached."""
        return self.client.is_available()

    async def request_permissions(self) -> bool:
        """Request permissions, returning False when unavailable."""
        if not self.client.is_available():
            return False
        try:
            return await self.client.request_permissions()
        except Exception:
            logger.exception("Health permission request failed")
            return False

    async def sync_meal(self, meal: Meal) -> bool:
        """Write a meal to the health store; failures are logged and reported."""
        if not self.client.is_available():
            return False
        try:
            return await self.client.write_meal(meal)
        except Exception:
            logger.exception(
                "Failed to write meal to health store",
                extra={"meal_id": str(meal.id)},
            )
            return False
