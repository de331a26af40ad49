"""Health client for deployments without a reachable health store."""

from dataclasses import dataclass

from macrolog.domain.meals import Meal
from macrolog.services.health import HealthSyncClient


@dataclass
class UnavailableHealthClient(HealthSyncClient):
    """HealthKit lives on the device; the server always reports it unavailable."""

    def is_available(self) -> bool:
        """Return False."""
        return False

    async def request_permissions(self) -> bool:
        """Return False."""
        return False

    async def write_meal(self, meal: Meal) -> bool:
        """Return False without writing."""
        return False
