"""Supabase repository for user settings."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from macrolog.services.user_settings import UserSettingsRepository


@dataclass
class SupabaseUserSettingsRepository(UserSettingsRepository):
    """Supabase implementation storing settings as one JSON document."""

    client: Client

    def get_settings(self, device_id: str) -> dict[str, object] | None:
        """Return the stored settings document for a device."""
        response = (
            self.client.table("user_settings")
            .select("data")
            .eq("device_id", device_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        data = response.data[0].get("data")
        return data if isinstance(data, dict) else None

    def save_settings(self, device_id: str, data: dict[str, object]) -> None:
        """Upsert the settings document."""
        self.client.table("user_settings").upsert(
            {
                "device_id": device_id,
                "data": data,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="device_id",
        ).execute()

    def delete_settings(self, device_id: str) -> None:
        """Delete the settings row for a device."""
        self.client.table("user_settings").delete().eq("device_id", device_id).execute()
