"""User settings service."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from pydantic import ValidationError

from macrolog.domain.settings import (
    Achievement,
    AppleHealthSettings,
    DailyGoals,
    StreakData,
    UserSettings,
    default_settings,
)

logger = logging.getLogger(__name__)

_NESTED_FIELDS = frozenset({"daily_goals", "streak", "apple_health"})


class InvalidGoalsError(ValueError):
    """Raised when daily goals are not all positive."""


class UserSettingsRepository(Protocol):
    """Persistence interface for user settings."""

    def get_settings(self, device_id: str) -> dict[str, object] | None:
        """Return the stored settings document, if any."""

    def save_settings(self, device_id: str, data: dict[str, object]) -> None:
        """Store the full settings document."""

    def delete_settings(self, device_id: str) -> None:
        """Remove stored settings for a device."""


@dataclass
class UserSettingsService:
    """Service for reading and updating device settings."""

    repository: UserSettingsRepository

    def get_settings(self, device_id: str) -> UserSettings:
        """Return stored settings reconciled with the current defaults."""
        return reconcile(self.repository.get_settings(device_id), default_settings())

    def save_settings(self, device_id: str, settings: UserSettings) -> None:
        """Persist a full settings document."""
        self.repository.save_settings(device_id, settings.model_dump(mode="json"))

    def get_daily_goals(self, device_id: str) -> DailyGoals:
        """Return the device's daily goals."""
        return self.get_settings(device_id).daily_goals

    def get_longest_streak(self, device_id: str) -> int:
        """Return the stored longest streak."""
        return self.get_settings(device_id).streak.longest_streak

    def update_daily_goals(
        self, device_id: str, calories: float, protein: float, carbs: float, fat: float
    ) -> DailyGoals:
        """Validate and persist new daily goals."""
        if min(calories, protein, carbs, fat) <= 0:
            raise InvalidGoalsError("All goals must be greater than 0")
        goals = DailyGoals(calories=calories, protein=protein, carbs=carbs, fat=fat)
        settings = self.get_settings(device_id)
        self.save_settings(
            device_id, settings.model_copy(update={"daily_goals": goals})
        )
        return goals

    def update_api_key(self, device_id: str, api_key: str | None) -> None:
        """Store or clear the device's own OpenAI API key."""
        settings = self.get_settings(device_id)
        cleaned = api_key.strip() if api_key else None
        self.save_settings(
            device_id, settings.model_copy(update={"openai_api_key": cleaned or None})
        )

    def update_streak(self, device_id: str, streak: StreakData) -> None:
        """Persist streak bookkeeping."""
        settings = self.get_settings(device_id)
        self.save_settings(device_id, settings.model_copy(update={"streak": streak}))

    def unlock_achievement(
        self, device_id: str, achievement_id: str, now: datetime | None = None
    ) -> bool:
        """Unlock one achievement; return False if unknown or already unlocked."""
        settings = self.get_settings(device_id)
        unlocked_at = now or datetime.now(tz=UTC)
        achievements = [
            achievement.model_copy(
                update={"unlocked": True, "unlocked_date": unlocked_at}
            )
            if achievement.id == achievement_id and not achievement.unlocked
            else achievement
            for achievement in settings.achievements
        ]
        if achievements == settings.achievements:
            return False
        self.save_settings(
            device_id, settings.model_copy(update={"achievements": achievements})
        )
        return True

    def enable_apple_health(self, device_id: str, permission_granted: bool) -> bool:
        """Enable Apple Health sync when permission was granted."""
        if not permission_granted:
            return False
        settings = self.get_settings(device_id)
        apple_health = AppleHealthSettings(enabled=True, permission_granted=True)
        self.save_settings(
            device_id, settings.model_copy(update={"apple_health": apple_health})
        )
        return True

    def disable_apple_health(self, device_id: str) -> None:
        """Turn off Apple Health sync, keeping the error bookkeeping."""
        settings = self.get_settings(device_id)
        apple_health = settings.apple_health.model_copy(update={"enabled": False})
        self.save_settings(
            device_id, settings.model_copy(update={"apple_health": apple_health})
        )

    def delete_settings(self, device_id: str) -> None:
        """Remove all stored settings for a device."""
        self.repository.delete_settings(device_id)


def reconcile(
    stored: Mapping[str, object] | None, defaults: UserSettings
) -> UserSettings:
    """Merge a stored, possibly partial or outdated, document over defaults.

    Nested objects are merged key by key, missing catalog achievements are
    appended, and invalid values fall back to their defaults at the key or
    achievement entry that failed, never the whole block.
    """
    if not stored:
        return defaults.model_copy(deep=True)
    base = defaults.model_dump()
    merged = dict(base)
    for name in UserSettings.model_fields:
        if name == "version" or name not in stored:
            continue
        value = stored[name]
        if name in _NESTED_FIELDS and isinstance(value, Mapping):
            merged[name] = {**base[name], **value}
        elif name == "achievements":
            merged[name] = _merge_achievements(value, base[name])
        else:
            merged[name] = value
    merged["version"] = defaults.version
    try:
        return UserSettings.model_validate(merged)
    except ValidationError as exc:
        locations = [error["loc"] for error in exc.errors() if error["loc"]]
    logger.warning(
        "Discarding invalid stored settings fields",
        extra={"fields": sorted({".".join(map(str, loc)) for loc in locations})},
    )
    repaired = _repair(merged, base, locations)
    try:
        return UserSettings.model_validate(repaired)
    except ValidationError as exc:
        invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        return UserSettings.model_validate(
            {**repaired, **{name: base[name] for name in invalid}}
        )


def record_health_sync(
    apple_health: AppleHealthSettings, success: bool, attempted_at: datetime
) -> AppleHealthSettings:
    """Return sync bookkeeping after an Apple Health write attempt."""
    return apple_health.model_copy(
        update={
            "sync_errors": 0 if success else apple_health.sync_errors + 1,
            "last_sync_attempt": attempted_at,
        }
    )


def _merge_achievements(
    stored: object, defaults: list[dict[str, object]]
) -> list[object]:
    if not isinstance(stored, list) or not stored:
        return list(defaults)
    known = {
        entry.get("id")
        for entry in stored
        if isinstance(entry, Mapping) and isinstance(entry.get("id"), str)
    }
    return [*stored, *(entry for entry in defaults if entry["id"] not in known)]


def _repair(
    merged: dict[str, object],
    base: dict[str, object],
    locations: list[tuple[int | str, ...]],
) -> dict[str, object]:
    """Reset only the invalid parts of a merged settings document.

    Nested fields fall back one key at a time. A bad achievement field takes
    its catalog value, or the model default for entries outside the catalog,
    so unlock state on the rest of the entry survives. Entries that cannot be
    repaired are dropped and their catalog entry is appended locked.
    """
    repaired = dict(merged)
    achievements = [
        dict(entry) if isinstance(entry, Mapping) else entry
        for entry in merged["achievements"]
    ]
    catalog = {entry["id"]: entry for entry in base["achievements"]}
    dropped: set[int] = set()
    for loc in locations:
        name = str(loc[0])
        if name == "achievements" and len(loc) > 1:
            index = int(loc[1])
            entry = achievements[index]
            field = str(loc[2]) if loc[2:] else None
            if field is None or not isinstance(entry, dict):
                dropped.add(index)
            elif isinstance(entry.get("id"), str) and entry["id"] in catalog:
                entry[field] = catalog[entry["id"]][field]
            elif not Achievement.model_fields[field].is_required():
                entry[field] = Achievement.model_fields[field].get_default()
            else:
                dropped.add(index)
        elif len(loc) > 1 and isinstance(repaired[name], Mapping):
            repaired[name] = {**repaired[name], loc[1]: base[name][loc[1]]}
        else:
            repaired[name] = base[name]
    kept = [entry for index, entry in enumerate(achievements) if index not in dropped]
    repaired["achievements"] = _merge_achievements(kept, base["achievements"])
    return repaired
