"""Domain models for per-device user settings."""

from pydantic import AwareDatetime, BaseModel, Field

SETTINGS_VERSION = 1


class DailyGoals(BaseModel):
    """Daily nutrition targets."""

    calories: float = Field(gt=0)
    protein: float = Field(gt=0)
    carbs: float = Field(gt=0)
    fat: float = Field(gt=0)


class StreakData(BaseModel):
    """Persisted streak bookkeeping."""

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_logged_date: str | None = None


class Achievement(BaseModel):
    """Streak milestone that unlocks once."""

    id: str
    name: str
    description: str
    threshold: int = Field(gt=0)
    emoji: str
    unlocked: bool = False
    unlocked_date: AwareDatetime | None = None


class AppleHealthSettings(BaseModel):
    """Apple Health sync preferences and error bookkeeping."""

    enabled: bool = False
    permission_granted: bool = False
    last_sync_attempt: AwareDatetime | None = None
    sync_errors: int = Field(default=0, ge=0)


class UserSettings(BaseModel):
    """All settings stored for a device."""

    version: int = SETTINGS_VERSION
    openai_api_key: str | None = None
    daily_goals: DailyGoals
    streak: StreakData
    achievements: list[Achievement]
    apple_health: AppleHealthSettings


DEFAULT_ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        id="week_warrior",
        name="Week Warrior",
        description="One full week of consistency",
        threshold=7,
        emoji="🔥",
    ),
    Achievement(
        id="habit_builder",
        name="Habit Builder",
        description="Three weeks of tracking",
        threshold=21,
        emoji="⭐",
    ),
    Achievement(
        id="streak_master",
        name="Streak Master",
        description="Five weeks strong",
        threshold=35,
        emoji="💪",
    ),
    Achievement(
        id="dedication",
        name="Dedication",
        description="50 days of commitment",
        threshold=50,
        emoji="🏆",
    ),
    Achievement(
        id="century_club",
        name="Century Club",
        description="100 days milestone",
        threshold=100,
        emoji="💎",
    ),
    Achievement(
        id="year_champion",
        name="Year Champion",
        description="Full year of tracking",
        threshold=365,
        emoji="👑",
    ),
)


def default_settings() -> UserSettings:
    """Return a fresh copy of the default settings."""
    return UserSettings(
        daily_goals=DailyGoals(calories=2000, protein=150, carbs=200, fat=65),
        streak=StreakData(),
        achievements=[achievement.model_copy() for achievement in DEFAULT_ACHIEVEMENTS],
        apple_health=AppleHealthSettings(),
    )
