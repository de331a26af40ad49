"""Domain models for streaks and achievements."""

from dataclasses import dataclass

from macrolog.domain.settings import Achievement


@dataclass(frozen=True)
class StreakResult:
    """Streak derived from a meal history."""

    current_streak: int
    last_logged_date: str | None


@dataclass(frozen=True)
class AchievementEvaluation:
    """Outcome of checking the achievement catalog against a streak."""

    achievements: list[Achievement]
    newly_unlocked: list[Achievement]

    @property
    def celebration(self) -> Achievement | None:
        """Return the first newly unlocked achievement, if any."""
        return self.newly_unlocked[0] if self.newly_unlocked else None
