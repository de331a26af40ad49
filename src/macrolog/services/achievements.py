"""Achievement unlock evaluation."""

from collections.abc import Iterable
from datetime import UTC, datetime

from macrolog.domain.progress import AchievementEvaluation
from macrolog.domain.settings import Achievement


def evaluate_achievements(
    current_streak: int,
    achievements: Iterable[Achievement],
    now: datetime | None = None,
) -> AchievementEvaluation:
    """Unlock every locked achievement whose threshold the streak has reached.

    Entries keep their catalog order. Achievements that are already unlocked
    are returned unchanged and never counted as new.
    """
    unlocked_at = now or datetime.now(tz=UTC)
    updated: list[Achievement] = []
    newly_unlocked: list[Achievement] = []
    for achievement in achievements:
        if achievement.unlocked or current_streak < achievement.threshold:
            updated.append(achievement)
            continue
        unlocked = achievement.model_copy(
            update={"unlocked": True, "unlocked_date": unlocked_at}
        )
        updated.append(unlocked)
        newly_unlocked.append(unlocked)
    return AchievementEvaluation(achievements=updated, newly_unlocked=newly_unlocked)
