"""Logging streak calculation."""

from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta

from macrolog.domain.meals import Meal
from macrolog.domain.progress import StreakResult
from macrolog.domain.settings import StreakData
from macrolog.services.dates import day_key


def calculate_streak(
    meals: Iterable[Meal], now: datetime | None = None
) -> StreakResult:
    """Return the consecutive-day streak ending at the most recent logged day.

    The streak only counts as active when the most recent logged day is today
    or yesterday. A broken streak is reported as zero while still returning
    the stale last logged day.
    """
    logged_days = {date.fromisoformat(day_key(meal.timestamp)) for meal in meals}
    if not logged_days:
        return StreakResult(current_streak=0, last_logged_date=None)

    ordered = sorted(logged_days, reverse=True)
    last_logged = ordered[0]
    today = date.fromisoformat(day_key(now or datetime.now(tz=UTC)))
    if last_logged not in {today, today - timedelta(days=1)}:
        return StreakResult(current_streak=0, last_logged_date=last_logged.isoformat())

    streak = 0
    expected = last_logged
    while expected in logged_days:
        streak += 1
        expected -= timedelta(days=1)
    return StreakResult(current_streak=streak, last_logged_date=last_logged.isoformat())


def update_streak(previous: StreakData, result: StreakResult) -> StreakData:
    """Return stored streak data updated with a freshly computed streak."""
    return StreakData(
        current_streak=result.current_streak,
        longest_streak=max(result.current_streak, previous.longest_streak),
        last_logged_date=result.last_logged_date,
    )
