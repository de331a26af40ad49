"""Calendar-day helpers.

Day keys are taken from the UTC date of an instant, not the device-local
date, so meals logged late in the evening west of UTC land on the next day.
"""

from datetime import UTC, date, datetime, timedelta


def day_key(value: datetime | date) -> str:
    """Return the ``YYYY-MM-DD`` key for an instant or a calendar date."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).date().isoformat()
    return value.isoformat()


def today_key(now: datetime | None = None) -> str:
    """Return today's day key."""
    return day_key(now or datetime.now(tz=UTC))


def is_today(value: datetime | date, now: datetime | None = None) -> bool:
    """Return True when the value falls on today's day key."""
    return day_key(value) == today_key(now)


def last_7_days(now: datetime | None = None) -> list[date]:
    """Return the seven days ending today, oldest first."""
    today = date.fromisoformat(today_key(now))
    return [today - timedelta(days=offset) for offset in range(6, -1, -1)]
