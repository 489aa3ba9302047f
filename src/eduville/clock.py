"""UTC time helpers shared by the engine.

Storage backends without timezone support hand back naive datetimes; every
comparison goes through :func:`as_utc` so stored and injected clocks agree.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime, convert an aware one."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_now(now: datetime | None) -> datetime:
    """Return the injected clock value or the current time, always in UTC."""
    return utcnow() if now is None else as_utc(now)



def get_week_boundaries(dt: datetime) -> tuple[datetime, datetime]:
    """(Monday 00:00 UTC, next Monday 00:00 UTC) for the ISO week containing dt."""
    day = as_utc(dt).date()
    monday = day - timedelta(days=day.weekday())
    start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(weeks=1)
