"""
UTC calendar-day keys.

Every piece of per-day quota state is namespaced by the UTC date, so the
midnight reset is nothing more than ``today()`` starting to return a new key.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

DAY_FORMAT = "%Y-%m-%d"
ONE_DAY = timedelta(days=1)

_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _as_utc(now: Optional[datetime]) -> datetime:
    """Normalize ``now`` to an aware UTC datetime. Naive values are taken as UTC."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def today(now: Optional[datetime] = None) -> str:
    """Return the UTC calendar date of ``now`` as ``YYYY-MM-DD``."""
    return _as_utc(now).strftime(DAY_FORMAT)


def next_rollover(now: Optional[datetime] = None) -> datetime:
    """Return the first UTC midnight strictly after ``now``."""
    current = _as_utc(now)
    midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + ONE_DAY


def time_until_next_rollover(now: Optional[datetime] = None) -> timedelta:
    """
    Time left until the next UTC midnight, rounded down to whole minutes.

    Exactly at midnight this is a full day; it never goes negative.
    """
    current = _as_utc(now)
    remaining = next_rollover(current) - current
    whole_minutes = int(remaining.total_seconds() // 60)
    return timedelta(minutes=max(0, whole_minutes))


def format_duration(delta: timedelta) -> str:
    """Render a duration the way the reset banner shows it, e.g. ``3h 12m``."""
    total_minutes = max(0, int(delta.total_seconds() // 60))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def is_valid_day(day: str) -> bool:
    """Check that ``day`` is a real calendar date in ``YYYY-MM-DD`` form."""
    if not isinstance(day, str) or not _DAY_PATTERN.match(day):
        return False
    try:
        datetime.strptime(day, DAY_FORMAT)
    except ValueError:
        return False
    return True


def parse_day(day: str) -> datetime:
    """Parse a day key into an aware UTC midnight."""
    return datetime.strptime(day, DAY_FORMAT).replace(tzinfo=timezone.utc)
