"""
Persisted key layout for quota state.

    quota:{user}:{day}   -> base-10 count
    limit:{user}:{day}   -> "true" once the cap was reached
    viewed:{user}:{day}  -> JSON array of viewed entries
"""

from typing import NamedTuple, Optional

from .day_key import is_valid_day

QUOTA_PREFIX = "quota"
LIMIT_PREFIX = "limit"
VIEWED_PREFIX = "viewed"

KEY_PREFIXES = (QUOTA_PREFIX, LIMIT_PREFIX, VIEWED_PREFIX)


class ParsedKey(NamedTuple):
    prefix: str
    user: str
    day: str


def quota_key(user: str, day: str) -> str:
    return f"{QUOTA_PREFIX}:{user}:{day}"


def limit_key(user: str, day: str) -> str:
    return f"{LIMIT_PREFIX}:{user}:{day}"


def viewed_key(user: str, day: str) -> str:
    return f"{VIEWED_PREFIX}:{user}:{day}"


def parse_key(key: str) -> Optional[ParsedKey]:
    """
    Split a quota key back into its parts.

    User ids are opaque and may contain ``:``; the day is always the last
    segment, so split from both ends.

    Returns:
        ParsedKey, or None if the key does not belong to the quota layout
    """
    prefix, sep, rest = key.partition(":")
    if not sep or prefix not in KEY_PREFIXES:
        return None

    user, sep, day = rest.rpartition(":")
    if not sep or not user or not is_valid_day(day):
        return None

    return ParsedKey(prefix=prefix, user=user, day=day)
