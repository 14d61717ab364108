"""
Per-day unlock counters and the sticky "limit reached" flag.
"""

import logging
import re
from typing import Optional

from .keys import limit_key, quota_key
from .models import DEFAULT_DAILY_CAP, QuotaContentionError
from .store import KeyValueStore

logger = logging.getLogger(__name__)

LIMIT_FLAG_VALUE = "true"
MAX_CAS_RETRIES = 16

_COUNT_PATTERN = re.compile(r"^[0-9]+$")


def parse_count(raw: Optional[str]) -> Optional[int]:
    """Parse a persisted count. Returns None when the value is not a non-negative integer."""
    if raw is None:
        return None
    text = raw.strip() if isinstance(raw, str) else ""
    if not _COUNT_PATTERN.match(text):
        return None
    return int(text)


class QuotaLedger:
    """
    Tracks how many distinct records each user unlocked per UTC day.

    Counts live under ``quota:{user}:{day}`` and the sticky flag under
    ``limit:{user}:{day}``. Nothing here ever deletes a day's keys.
    """

    def __init__(self, store: KeyValueStore, daily_cap: int = DEFAULT_DAILY_CAP):
        """
        Initialize QuotaLedger.

        Args:
            store: Shared key-value store
            daily_cap: Distinct unlocks allowed per user per day
        """
        if daily_cap < 0:
            raise ValueError(f"daily_cap must be non-negative, got {daily_cap}")
        self.store = store
        self.daily_cap = daily_cap

    def get_count(self, user: str, day: str) -> int:
        """Read the count for (user, day). Missing or corrupt values read as 0."""
        key = quota_key(user, day)
        raw = self.store.get(key)
        count = parse_count(raw)
        if count is None:
            if raw is not None:
                logger.warning(f"Corrupt quota count {raw!r} at {key}, treating as 0")
            return 0
        return count

    def increment(self, user: str, day: str, by: int = 1) -> int:
        """
        Add ``by`` to the count and return the new value.

        Uses compare-and-set so concurrent writers never lose an increment.

        Raises:
            ValueError: if ``by`` is negative (counts never go down within a day)
            QuotaContentionError: if the write kept losing to other writers
        """
        if by < 0:
            raise ValueError(f"increment must be non-negative, got {by}")

        key = quota_key(user, day)
        for _ in range(MAX_CAS_RETRIES):
            raw = self.store.get(key)
            current = parse_count(raw) or 0
            new_count = current + by
            if self.store.compare_and_set(key, raw, str(new_count)):
                logger.debug(f"Incremented {key}: {current} -> {new_count}")
                return new_count

        raise QuotaContentionError(f"Could not increment {key} after {MAX_CAS_RETRIES} attempts")

    def is_flag_set(self, user: str, day: str) -> bool:
        return self.store.get(limit_key(user, day)) == LIMIT_FLAG_VALUE

    def mark_limit_reached(self, user: str, day: str) -> None:
        """Persist the sticky flag. It stays set until the day rolls over."""
        if self.is_flag_set(user, day):
            return
        self.store.set(limit_key(user, day), LIMIT_FLAG_VALUE)
        logger.info(f"Daily limit reached: user={user}, day={day}, cap={self.daily_cap}")

    def is_limit_reached(self, user: str, day: str) -> bool:
        """
        Sticky flag OR count >= cap.

        A count-derived True is written back as the flag, so a later low read
        of the count (e.g. an undercount from an old writer) cannot flip it.
        """
        if self.is_flag_set(user, day):
            return True

        if self.get_count(user, day) >= self.daily_cap:
            self.mark_limit_reached(user, day)
            return True

        return False

    def remaining(self, user: str, day: str) -> int:
        return max(0, self.daily_cap - self.get_count(user, day))
