"""
Retention pruning for old per-day quota keys.

The gate never deletes anything; a day rollover only changes which keys are
read. Without this pass the store grows by one set of keys per user per day.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from . import day_key
from .keys import KEY_PREFIXES, parse_key
from .store import KeyValueStore

logger = logging.getLogger(__name__)


def expired_keys(store: KeyValueStore, retention_days: int, now: Optional[datetime] = None) -> List[str]:
    """
    List quota keys whose day falls outside the retention window.

    Args:
        store: Store to scan
        retention_days: Past days to keep besides today (0 keeps only today)
        now: Reference time, defaults to the current UTC time

    Returns:
        Sorted list of keys older than ``today - retention_days``
    """
    if retention_days < 0:
        raise ValueError(f"retention_days must be non-negative, got {retention_days}")

    current_day = day_key.parse_day(day_key.today(now))
    cutoff = day_key.today(current_day - timedelta(days=retention_days))

    expired = []
    for prefix in KEY_PREFIXES:
        for key in store.keys(f"{prefix}:"):
            parsed = parse_key(key)
            if parsed is not None and parsed.day < cutoff:
                expired.append(key)
    return sorted(expired)


def prune_expired_keys(store: KeyValueStore, retention_days: int,
                       now: Optional[datetime] = None, dry_run: bool = False) -> List[str]:
    """Delete quota keys older than the retention window. Returns the keys pruned (or that would be)."""
    keys = expired_keys(store, retention_days, now)

    if dry_run:
        logger.info(f"Dry run - {len(keys)} expired quota keys would be pruned")
        return keys

    removed = store.delete_many(keys) if keys else 0
    logger.info(f"Pruned {removed} expired quota keys (retention: {retention_days} days)")
    return keys
