"""
Per-day set of unlocked records, kept in first-unlock order.
"""

import json
import logging
from typing import List, Optional, Set

from .keys import viewed_key
from .ledger import MAX_CAS_RETRIES
from .models import QuotaContentionError, ViewedEntry
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class ViewedSet:
    """Records unlocked by a user on a given day, with their snapshots."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _decode(self, key: str, raw: Optional[str]) -> List[ViewedEntry]:
        """Decode the persisted list. Malformed payloads read as empty; bad items are skipped."""
        if raw is None:
            return []

        try:
            items = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Corrupt viewed list at {key}, treating as empty")
            return []

        if not isinstance(items, list):
            logger.warning(f"Viewed list at {key} is not a list, treating as empty")
            return []

        entries = []
        seen = set()
        for item in items:
            try:
                entry = ViewedEntry.from_dict(item)
            except ValueError as e:
                logger.warning(f"Skipping malformed viewed entry at {key}: {e}")
                continue
            if entry.id in seen:
                continue
            seen.add(entry.id)
            entries.append(entry)
        return entries

    @staticmethod
    def _encode(entries: List[ViewedEntry]) -> str:
        return json.dumps([entry.to_dict() for entry in entries], ensure_ascii=False)

    def list(self, user: str, day: str) -> List[ViewedEntry]:
        """Entries for (user, day) in first-unlock order."""
        key = viewed_key(user, day)
        return self._decode(key, self.store.get(key))

    def ids(self, user: str, day: str) -> Set[str]:
        return {entry.id for entry in self.list(user, day)}

    def has(self, user: str, day: str, record_id: str) -> bool:
        record_id = str(record_id)
        return any(entry.id == record_id for entry in self.list(user, day))

    def add(self, user: str, day: str, entry: ViewedEntry) -> bool:
        """
        Append ``entry`` unless its id is already present.

        Returns:
            True if the entry was appended, False if it was already there

        Raises:
            QuotaContentionError: if the write kept losing to other writers
        """
        key = viewed_key(user, day)
        for _ in range(MAX_CAS_RETRIES):
            raw = self.store.get(key)
            entries = self._decode(key, raw)
            if any(existing.id == entry.id for existing in entries):
                return False

            entries.append(entry)
            if self.store.compare_and_set(key, raw, self._encode(entries)):
                logger.debug(f"Added {entry.id} to {key} ({len(entries)} entries)")
                return True

        raise QuotaContentionError(f"Could not update {key} after {MAX_CAS_RETRIES} attempts")
