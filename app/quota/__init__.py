"""
Daily unlock quota for detail records.
A user may unlock a fixed number of distinct records per UTC day; records
unlocked earlier that day stay open after the cap is reached.
"""

from .models import (
    AccessDecision,
    AccessResult,
    QuotaConfig,
    QuotaContentionError,
    QuotaError,
    UsageSnapshot,
    ViewedEntry,
)
from .store import KeyValueStore, InMemoryStore, JsonFileStore
from .ledger import QuotaLedger
from .viewed import ViewedSet
from .gate import LimitGate
from .sync import SyncObserver

__all__ = [
    "AccessDecision",
    "AccessResult",
    "QuotaConfig",
    "QuotaContentionError",
    "QuotaError",
    "UsageSnapshot",
    "ViewedEntry",
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "QuotaLedger",
    "ViewedSet",
    "LimitGate",
    "SyncObserver",
]
