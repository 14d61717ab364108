"""
Factory for creating quota management components.
"""

from pathlib import Path
from typing import Optional

from .gate import Clock, LimitGate
from .ledger import QuotaLedger
from .maintenance import prune_expired_keys
from .models import QuotaConfig
from .routes import create_quota_blueprint
from .store import JsonFileStore, KeyValueStore
from .viewed import ViewedSet


def create_quota_module(
    store_file: Path,
    config: Optional[QuotaConfig] = None,
    user_service=None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
) -> dict:
    """
    Create quota management module.

    Args:
        store_file: JSON file backing the shared store (ignored when ``store`` is given)
        config: Cap, sync interval and retention settings
        user_service: Identity provider; the blueprint is only built when given
        store: Pre-built store, e.g. an InMemoryStore in tests
        clock: Time source for the gate

    Returns:
        Dictionary with:
        - store: KeyValueStore instance
        - ledger: QuotaLedger instance
        - viewed_set: ViewedSet instance
        - gate: LimitGate instance
        - config: QuotaConfig instance
        - blueprint: Flask blueprint, or None without a user service
    """
    config = config or QuotaConfig()
    store = store if store is not None else JsonFileStore(store_file)

    ledger = QuotaLedger(store, daily_cap=config.daily_cap)
    viewed_set = ViewedSet(store)
    gate = LimitGate(ledger, viewed_set, clock=clock)

    if config.retention_days > 0:
        prune_expired_keys(store, config.retention_days, now=gate.clock())

    blueprint = None
    if user_service is not None:
        blueprint = create_quota_blueprint(gate, user_service, retention_days=config.retention_days)

    return {
        "store": store,
        "ledger": ledger,
        "viewed_set": viewed_set,
        "gate": gate,
        "config": config,
        "blueprint": blueprint
    }
