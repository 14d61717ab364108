"""
Tests for migrating legacy browser-storage quota keys.
"""
import json

from app.quota.gate import LimitGate
from app.quota.ledger import QuotaLedger
from app.quota.store import InMemoryStore
from app.quota.viewed import ViewedSet
from scripts.migrate_quota import LEGACY_KEY_PATTERN, migrate_legacy_keys

DAY = "2025-06-01"


def viewed_json(*ids):
    return json.dumps([{"id": rid, "first_name": rid.upper()} for rid in ids])


def test_legacy_pattern_allows_underscores_in_user():
    match = LEGACY_KEY_PATTERN.match(f"contacts_view_count_user_2ab_c_{DAY}")
    assert match.group("user") == "user_2ab_c"
    assert match.group("day") == DAY


def test_migrates_one_pair():
    store = InMemoryStore()
    legacy = {
        f"contacts_view_count_u1_{DAY}": "2",
        f"viewed_contacts_u1_{DAY}": viewed_json("c1", "c2"),
        f"contacts_cache_u1_{DAY}": "[]",
    }

    result = migrate_legacy_keys(legacy, store, daily_cap=50)

    assert result["migrated_pairs"] == 1
    assert result["skipped_entries"] == 1
    assert store.get(f"quota:u1:{DAY}") == "2"
    assert store.get(f"limit:u1:{DAY}") is None
    assert ViewedSet(store).ids("u1", DAY) == {"c1", "c2"}
    assert ViewedSet(store).list("u1", DAY)[0].snapshot["first_name"] == "C1"


def test_count_is_clamped_to_entries_and_cap():
    store = InMemoryStore()
    legacy = {
        f"contacts_view_count_u1_{DAY}": "9",
        f"viewed_contacts_u1_{DAY}": viewed_json("c1", "c2", "c3", "c3"),
    }

    migrate_legacy_keys(legacy, store, daily_cap=2)

    assert store.get(f"quota:u1:{DAY}") == "2"
    assert QuotaLedger(store, daily_cap=2).is_limit_reached("u1", DAY) is True
    assert store.get(f"limit:u1:{DAY}") == "true"


def test_missing_count_falls_back_to_entries():
    store = InMemoryStore()
    migrate_legacy_keys({f"viewed_contacts_u1_{DAY}": viewed_json("c1", "c2", "c3")}, store)
    assert store.get(f"quota:u1:{DAY}") == "3"


def test_legacy_flag_kept_when_count_reaches_cap():
    store = InMemoryStore()
    legacy = {
        f"contacts_view_count_u1_{DAY}": "2",
        f"limit_reached_u1_{DAY}": "true",
        f"viewed_contacts_u1_{DAY}": viewed_json("c1", "c2"),
    }
    result = migrate_legacy_keys(legacy, store, daily_cap=2)

    assert store.get(f"limit:u1:{DAY}") == "true"
    assert result["errors"] == []


def test_unbacked_legacy_flag_is_dropped():
    """A flag whose viewed list is shorter than the cap would lock rows the gate still allows."""
    store = InMemoryStore()
    legacy = {
        f"contacts_view_count_u1_{DAY}": "53",
        f"limit_reached_u1_{DAY}": "true",
        f"viewed_contacts_u1_{DAY}": viewed_json("c1", "c2", "c3"),
    }

    result = migrate_legacy_keys(legacy, store, daily_cap=50)

    assert store.get(f"quota:u1:{DAY}") == "3"
    assert store.get(f"limit:u1:{DAY}") is None
    assert len(result["errors"]) == 1
    assert "Dropped legacy limit flag" in result["errors"][0]

    ledger = QuotaLedger(store, daily_cap=50)
    gate = LimitGate(ledger, ViewedSet(store))
    assert ledger.is_limit_reached("u1", DAY) is False
    assert gate.request_access("u1", DAY, "c99", {"id": "c99"}).allowed


def test_existing_pairs_are_skipped():
    store = InMemoryStore({f"quota:u1:{DAY}": "5"})
    result = migrate_legacy_keys({f"contacts_view_count_u1_{DAY}": "1"}, store)

    assert result["skipped_pairs"] == 1
    assert store.get(f"quota:u1:{DAY}") == "5"


def test_malformed_input_is_reported():
    store = InMemoryStore()
    legacy = {
        "something_else": "1",
        f"viewed_contacts_u1_{DAY}": "{not json",
        f"viewed_contacts_u2_{DAY}": json.dumps([{"first_name": "no id"}, {"id": "c9"}]),
    }

    result = migrate_legacy_keys(legacy, store)

    assert result["skipped_entries"] == 1
    assert len(result["errors"]) == 3
    assert store.get(f"quota:u1:{DAY}") == "0"
    assert ViewedSet(store).ids("u2", DAY) == {"c9"}


def test_dry_run_writes_nothing():
    store = InMemoryStore()
    result = migrate_legacy_keys({f"viewed_contacts_u1_{DAY}": viewed_json("c1")}, store, dry_run=True)

    assert result["migrated_pairs"] == 1
    assert store.keys() == []
