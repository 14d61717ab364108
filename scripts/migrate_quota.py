#!/usr/bin/env python3
"""
Migration script for the legacy browser-storage quota layout.

The first version of the contact directory kept quota state in browser storage
under one key per (user, day). An export of that storage is a flat JSON object:

{
  "contacts_view_count_user_123_2025-06-01": "3",
  "limit_reached_user_123_2025-06-01": "true",
  "viewed_contacts_user_123_2025-06-01": "[{\"id\": \"c1\", \"first_name\": \"Ada\"}, ...]",
  "contacts_cache_user_123_2025-06-01": "[...]"
}

This script rewrites it into the shared quota store layout:

  quota:{user}:{day}, limit:{user}:{day}, viewed:{user}:{day}

Counts are clamped to the daily cap and to the number of viewed entries so
the store invariants hold after migration. The limit flag is only written
when the migrated count reaches the cap; a legacy flag that the viewed list
does not back up is reported and dropped. Pairs already present in the store
are left untouched. Cached contact lists are not migrated.

Usage:
    python scripts/migrate_quota.py EXPORT_FILE [--dry-run] [--store-file STORE_FILE] [--daily-cap N]
"""

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Dict, Tuple

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.quota.keys import limit_key, quota_key, viewed_key
from app.quota.ledger import LIMIT_FLAG_VALUE, parse_count
from app.quota.models import DEFAULT_DAILY_CAP, ViewedEntry
from app.quota.store import JsonFileStore, KeyValueStore

LEGACY_KEY_PATTERN = re.compile(
    r"^(?P<kind>contacts_view_count|limit_reached|viewed_contacts|contacts_cache)_(?P<user>.+)_(?P<day>\d{4}-\d{2}-\d{2})$"
)


def group_legacy_entries(legacy: Dict[str, str], result: dict) -> Dict[Tuple[str, str], Dict[str, str]]:
    """Group legacy keys by (user, day)."""
    groups: Dict[Tuple[str, str], Dict[str, str]] = {}
    for key, value in legacy.items():
        match = LEGACY_KEY_PATTERN.match(key)
        if not match:
            result["skipped_entries"] += 1
            result["errors"].append(f"Unrecognized key: {key}")
            continue
        if match.group("kind") == "contacts_cache":
            result["skipped_entries"] += 1
            continue
        pair = (match.group("user"), match.group("day"))
        groups.setdefault(pair, {})[match.group("kind")] = value
    return groups


def parse_legacy_viewed(raw, result: dict, label: str) -> list:
    """Turn a legacy viewed-contacts list into unique entries, first occurrence wins."""
    if raw is None:
        return []
    try:
        items = json.loads(raw) if isinstance(raw, str) else raw
    except ValueError:
        result["errors"].append(f"Malformed viewed list for {label}")
        return []
    if not isinstance(items, list):
        result["errors"].append(f"Viewed list for {label} is not a list")
        return []

    entries = []
    seen = set()
    for item in items:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            result["errors"].append(f"Skipped viewed contact without id for {label}")
            continue
        rid = str(item["id"])
        if rid in seen:
            continue
        seen.add(rid)
        entries.append(ViewedEntry(id=rid, snapshot=item))
    return entries


def migrate_legacy_keys(legacy: Dict[str, str], store: KeyValueStore,
                        daily_cap: int = DEFAULT_DAILY_CAP, dry_run: bool = False) -> dict:
    """
    Migrate exported legacy keys into ``store``.

    Args:
        legacy: Flat mapping of legacy storage keys to their text values
        store: Destination store
        daily_cap: Cap used to clamp counts and derive the sticky flag
        dry_run: If True, only report what would be written

    Returns:
        Migration result dict with statistics
    """
    result = {
        "migrated_pairs": 0,
        "skipped_pairs": 0,
        "skipped_entries": 0,
        "errors": []
    }

    groups = group_legacy_entries(legacy, result)

    for (user, day), values in sorted(groups.items()):
        label = f"{user} on {day}"
        existing = [k for k in (quota_key(user, day), limit_key(user, day), viewed_key(user, day))
                    if store.get(k) is not None]
        if existing:
            print(f"   ⏭️  Skipping {label} (already in store)")
            result["skipped_pairs"] += 1
            continue

        entries = parse_legacy_viewed(values.get("viewed_contacts"), result, label)
        count = parse_count(values.get("contacts_view_count"))
        if count is None:
            count = len(entries)
        count = min(count, len(entries), daily_cap)
        reached = count >= daily_cap
        if values.get("limit_reached") == "true" and not reached:
            result["errors"].append(
                f"Dropped legacy limit flag for {label}: count {count} is below the cap of {daily_cap}"
            )

        if not dry_run:
            with store.lock():
                store.set(viewed_key(user, day), json.dumps([e.to_dict() for e in entries], ensure_ascii=False))
                store.set(quota_key(user, day), str(count))
                if reached:
                    store.set(limit_key(user, day), LIMIT_FLAG_VALUE)

        result["migrated_pairs"] += 1
        print(f"   ✅ Migrated {label}: count={count}, viewed={len(entries)}, limit_reached={reached}")

    return result


def main():
    parser = argparse.ArgumentParser(
        description="Migrate an export of legacy browser-storage quota keys into the quota store"
    )
    parser.add_argument("export_file", type=Path, help="JSON object of legacy storage keys")
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Show what would be done without making changes"
    )
    parser.add_argument(
        "--store-file",
        type=Path,
        default=Path(__file__).parent.parent / "data" / "quota_store.json",
        help="Quota store file (default: ./data/quota_store.json)"
    )
    parser.add_argument("--daily-cap", type=int, default=DEFAULT_DAILY_CAP,
                        help=f"Daily cap used to clamp counts (default: {DEFAULT_DAILY_CAP})")

    args = parser.parse_args()

    print("🚀 Quota Migration Tool")
    print("=" * 50)
    print(f"Export file: {args.export_file}")
    print(f"Store file: {args.store_file}")
    print(f"Dry run: {args.dry_run}")
    print()

    try:
        with open(args.export_file, 'r', encoding='utf-8') as f:
            legacy = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Error loading {args.export_file}: {e}")
        sys.exit(1)

    if not isinstance(legacy, dict):
        print(f"❌ {args.export_file} must hold a JSON object")
        sys.exit(1)

    store = JsonFileStore(args.store_file)
    result = migrate_legacy_keys(legacy, store, daily_cap=args.daily_cap, dry_run=args.dry_run)

    if args.dry_run:
        print("\n🔍 DRY RUN - No changes made")

    print()
    print("📊 Migration Summary:")
    print(f"   - Migrated (user, day) pairs: {result['migrated_pairs']}")
    print(f"   - Skipped pairs: {result['skipped_pairs']}")
    print(f"   - Skipped keys: {result['skipped_entries']}")
    print(f"   - Problems: {len(result['errors'])}")

    if result["errors"]:
        print("\n⚠️  Problems encountered:")
        for error in result["errors"]:
            print(f"   - {error}")

    print("\n✅ Migration complete!")


if __name__ == "__main__":
    main()
