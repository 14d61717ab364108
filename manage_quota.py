#!/usr/bin/env python3
"""
Quota store management script:
- usage   (show one user's counters for a day)
- viewed  (list the records a user unlocked on a day)
- prune   (delete per-day keys older than the retention window)
- watch   (follow one user's quota state live)
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from config_manager import ConfigManager
from app.quota.day_key import is_valid_day
from app.quota.factory import create_quota_module
from app.quota.maintenance import prune_expired_keys
from app.quota.models import QuotaConfig, UsageSnapshot
from app.quota.sync import SyncObserver

# Set up logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent


def build_quota_module(store_file: Path, config: QuotaConfig) -> dict:
    """Open the store without pruning on start-up; pruning is an explicit command here."""
    no_prune = QuotaConfig(
        daily_cap=config.daily_cap,
        sync_interval_seconds=config.sync_interval_seconds,
        retention_days=0
    )
    module = create_quota_module(store_file=store_file, config=no_prune)
    module["config"] = config
    return module


def resolve_store_file(paths_config) -> Path:
    """Configured store file; a relative data_dir is taken from the project root, as the web app does."""
    data_dir = Path(paths_config.data_dir)
    if not data_dir.is_absolute():
        data_dir = BASE_DIR / data_dir
    return data_dir / paths_config.store_file


def resolve_day(gate, day: Optional[str]) -> str:
    if day is None:
        return gate.today()
    if not is_valid_day(day):
        raise SystemExit(f"Invalid day {day!r}, expected YYYY-MM-DD")
    return day


def print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def cmd_usage(module: dict, args) -> None:
    gate = module["gate"]
    day = resolve_day(gate, args.day)
    print_json(gate.current_usage(args.user, day).to_dict())


def cmd_viewed(module: dict, args) -> None:
    gate = module["gate"]
    day = resolve_day(gate, args.day)
    entries = gate.viewed_today(args.user, day)
    print_json({
        "user": args.user,
        "day": day,
        "count": len(entries),
        "viewed": [entry.to_dict() for entry in entries]
    })


def cmd_prune(module: dict, args) -> None:
    retention_days = args.retention_days
    if retention_days is None:
        retention_days = module["config"].retention_days
    keys = prune_expired_keys(module["store"], retention_days, dry_run=args.dry_run)
    print_json({
        "retention_days": retention_days,
        "dry_run": args.dry_run,
        "pruned": len(keys),
        "keys": keys
    })


def cmd_watch(module: dict, args) -> None:
    interval = args.interval or module["config"].sync_interval_seconds
    observer = SyncObserver(module["gate"], args.user, interval=interval)

    @observer.on_change
    def show(snapshot: UsageSnapshot) -> None:
        state = "LIMIT REACHED" if snapshot.limit_reached else f"{snapshot.remaining} left"
        print(f"[{snapshot.day}] {snapshot.user}: {snapshot.used}/{snapshot.cap} ({state}), "
              f"{len(snapshot.viewed)} viewed, resets in {snapshot.resets_in}")

    logger.info(f"Watching quota for {args.user}, press Ctrl+C to stop")
    with observer:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass


def main(argv=None):
    parser = argparse.ArgumentParser(description="Quota store management script")
    parser.add_argument("--config", default="web_app_config.json",
                       help="Path to the app config file")
    parser.add_argument("--store-file", type=Path,
                       help="Quota store JSON file (defaults to the configured one)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    usage_parser = subparsers.add_parser("usage", help="Show a user's counters for a day")
    usage_parser.add_argument("--user", required=True)
    usage_parser.add_argument("--day", help="UTC day (YYYY-MM-DD), defaults to today")
    usage_parser.set_defaults(func=cmd_usage)

    viewed_parser = subparsers.add_parser("viewed", help="List records a user unlocked on a day")
    viewed_parser.add_argument("--user", required=True)
    viewed_parser.add_argument("--day", help="UTC day (YYYY-MM-DD), defaults to today")
    viewed_parser.set_defaults(func=cmd_viewed)

    prune_parser = subparsers.add_parser("prune", help="Delete keys older than the retention window")
    prune_parser.add_argument("--retention-days", type=int,
                              help="Past days to keep (defaults to the configured value)")
    prune_parser.add_argument("--dry-run", action="store_true",
                              help="Show what would be deleted without deleting")
    prune_parser.set_defaults(func=cmd_prune)

    watch_parser = subparsers.add_parser("watch", help="Follow a user's quota state live")
    watch_parser.add_argument("--user", required=True)
    watch_parser.add_argument("--interval", type=float, help="Seconds between polls")
    watch_parser.set_defaults(func=cmd_watch)

    args = parser.parse_args(argv)

    config_manager = ConfigManager(args.config)
    paths_config = config_manager.get_paths_config()
    settings = config_manager.get_quota_settings()

    store_file = args.store_file or resolve_store_file(paths_config)
    config = QuotaConfig(
        daily_cap=settings.daily_cap,
        sync_interval_seconds=settings.sync_interval_seconds,
        retention_days=settings.retention_days
    )

    module = build_quota_module(store_file, config)
    args.func(module, args)


if __name__ == "__main__":
    sys.exit(main())
