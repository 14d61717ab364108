"""
Access gate for detail records.

A user may unlock up to ``daily_cap`` distinct records per UTC day. Records
unlocked earlier the same day stay open after the cap is hit.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from . import day_key
from .ledger import QuotaLedger
from .models import AccessDecision, AccessResult, UsageSnapshot, ViewedEntry
from .viewed import ViewedSet

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LimitGate:
    """Decides whether a user may open a record now, and records new unlocks."""

    def __init__(self, ledger: QuotaLedger, viewed_set: ViewedSet, clock: Optional[Clock] = None):
        """
        Initialize LimitGate.

        Args:
            ledger: Per-day unlock counters
            viewed_set: Per-day unlocked records; must share the ledger's store
            clock: Returns the current time, injectable for tests
        """
        if viewed_set.store is not ledger.store:
            raise ValueError("ledger and viewed set must share one store")
        self.ledger = ledger
        self.viewed_set = viewed_set
        self.store = ledger.store
        self.clock = clock or utc_now

    @property
    def daily_cap(self) -> int:
        return self.ledger.daily_cap

    def today(self) -> str:
        return day_key.today(self.clock())

    def request_access(self, user: Optional[str], day: str, record_id: str,
                       snapshot: Optional[dict] = None) -> AccessResult:
        """
        Main entry point - check the gate and record the unlock if allowed.

        1. Already unlocked today -> ALLOW, nothing written.
        2. Count at or over the cap -> BLOCKED, nothing written.
        3. Otherwise append to the viewed set, bump the count, set the
           sticky flag if the cap is now reached -> ALLOW.

        The whole decision runs under the store's writer lock, so two
        instances racing for the last slot cannot both get it.

        Args:
            user: Current user id; blank or missing denies without touching the store
            day: UTC day key
            record_id: Stable id of the record being opened
            snapshot: Record fields to keep in the viewed list

        Returns:
            AccessResult with the decision and the resulting usage
        """
        if not user or not str(user).strip():
            logger.info(f"Access to {record_id} denied: no user identity")
            return AccessResult(
                decision=AccessDecision.BLOCKED,
                remaining=0,
                reason="no_identity"
            )

        if record_id is None or str(record_id) == "":
            raise ValueError("record_id is required")
        record_id = str(record_id)
        cap = self.daily_cap

        with self.store.lock():
            if self.viewed_set.has(user, day, record_id):
                count = self.ledger.get_count(user, day)
                return AccessResult(
                    decision=AccessDecision.ALLOW,
                    count=count,
                    remaining=max(0, cap - count),
                    limit_reached=self.ledger.is_flag_set(user, day) or count >= cap,
                    reason="already_viewed"
                )

            count = self.ledger.get_count(user, day)
            if count >= cap:
                logger.info(f"Access blocked: user={user}, day={day}, record={record_id}, count={count}/{cap}")
                return AccessResult(
                    decision=AccessDecision.BLOCKED,
                    count=count,
                    remaining=0,
                    limit_reached=True,
                    reason="daily_limit"
                )

            entry = ViewedEntry.capture(record_id, snapshot, now=self.clock())
            self.viewed_set.add(user, day, entry)
            new_count = self.ledger.increment(user, day, 1)
            if new_count >= cap:
                self.ledger.mark_limit_reached(user, day)

        logger.info(f"Unlocked record: user={user}, day={day}, record={record_id}, count={new_count}/{cap}")
        return AccessResult(
            decision=AccessDecision.ALLOW,
            count=new_count,
            remaining=max(0, cap - new_count),
            limit_reached=new_count >= cap,
            newly_unlocked=True,
            reason="unlocked"
        )

    def current_usage(self, user: str, day: str, now: Optional[datetime] = None) -> UsageSnapshot:
        """Snapshot of (user, day) for display: counters, sticky flag, viewed list, reset countdown."""
        cap = self.daily_cap
        count = self.ledger.get_count(user, day)
        limit_reached = self.ledger.is_limit_reached(user, day)
        until_reset = day_key.time_until_next_rollover(now or self.clock())

        return UsageSnapshot(
            user=user,
            day=day,
            cap=cap,
            used=min(count, cap),
            remaining=max(0, cap - count),
            limit_reached=limit_reached,
            viewed=self.viewed_set.list(user, day),
            resets_in=day_key.format_duration(until_reset)
        )

    def viewed_today(self, user: str, day: str) -> List[ViewedEntry]:
        return self.viewed_set.list(user, day)
