"""
Data models for the daily unlock quota system.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone


DEFAULT_DAILY_CAP = 50


class QuotaError(Exception):
    """Base error for the quota subsystem."""


class QuotaContentionError(QuotaError):
    """Raised when a compare-and-set write keeps losing to other writers."""


class AccessDecision(Enum):
    """Outcome of a gate check."""
    ALLOW = "allow"
    BLOCKED = "blocked"


@dataclass
class QuotaConfig:
    """Configuration for the daily unlock quota."""
    daily_cap: int = DEFAULT_DAILY_CAP
    sync_interval_seconds: float = 1.0
    retention_days: int = 7

    @classmethod
    def from_dict(cls, data: dict) -> "QuotaConfig":
        """Create QuotaConfig from dictionary."""
        return cls(
            daily_cap=data.get("daily_cap", DEFAULT_DAILY_CAP),
            sync_interval_seconds=data.get("sync_interval_seconds", 1.0),
            retention_days=data.get("retention_days", 7)
        )


@dataclass(frozen=True)
class ViewedEntry:
    """Snapshot of a record taken at the moment it was unlocked."""
    id: str
    snapshot: Dict[str, Any] = field(default_factory=dict)
    unlocked_at: Optional[str] = None  # ISO format datetime (UTC)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "snapshot": dict(self.snapshot),
            "unlocked_at": self.unlocked_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ViewedEntry":
        """Build an entry from its persisted form.

        Raises:
            ValueError: if the payload has no usable id
        """
        if not isinstance(data, dict):
            raise ValueError(f"viewed entry must be an object, got {type(data).__name__}")

        record_id = data.get("id")
        if record_id is None or str(record_id) == "":
            raise ValueError("viewed entry has no id")

        snapshot = data.get("snapshot")
        if not isinstance(snapshot, dict):
            snapshot = {}

        return cls(id=str(record_id), snapshot=snapshot, unlocked_at=data.get("unlocked_at"))

    @classmethod
    def capture(cls, record_id: str, snapshot: Optional[dict], now: Optional[datetime] = None) -> "ViewedEntry":
        """Create an entry for a record being unlocked now."""
        now = now or datetime.now(timezone.utc)
        return cls(id=str(record_id), snapshot=dict(snapshot or {}), unlocked_at=now.isoformat())


@dataclass
class AccessResult:
    """Result of a gate decision."""
    decision: AccessDecision
    count: int = 0
    remaining: int = 0
    limit_reached: bool = False
    newly_unlocked: bool = False
    reason: Optional[str] = None  # "already_viewed", "unlocked", "daily_limit", "no_identity"

    @property
    def allowed(self) -> bool:
        return self.decision == AccessDecision.ALLOW

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "decision": self.decision.value,
            "allowed": self.allowed,
            "count": self.count,
            "remaining": self.remaining,
            "limit_reached": self.limit_reached,
            "newly_unlocked": self.newly_unlocked,
            "reason": self.reason
        }


@dataclass
class UsageSnapshot:
    """Everything an open instance needs to render quota state for one day."""
    user: str
    day: str
    cap: int
    used: int
    remaining: int
    limit_reached: bool
    viewed: List[ViewedEntry] = field(default_factory=list)
    resets_in: Optional[str] = None

    @property
    def viewed_ids(self) -> List[str]:
        return [entry.id for entry in self.viewed]

    def same_state(self, other: Optional["UsageSnapshot"]) -> bool:
        """Compare the persisted state, ignoring the countdown text."""
        if other is None:
            return False
        return (
            self.user == other.user
            and self.day == other.day
            and self.used == other.used
            and self.limit_reached == other.limit_reached
            and self.viewed_ids == other.viewed_ids
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "user": self.user,
            "day": self.day,
            "cap": self.cap,
            "used": self.used,
            "remaining": self.remaining,
            "limit_reached": self.limit_reached,
            "viewed_count": len(self.viewed),
            "viewed": [entry.to_dict() for entry in self.viewed],
            "resets_in": self.resets_in
        }
