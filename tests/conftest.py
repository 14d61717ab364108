"""
Shared fixtures for the quota tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.quota.gate import LimitGate
from app.quota.ledger import QuotaLedger
from app.quota.store import InMemoryStore
from app.quota.viewed import ViewedSet


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def gate(store, clock):
    """Gate with the default cap of 50 over an in-memory store."""
    return LimitGate(QuotaLedger(store, daily_cap=50), ViewedSet(store), clock=clock)
