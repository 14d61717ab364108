"""
Tests for per-day unlock counters and the sticky limit flag.
"""
import pytest

from app.quota.ledger import QuotaLedger, parse_count
from app.quota.store import InMemoryStore

DAY = "2025-06-01"


class TestParseCount:
    """Test persisted count parsing."""
    
    def test_valid_counts(self):
        assert parse_count("0") == 0
        assert parse_count("42") == 42
        assert parse_count(" 7 ") == 7
    
    def test_invalid_counts(self):
        for raw in [None, "", "abc", "-3", "1.5", "+2", "0x10", "1e3"]:
            assert parse_count(raw) is None


class TestQuotaLedger:
    """Test the QuotaLedger class."""
    
    @pytest.fixture
    def store(self):
        return InMemoryStore()
    
    @pytest.fixture
    def ledger(self, store):
        return QuotaLedger(store, daily_cap=3)
    
    def test_missing_count_is_zero(self, ledger):
        """Test lazy creation: absence means zero."""
        assert ledger.get_count("alice", DAY) == 0
        assert ledger.remaining("alice", DAY) == 3
    
    def test_corrupt_count_is_zero(self, ledger, store):
        """Test that corrupt data reads as zero instead of raising."""
        for raw in ["abc", "-3", "1.5", "[]"]:
            store.set(f"quota:alice:{DAY}", raw)
            assert ledger.get_count("alice", DAY) == 0
    
    def test_increment_persists_decimal_text(self, ledger, store):
        """Test the stored representation and return value."""
        assert ledger.increment("alice", DAY) == 1
        assert ledger.increment("alice", DAY, by=2) == 3
        assert store.get(f"quota:alice:{DAY}") == "3"
    
    def test_increment_over_corrupt_value_starts_from_zero(self, ledger, store):
        store.set(f"quota:alice:{DAY}", "garbage")
        assert ledger.increment("alice", DAY) == 1
    
    def test_negative_increment_rejected(self, ledger):
        """Test that counts never go down."""
        with pytest.raises(ValueError):
            ledger.increment("alice", DAY, by=-1)
    
    def test_negative_cap_rejected(self, store):
        with pytest.raises(ValueError):
            QuotaLedger(store, daily_cap=-1)
    
    def test_limit_reached_from_count_sets_flag(self, ledger, store):
        """Test that a count at the cap is persisted as the sticky flag."""
        ledger.increment("alice", DAY, by=3)
        assert store.get(f"limit:alice:{DAY}") is None
        
        assert ledger.is_limit_reached("alice", DAY) is True
        assert store.get(f"limit:alice:{DAY}") == "true"
    
    def test_below_cap_not_reached(self, ledger, store):
        ledger.increment("alice", DAY, by=2)
        assert ledger.is_limit_reached("alice", DAY) is False
        assert store.get(f"limit:alice:{DAY}") is None
    
    def test_flag_wins_over_low_count(self, ledger, store):
        """Test that a later low count read cannot revert the flag."""
        ledger.increment("alice", DAY, by=3)
        assert ledger.is_limit_reached("alice", DAY)
        
        store.set(f"quota:alice:{DAY}", "1")
        assert ledger.is_limit_reached("alice", DAY) is True
    
    def test_only_literal_true_is_the_flag(self, ledger, store):
        store.set(f"limit:alice:{DAY}", "yes")
        assert ledger.is_flag_set("alice", DAY) is False
        assert ledger.is_limit_reached("alice", DAY) is False
    
    def test_remaining_never_negative(self, ledger, store):
        """Test overcount drift."""
        store.set(f"quota:alice:{DAY}", "75")
        assert ledger.remaining("alice", DAY) == 0
    
    def test_users_and_days_are_isolated(self, ledger):
        ledger.increment("alice", DAY, by=3)
        assert ledger.get_count("bob", DAY) == 0
        assert ledger.get_count("alice", "2025-06-02") == 0
        assert ledger.is_limit_reached("alice", "2025-06-02") is False
