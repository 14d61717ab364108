"""
Tests for the per-day viewed set.
"""
import json

import pytest

from app.quota.models import ViewedEntry
from app.quota.store import InMemoryStore
from app.quota.viewed import ViewedSet

DAY = "2025-06-01"
KEY = f"viewed:alice:{DAY}"


class TestViewedSet:
    """Test the ViewedSet class."""
    
    @pytest.fixture
    def store(self):
        return InMemoryStore()
    
    @pytest.fixture
    def viewed(self, store):
        return ViewedSet(store)
    
    def test_empty_by_default(self, viewed):
        assert viewed.list("alice", DAY) == []
        assert viewed.has("alice", DAY, "c1") is False
    
    def test_add_is_idempotent(self, viewed):
        """Test that a second add of the same id is a no-op."""
        assert viewed.add("alice", DAY, ViewedEntry(id="c1", snapshot={"first_name": "Ada"})) is True
        assert viewed.add("alice", DAY, ViewedEntry(id="c1", snapshot={"first_name": "Changed"})) is False
        
        entries = viewed.list("alice", DAY)
        assert len(entries) == 1
        assert entries[0].snapshot == {"first_name": "Ada"}
    
    def test_insertion_order(self, viewed):
        """Test first-unlock order is preserved."""
        for rid in ["c3", "c1", "c2", "c1", "c3"]:
            viewed.add("alice", DAY, ViewedEntry(id=rid))
        assert [e.id for e in viewed.list("alice", DAY)] == ["c3", "c1", "c2"]
        assert viewed.ids("alice", DAY) == {"c1", "c2", "c3"}
    
    def test_ids_are_compared_as_text(self, viewed):
        viewed.add("alice", DAY, ViewedEntry.capture(7, {"id": 7}))
        assert viewed.has("alice", DAY, "7")
        assert viewed.has("alice", DAY, 7)
    
    def test_persisted_as_json_list(self, viewed, store):
        viewed.add("alice", DAY, ViewedEntry(id="c1", snapshot={"a": 1}, unlocked_at="2025-06-01T12:00:00+00:00"))
        assert json.loads(store.get(KEY)) == [
            {"id": "c1", "snapshot": {"a": 1}, "unlocked_at": "2025-06-01T12:00:00+00:00"}
        ]
    
    def test_corrupt_list_is_empty(self, viewed, store):
        """Test that malformed data reads as empty."""
        store.set(KEY, "{not json")
        assert viewed.list("alice", DAY) == []
        store.set(KEY, json.dumps({"id": "c1"}))
        assert viewed.list("alice", DAY) == []
    
    def test_malformed_items_are_skipped(self, viewed, store):
        store.set(KEY, json.dumps([{"id": "c1"}, "junk", {"snapshot": {}}, {"id": "c1"}, {"id": "c2", "snapshot": 5}]))
        entries = viewed.list("alice", DAY)
        assert [e.id for e in entries] == ["c1", "c2"]
        assert entries[1].snapshot == {}
    
    def test_add_over_corrupt_list_starts_fresh(self, viewed, store):
        store.set(KEY, "not a list")
        assert viewed.add("alice", DAY, ViewedEntry(id="c1")) is True
        assert [e.id for e in viewed.list("alice", DAY)] == ["c1"]
    
    def test_days_are_isolated(self, viewed):
        viewed.add("alice", DAY, ViewedEntry(id="c1"))
        assert viewed.list("alice", "2025-06-02") == []
        assert viewed.list("bob", DAY) == []
