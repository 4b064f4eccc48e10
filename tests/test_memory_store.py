"""
Unit tests for store/base.py and store/memory.py - Document semantics and batches.
"""

import pytest
from datetime import datetime, timezone

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import InvalidArgumentError, NotFoundError
from store import SERVER_TIMESTAMP, InMemoryDocumentStore, join_path
from store.base import document_id, parent_collection
from tests.test_logger import test_logger

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryDocumentStore(clock=lambda: FIXED_NOW)


class TestPathHelpers:

    def test_join_and_split(self):
        path = join_path("users", "u1", "books", "b1")
        assert path == "users/u1/books/b1"
        assert parent_collection(path) == "users/u1/books"
        assert document_id(path) == "b1"

    def test_join_accepts_joined_collection_paths(self):
        assert join_path("users/u1/books", "b1") == "users/u1/books/b1"
        assert join_path("users/u1/books/b1", "parts", "p1") == "users/u1/books/b1/parts/p1"

    def test_join_rejects_bad_segments(self):
        for segments in (("users", "", "books"), ("users", None), ("/users", "u1"),
                         ("users/", "u1"), ("users//u1", "books")):
            with pytest.raises(InvalidArgumentError):
                join_path(*segments)


class TestInMemoryDocumentStore:
    """Test suite for the in-process store."""

    def setup_method(self):
        test_logger.log_section("TESTING: store/memory.py - InMemoryDocumentStore")

    def test_add_and_get(self, store):
        test_logger.log_test_start("memory.py", "add/get", "round_trip")

        try:
            new_id = store.add("users/u1/books", {"title": "B", "created_at": SERVER_TIMESTAMP})
            snapshot = store.get(f"users/u1/books/{new_id}")

            assert snapshot.exists
            assert snapshot.id == new_id
            assert snapshot.data["title"] == "B"
            assert snapshot.data["created_at"] == FIXED_NOW

            test_logger.log_test_pass("memory.py", "add/get", "round_trip", "Server timestamp resolved")
        except Exception as e:
            test_logger.log_test_fail("memory.py", "add/get", "round_trip", str(e))
            raise

    def test_get_missing(self, store):
        snapshot = store.get("users/u1/books/nope")
        assert not snapshot.exists
        assert snapshot.to_dict() is None

    def test_snapshot_is_a_copy(self, store):
        new_id = store.add("users/u1/books", {"title": "B"})
        snapshot = store.get(f"users/u1/books/{new_id}")
        snapshot.data["title"] = "changed"
        assert store.get(f"users/u1/books/{new_id}").data["title"] == "B"

    def test_query_orders_by_sort_key_then_id(self, store):
        test_logger.log_test_start("memory.py", "query", "ordering")

        try:
            batch = store.batch()
            batch.set("users/u1/books/b/parts/z", {"sort_key": 100})
            batch.set("users/u1/books/b/parts/a", {"sort_key": 100})
            batch.set("users/u1/books/b/parts/m", {"sort_key": 50})
            batch.set("users/u1/books/b/parts/m/chapters/c", {"sort_key": 1})
            batch.commit()

            ids = [s.id for s in store.query("users/u1/books/b/parts")]
            assert ids == ["m", "a", "z"]

            last = store.query("users/u1/books/b/parts", descending=True, limit=1)
            assert [s.id for s in last] == ["z"]

            test_logger.log_test_pass("memory.py", "query", "ordering", "Ties broken by id; nested docs excluded")
        except Exception as e:
            test_logger.log_test_fail("memory.py", "query", "ordering", str(e))
            raise

    def test_query_empty_collection(self, store):
        assert store.query("users/u1/books") == []

    def test_update_merges(self, store):
        new_id = store.add("users/u1/books", {"title": "B", "summary": "s"})
        path = f"users/u1/books/{new_id}"
        store.update(path, {"title": "B2"})
        assert store.get(path).data == {"title": "B2", "summary": "s"}

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update("users/u1/books/nope", {"title": "x"})

    def test_delete_is_idempotent(self, store):
        new_id = store.add("users/u1/books", {"title": "B"})
        path = f"users/u1/books/{new_id}"
        store.delete(path)
        store.delete(path)
        assert not store.get(path).exists


class TestWriteBatch:
    """Test suite for atomic batches."""

    def setup_method(self):
        test_logger.log_section("TESTING: store/base.py - WriteBatch")

    def test_nothing_visible_before_commit(self, store):
        test_logger.log_test_start("base.py", "WriteBatch", "staged_until_commit")

        try:
            batch = store.batch()
            batch.set("users/u1/books/b1", {"title": "B"})
            assert not store.get("users/u1/books/b1").exists
            assert len(batch) == 1

            batch.commit()
            assert store.get("users/u1/books/b1").exists

            test_logger.log_test_pass("base.py", "WriteBatch", "staged_until_commit")
        except Exception as e:
            test_logger.log_test_fail("base.py", "WriteBatch", "staged_until_commit", str(e))
            raise

    def test_failed_batch_applies_nothing(self, store):
        test_logger.log_test_start("base.py", "WriteBatch", "all_or_nothing")

        try:
            store.add("users/u1/books", {"title": "keep"})
            before = store.dump()

            batch = store.batch()
            batch.set("users/u1/books/new", {"title": "N"})
            batch.update("users/u1/books/missing", {"title": "x"})
            with pytest.raises(NotFoundError):
                batch.commit()

            assert store.dump() == before

            test_logger.log_test_pass("base.py", "WriteBatch", "all_or_nothing", "Store unchanged after failure")
        except Exception as e:
            test_logger.log_test_fail("base.py", "WriteBatch", "all_or_nothing", str(e))
            raise

    def test_commit_twice_rejected(self, store):
        batch = store.batch().set("users/u1/books/b1", {"title": "B"})
        batch.commit()
        with pytest.raises(InvalidArgumentError):
            batch.commit()

    def test_empty_batch_commits_nothing(self, store):
        calls = []
        store._commit = lambda operations: calls.append(operations)
        store.batch().commit()
        assert calls == []

    def test_operations_applied_in_order(self, store):
        batch = store.batch()
        batch.set("users/u1/books/b1", {"title": "A", "sort_key": 1})
        batch.update("users/u1/books/b1", {"title": "B", "updated_at": SERVER_TIMESTAMP})
        batch.set("users/u1/books/b2", {"title": "gone"})
        batch.delete("users/u1/books/b2")
        batch.commit()

        assert store.get("users/u1/books/b1").data == {"title": "B", "sort_key": 1, "updated_at": FIXED_NOW}
        assert not store.get("users/u1/books/b2").exists
        assert [op.kind for op in batch.operations] == ["set", "update", "set", "delete"]
