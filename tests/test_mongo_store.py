"""
Unit tests for store/mongo.py - Record layout, queries and transactional batches.
"""

import pytest
from unittest.mock import MagicMock
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure, PyMongoError

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import NotFoundError, StoreFailure
from store import SERVER_TIMESTAMP
from store.mongo import MongoDocumentStore
from tests.test_logger import test_logger


@pytest.fixture
def client():
    client = MagicMock()
    session = client.start_session.return_value.__enter__.return_value
    session.with_transaction.side_effect = lambda callback: callback(session)
    return client


@pytest.fixture
def collection(client):
    return client.__getitem__.return_value.__getitem__.return_value


@pytest.fixture
def store(client):
    return MongoDocumentStore(client, database="book_builder", collection="documents")


class TestMongoDocumentStore:
    """Test suite for the MongoDB store."""

    def setup_method(self):
        test_logger.log_section("TESTING: store/mongo.py - MongoDocumentStore")

    def test_add_writes_path_keyed_record(self, store, collection):
        test_logger.log_test_start("mongo.py", "add", "record_layout")

        try:
            new_id = store.add("users/u1/books", {"title": "B", "created_at": SERVER_TIMESTAMP})

            record = collection.insert_one.call_args.args[0]
            assert record["_id"] == f"users/u1/books/{new_id}"
            assert record["parent"] == "users/u1/books"
            assert record["doc_id"] == new_id
            assert record["data"]["title"] == "B"
            assert record["data"]["created_at"] is not SERVER_TIMESTAMP

            test_logger.log_test_pass("mongo.py", "add", "record_layout")
        except Exception as e:
            test_logger.log_test_fail("mongo.py", "add", "record_layout", str(e))
            raise

    def test_get(self, store, collection):
        collection.find_one.return_value = {"_id": "users/u1/books/b1", "data": {"title": "B"}}
        snapshot = store.get("users/u1/books/b1")
        assert snapshot.exists and snapshot.id == "b1"
        assert snapshot.data == {"title": "B"}

        collection.find_one.return_value = None
        assert not store.get("users/u1/books/b2").exists

    def test_query_sorts_by_field_then_id(self, store, collection):
        test_logger.log_test_start("mongo.py", "query", "sort")

        try:
            cursor = collection.find.return_value.sort.return_value
            cursor.limit.return_value = [{"_id": "users/u1/books/b9", "data": {"sort_key": 900}}]

            result = store.query("users/u1/books", descending=True, limit=1)

            collection.find.assert_called_once_with({"parent": "users/u1/books"})
            collection.find.return_value.sort.assert_called_once_with(
                [("data.sort_key", DESCENDING), ("doc_id", DESCENDING)]
            )
            cursor.limit.assert_called_once_with(1)
            assert [s.id for s in result] == ["b9"]

            test_logger.log_test_pass("mongo.py", "query", "sort")
        except Exception as e:
            test_logger.log_test_fail("mongo.py", "query", "sort", str(e))
            raise

    def test_update_sets_data_fields(self, store, collection):
        collection.update_one.return_value.matched_count = 1
        store.update("users/u1/books/b1", {"title": "New"})
        collection.update_one.assert_called_once_with(
            {"_id": "users/u1/books/b1"}, {"$set": {"data.title": "New"}}
        )

    def test_update_missing(self, store, collection):
        collection.update_one.return_value.matched_count = 0
        with pytest.raises(NotFoundError):
            store.update("users/u1/books/b1", {"title": "New"})

    def test_driver_errors_become_store_failures(self, store, collection):
        collection.find_one.side_effect = PyMongoError("connection reset")
        with pytest.raises(StoreFailure) as exc_info:
            store.get("users/u1/books/b1")
        assert isinstance(exc_info.value.__cause__, PyMongoError)

    def test_batch_runs_in_transaction(self, store, client, collection):
        test_logger.log_test_start("mongo.py", "_commit", "transaction")

        try:
            session = client.start_session.return_value.__enter__.return_value
            collection.update_one.return_value.matched_count = 1

            batch = store.batch()
            batch.set("users/u1/books/b1/parts/p2/chapters/c1", {"title": "C1", "sort_key": 100})
            batch.update("users/u1/books/b1/parts/p1", {"sort_key": 0})
            batch.delete("users/u1/books/b1/parts/p1/chapters/c1")
            batch.commit()

            session.with_transaction.assert_called_once()
            replace = collection.replace_one.call_args
            assert replace.args[0] == {"_id": "users/u1/books/b1/parts/p2/chapters/c1"}
            assert replace.kwargs == {"upsert": True, "session": session}
            assert collection.update_one.call_args.kwargs["session"] is session
            collection.delete_one.assert_called_once_with(
                {"_id": "users/u1/books/b1/parts/p1/chapters/c1"}, session=session
            )

            test_logger.log_test_pass("mongo.py", "_commit", "transaction")
        except Exception as e:
            test_logger.log_test_fail("mongo.py", "_commit", "transaction", str(e))
            raise

    def test_batch_update_of_missing_document_aborts(self, store, collection):
        collection.update_one.return_value.matched_count = 0
        with pytest.raises(NotFoundError):
            store.batch().update("users/u1/books/b1", {"sort_key": 0}).commit()

    def test_transaction_failure(self, store, client):
        session = client.start_session.return_value.__enter__.return_value
        session.with_transaction.side_effect = OperationFailure("Transaction numbers are only allowed on a replica set")
        with pytest.raises(StoreFailure):
            store.batch().delete("users/u1/books/b1").commit()

    def test_ensure_indexes(self, store, collection):
        store.ensure_indexes()
        collection.create_index.assert_called_once_with([("parent", ASCENDING), ("data.sort_key", ASCENDING)])
