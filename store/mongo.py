"""
MongoDB-backed document store.

Every document of the tree is one MongoDB record keyed by its full path:

    {"_id": "users/u1/books/b1", "parent": "users/u1/books", "doc_id": "b1", "data": {...}}

Batches run inside a multi-document transaction, which requires a replica set
(MongoDB Atlas clusters qualify).
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from errors import NotFoundError, StoreFailure
from logger import get_logger
from store.base import (
    BatchOperation,
    DocumentSnapshot,
    DocumentStore,
    document_id,
    join_path,
    parent_collection,
    resolve_timestamps,
)

logger = get_logger(__name__)


class MongoDocumentStore(DocumentStore):
    """Document store over a single MongoDB collection."""

    def __init__(self, client: MongoClient, database: str = "book_builder", collection: str = "documents"):
        self._client = client
        self._collection = client[database][collection]
        logger.info("MongoDocumentStore ready", database=database, collection=collection)

    def ensure_indexes(self) -> None:
        """Create the index used by ordered sibling queries."""
        try:
            self._collection.create_index([("parent", ASCENDING), ("data.sort_key", ASCENDING)])
        except PyMongoError as e:
            raise StoreFailure(f"Failed to create indexes: {e}") from e

    @staticmethod
    def _record(path: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "_id": path,
            "parent": parent_collection(path),
            "doc_id": document_id(path),
            "data": resolve_timestamps(data, datetime.now(timezone.utc)),
        }

    @staticmethod
    def _set_fields(data: Dict[str, Any]) -> Dict[str, Any]:
        resolved = resolve_timestamps(data, datetime.now(timezone.utc))
        return {"$set": {f"data.{key}": value for key, value in resolved.items()}}

    def get(self, path: str) -> DocumentSnapshot:
        try:
            record = self._collection.find_one({"_id": path})
        except PyMongoError as e:
            raise StoreFailure(f"Read failed for {path}: {e}") from e
        return DocumentSnapshot(path=path, data=record["data"] if record else None)

    def query(
        self,
        collection_path: str,
        order_by: str = "sort_key",
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[DocumentSnapshot]:
        direction = DESCENDING if descending else ASCENDING
        start = time.time()
        try:
            cursor = self._collection.find({"parent": collection_path}).sort(
                [(f"data.{order_by}", direction), ("doc_id", direction)]
            )
            if limit is not None:
                cursor = cursor.limit(limit)
            snapshots = [DocumentSnapshot(path=record["_id"], data=record["data"]) for record in cursor]
        except PyMongoError as e:
            raise StoreFailure(f"Query failed for {collection_path}: {e}") from e

        logger.store_op("query", collection_path, (time.time() - start) * 1000, results=len(snapshots))
        return snapshots

    def add(self, collection_path: str, data: Dict[str, Any]) -> str:
        new_id = self.new_id()
        path = join_path(collection_path, new_id)
        try:
            self._collection.insert_one(self._record(path, data))
        except PyMongoError as e:
            raise StoreFailure(f"Insert failed for {path}: {e}") from e
        return new_id

    def update(self, path: str, data: Dict[str, Any]) -> None:
        try:
            result = self._collection.update_one({"_id": path}, self._set_fields(data))
        except PyMongoError as e:
            raise StoreFailure(f"Update failed for {path}: {e}") from e
        if result.matched_count == 0:
            raise NotFoundError(f"No document to update at {path}", path=path)

    def delete(self, path: str) -> None:
        try:
            self._collection.delete_one({"_id": path})
        except PyMongoError as e:
            raise StoreFailure(f"Delete failed for {path}: {e}") from e

    def _apply(self, operations: List[BatchOperation], session) -> None:
        for op in operations:
            if op.kind == "set":
                self._collection.replace_one(
                    {"_id": op.path}, self._record(op.path, op.data), upsert=True, session=session
                )
            elif op.kind == "update":
                result = self._collection.update_one(
                    {"_id": op.path}, self._set_fields(op.data), session=session
                )
                if result.matched_count == 0:
                    raise NotFoundError(f"No document to update at {op.path}", path=op.path)
            elif op.kind == "delete":
                self._collection.delete_one({"_id": op.path}, session=session)
            else:
                raise ValueError(f"Unknown batch operation: {op.kind}")

    def _commit(self, operations: List[BatchOperation]) -> None:
        start = time.time()
        try:
            with self._client.start_session() as session:
                session.with_transaction(lambda s: self._apply(operations, s))
        except PyMongoError as e:
            raise StoreFailure(f"Batch commit failed: {e}") from e
        logger.batch_commit(len(operations), (time.time() - start) * 1000)

    def close(self) -> None:
        self._client.close()
