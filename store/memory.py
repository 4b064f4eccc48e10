"""
In-process document store.

Used by default when no external database is configured, and as the test
double for the structure core. A re-entrant lock serialises reads and batch
commits, so a reader sees a batch either fully applied or not at all.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from errors import NotFoundError
from logger import get_logger
from store.base import (
    BatchOperation,
    DocumentSnapshot,
    DocumentStore,
    join_path,
    parent_collection,
    resolve_timestamps,
)

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store keyed by full document path."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._clock = clock or _utc_now

    def get(self, path: str) -> DocumentSnapshot:
        with self._lock:
            data = self._documents.get(path)
            return DocumentSnapshot(path=path, data=dict(data) if data is not None else None)

    def query(
        self,
        collection_path: str,
        order_by: str = "sort_key",
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[DocumentSnapshot]:
        start = time.time()
        with self._lock:
            snapshots = [
                DocumentSnapshot(path=path, data=dict(data))
                for path, data in self._documents.items()
                if parent_collection(path) == collection_path
            ]

        # Documents missing the order field sort first; ties fall back to the id.
        snapshots.sort(
            key=lambda snap: (
                snap.data.get(order_by) is not None,
                snap.data.get(order_by) if snap.data.get(order_by) is not None else 0,
                snap.id
            ),
            reverse=descending
        )
        if limit is not None:
            snapshots = snapshots[:limit]

        logger.store_op("query", collection_path, (time.time() - start) * 1000, results=len(snapshots))
        return snapshots

    def add(self, collection_path: str, data: Dict[str, Any]) -> str:
        new_id = self.new_id()
        path = join_path(collection_path, new_id)
        with self._lock:
            self._documents[path] = resolve_timestamps(data, self._clock())
        logger.store_op("add", path, 0.0)
        return new_id

    def update(self, path: str, data: Dict[str, Any]) -> None:
        with self._lock:
            if path not in self._documents:
                raise NotFoundError(f"No document to update at {path}", path=path)
            self._documents[path].update(resolve_timestamps(data, self._clock()))
        logger.store_op("update", path, 0.0)

    def delete(self, path: str) -> None:
        with self._lock:
            self._documents.pop(path, None)
        logger.store_op("delete", path, 0.0)

    def _commit(self, operations: List[BatchOperation]) -> None:
        start = time.time()
        with self._lock:
            now = self._clock()
            # Apply to a working copy so a failing operation leaves nothing behind.
            working = dict(self._documents)
            for op in operations:
                if op.kind == "set":
                    working[op.path] = resolve_timestamps(op.data, now)
                elif op.kind == "update":
                    if op.path not in working:
                        raise NotFoundError(f"No document to update at {op.path}", path=op.path)
                    merged = dict(working[op.path])
                    merged.update(resolve_timestamps(op.data, now))
                    working[op.path] = merged
                elif op.kind == "delete":
                    working.pop(op.path, None)
                else:
                    raise ValueError(f"Unknown batch operation: {op.kind}")
            self._documents = working
        logger.batch_commit(len(operations), (time.time() - start) * 1000)

    def dump(self, prefix: str = "") -> Dict[str, Dict[str, Any]]:
        """Copy of every stored document whose path starts with prefix."""
        with self._lock:
            return {
                path: dict(data)
                for path, data in self._documents.items()
                if path.startswith(prefix)
            }

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
