"""
Document store interface used by the structure core.

Documents live at slash-joined paths that alternate collection and document
segments, e.g. ``users/u1/books/b1/parts/p1``. A collection path has an odd
number of segments, a document path an even number.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from errors import InvalidArgumentError


class _ServerTimestamp:
    """Sentinel replaced by the store with its own clock at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def join_path(*segments: str) -> str:
    """
    Join path segments. A segment may itself be a joined path; empty
    segments and stray leading, trailing or doubled slashes are rejected.
    """
    parts: List[str] = []
    for segment in segments:
        pieces = segment.split("/") if segment else [""]
        if any(not piece for piece in pieces):
            raise InvalidArgumentError(f"Invalid path segment: {segment!r}")
        parts.extend(pieces)
    return "/".join(parts)


def parent_collection(document_path: str) -> str:
    """Return the collection path a document lives in."""
    return document_path.rsplit("/", 1)[0]


def document_id(document_path: str) -> str:
    """Return the last segment of a document path."""
    return document_path.rsplit("/", 1)[-1]


def resolve_timestamps(data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Copy of data with every SERVER_TIMESTAMP value replaced by now."""
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in data.items()}


@dataclass
class DocumentSnapshot:
    """Result of reading one document."""
    path: str
    data: Optional[Dict[str, Any]] = None

    @property
    def id(self) -> str:
        return document_id(self.path)

    @property
    def exists(self) -> bool:
        return self.data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self.data) if self.data is not None else None


@dataclass
class BatchOperation:
    """One staged write: ``set`` (create/overwrite), ``update`` (merge) or ``delete``."""
    kind: str
    path: str
    data: Optional[Dict[str, Any]] = None


class WriteBatch:
    """
    Stages writes and deletes and commits them as one all-or-nothing unit.

    Nothing reaches the store before commit(). An empty batch commits nothing.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._operations: List[BatchOperation] = []
        self._committed = False

    def set(self, path: str, data: Dict[str, Any]) -> "WriteBatch":
        self._operations.append(BatchOperation("set", path, dict(data)))
        return self

    def update(self, path: str, data: Dict[str, Any]) -> "WriteBatch":
        self._operations.append(BatchOperation("update", path, dict(data)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._operations.append(BatchOperation("delete", path))
        return self

    @property
    def operations(self) -> List[BatchOperation]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def commit(self) -> None:
        if self._committed:
            raise InvalidArgumentError("Batch has already been committed")
        self._committed = True
        if not self._operations:
            return
        self._store._commit(list(self._operations))


class DocumentStore(ABC):
    """Hierarchical document store with atomic multi-document batches."""

    @abstractmethod
    def get(self, path: str) -> DocumentSnapshot:
        """Read one document; a missing document yields a snapshot with exists=False."""

    @abstractmethod
    def query(
        self,
        collection_path: str,
        order_by: str = "sort_key",
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[DocumentSnapshot]:
        """List the documents directly inside a collection, ordered by a field."""

    @abstractmethod
    def add(self, collection_path: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""

    @abstractmethod
    def update(self, path: str, data: Dict[str, Any]) -> None:
        """Merge fields into an existing document. Raises NotFoundError if absent."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove one document. Deleting a missing document is not an error."""

    @abstractmethod
    def _commit(self, operations: List[BatchOperation]) -> None:
        """Apply staged operations atomically."""

    def new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def close(self) -> None:
        """Release client resources, if any."""
