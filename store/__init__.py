"""Document store implementations for the Book Builder."""

from .base import (
    SERVER_TIMESTAMP,
    BatchOperation,
    DocumentSnapshot,
    DocumentStore,
    WriteBatch,
    join_path,
)
from .memory import InMemoryDocumentStore

__all__ = [
    "SERVER_TIMESTAMP", "BatchOperation", "DocumentSnapshot", "DocumentStore",
    "WriteBatch", "join_path", "InMemoryDocumentStore"
]
