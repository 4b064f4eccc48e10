"""
Error types surfaced by the Book Builder structure core.

The core performs no local recovery: every error reaches the caller unchanged.
The HTTP layer in app.py maps each kind onto a status code.
"""

from typing import Optional


class BookBuilderError(Exception):
    """Base class for structure-core errors."""
    pass


class NotFoundError(BookBuilderError):
    """Requested entity, or a required ancestor in its path, does not exist."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InvalidArgumentError(BookBuilderError, ValueError):
    """A required id is missing from a path, or an argument is malformed."""
    pass


class StoreFailure(BookBuilderError):
    """The backing store rejected a read, write or batch commit."""
    pass
