"""
Data models for Book, Part, Chapter, Section, Block and Note entities.

These mirror the stored documents. Each entity carries its owner ``uid``, the
denormalized ids of its ancestors and a ``sort_key`` that orders it among its
siblings.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Level(str, Enum):
    """Entity kinds, from the root of the tree down, plus notes."""
    BOOK = "book"
    PART = "part"
    CHAPTER = "chapter"
    SECTION = "section"
    BLOCK = "block"
    NOTE = "note"


class BookStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class NotePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ChapterState(str, Enum):
    """
    Lifecycle of a chapter during a safeguarded move.

    ACTIVE -> PENDING_DELETION once the chapter has been copied elsewhere;
    confirming the deletion removes the documents, so DELETED is never stored.
    """
    ACTIVE = "active"
    PENDING_DELETION = "pending_deletion"
    DELETED = "deleted"


class TreeEntity(BaseModel):
    """Fields shared by every stored entity."""
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    id: str
    uid: str
    sort_key: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot) -> "TreeEntity":
        """Build the entity from a store snapshot (document id wins over stored fields)."""
        return cls.model_validate({**(snapshot.data or {}), "id": snapshot.id})


class Book(TreeEntity):
    """Top-level authored work."""
    title: str
    summary: Optional[str] = None
    status: BookStatus = BookStatus.DRAFT


class Part(TreeEntity):
    """Major division of a book."""
    book_id: str
    title: str
    summary: Optional[str] = None


class Chapter(TreeEntity):
    """Division of a part."""
    book_id: str
    part_id: str
    title: str
    summary: Optional[str] = None
    deletion_state: ChapterState = ChapterState.ACTIVE

    @computed_field
    @property
    def marked_for_deletion(self) -> bool:
        return self.deletion_state == ChapterState.PENDING_DELETION


class Section(TreeEntity):
    """Division of a chapter."""
    book_id: str
    part_id: str
    chapter_id: str
    title: str
    summary: Optional[str] = None
    content: Optional[str] = None


class Block(TreeEntity):
    """Smallest content unit of a section."""
    book_id: str
    part_id: str
    chapter_id: str
    section_id: str
    text: str
    summary: Optional[str] = None


class Note(TreeEntity):
    """Free-form annotation attached to exactly one book, part, chapter or section."""
    owner_level: Level
    book_id: str
    part_id: Optional[str] = None
    chapter_id: Optional[str] = None
    section_id: Optional[str] = None
    title: str
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    priority: NotePriority = NotePriority.MEDIUM
    archived: bool = False
