"""
Composed read views: a node together with its ordered children.

Views are assembled on demand by the TreeNavigator and never persisted.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .book_models import Block, Book, Chapter, Part, Section


class PartView(BaseModel):
    """A part with its chapters; sections are keyed by chapter id when loaded."""
    part: Part
    chapters: List[Chapter] = Field(default_factory=list)
    sections: Optional[Dict[str, List[Section]]] = None


class BookView(BaseModel):
    """A book with every part and each part's chapters."""
    book: Book
    parts: List[PartView] = Field(default_factory=list)


class ChapterView(BaseModel):
    chapter: Chapter
    sections: List[Section] = Field(default_factory=list)


class SectionView(BaseModel):
    """A section with its blocks; content_text joins block texts with a blank line."""
    section: Section
    blocks: List[Block] = Field(default_factory=list)
    content_text: str = ""
