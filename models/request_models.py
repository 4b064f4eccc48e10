"""
Write payloads accepted by the structure core and the HTTP layer.

Payloads reject unknown fields, so nothing reaches the store that the entity
model does not define. Sort keys, ancestor ids and timestamps are never
client-supplied.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .book_models import BookStatus, NotePriority


def _not_blank(value: Optional[str], field_name: str) -> str:
    if value is None:
        raise ValueError(f"{field_name} cannot be null")
    value = value.strip()
    if not value:
        raise ValueError(f"{field_name} cannot be empty")
    return value


class WritePayload(BaseModel):
    """Base for create/update payloads."""
    model_config = ConfigDict(extra="forbid")

    def to_fields(self) -> dict:
        """Fields explicitly provided by the caller, ready for the store."""
        return self.model_dump(mode="json", exclude_unset=True)


class TitledCreate(WritePayload):
    title: str
    summary: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v):
        return _not_blank(v, "title")

    def to_fields(self) -> dict:
        # Defaults are part of a new document.
        return self.model_dump(mode="json")


class TitledUpdate(WritePayload):
    title: Optional[str] = None
    summary: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v):
        return _not_blank(v, "title")


class BookCreate(TitledCreate):
    status: BookStatus = BookStatus.DRAFT


class BookUpdate(TitledUpdate):
    status: Optional[BookStatus] = None


class PartCreate(TitledCreate):
    pass


class PartUpdate(TitledUpdate):
    pass


class ChapterCreate(TitledCreate):
    pass


class ChapterUpdate(TitledUpdate):
    pass


class SectionCreate(TitledCreate):
    content: Optional[str] = None


class SectionUpdate(TitledUpdate):
    content: Optional[str] = None


class BlockCreate(WritePayload):
    text: str
    summary: Optional[str] = None

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class BlockUpdate(WritePayload):
    text: Optional[str] = None
    summary: Optional[str] = None


class NoteCreate(TitledCreate):
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    priority: NotePriority = NotePriority.MEDIUM
    archived: bool = False


class NoteUpdate(TitledUpdate):
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    priority: Optional[NotePriority] = None
    archived: Optional[bool] = None


class ScaffoldItem(BaseModel):
    """One child entity proposed by the scaffolding assistant."""
    title: str = Field(..., min_length=1)
    summary: str = ""


class MoveRequest(BaseModel):
    """
    Destination of a move. Ids left out are taken from the entity's current path,
    so moving a chapter to another part of the same book only needs target_part_id.
    """
    model_config = ConfigDict(extra="forbid")

    target_book_id: Optional[str] = None
    target_part_id: Optional[str] = None
    target_chapter_id: Optional[str] = None
    target_section_id: Optional[str] = None


class ReorderRequest(BaseModel):
    """Complete permutation of sibling ids in the desired display order."""
    model_config = ConfigDict(extra="forbid")

    ordered_ids: List[str]
