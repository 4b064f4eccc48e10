"""
Request and response models for the AI writing helpers.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from .book_models import Level
from .request_models import ScaffoldItem


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GenerateRequest(BaseModel):
    """Model for summary generation requests."""
    entity_type: Level
    title: str = Field(..., min_length=1)
    content: str = ""
    current_summary: Optional[str] = None
    max_tokens: int = Field(default=300, ge=16, le=4000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)


class GenerateResponse(BaseModel):
    success: bool = True
    content: Optional[str] = None
    error: Optional[str] = None


class TightnessAnalysis(BaseModel):
    """How well a section stays on one theme, scored 1-10."""
    score: float = Field(..., ge=1, le=10)
    reasoning: str
    suggestions: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utc_now)


class AnalyzeRequest(BaseModel):
    section_title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    summary: Optional[str] = None


class AnalyzeResponse(BaseModel):
    success: bool = True
    summary: Optional[str] = None
    tightness_results: List[TightnessAnalysis] = Field(default_factory=list)
    error: Optional[str] = None


class ScaffoldRequest(BaseModel):
    """
    Loose text to split into child entities of child_type.

    With create=True the scaffolded children are also stored under their
    parent (a book for parts, a part for chapters, a chapter for sections),
    located by book_id/part_id/chapter_id.
    """
    content: str = Field(..., min_length=1)
    child_type: Level
    parent_title: str = Field(..., min_length=1)
    max_tokens: int = Field(default=1000, ge=16, le=8000)
    book_id: Optional[str] = None
    part_id: Optional[str] = None
    chapter_id: Optional[str] = None
    create: bool = False


class ScaffoldResponse(BaseModel):
    success: bool = True
    items: List[ScaffoldItem] = Field(default_factory=list)
    created_ids: List[str] = Field(default_factory=list)
    error: Optional[str] = None
