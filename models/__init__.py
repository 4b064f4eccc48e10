"""Data models for the Book Builder."""

from .book_models import (
    Level, BookStatus, NotePriority, ChapterState,
    TreeEntity, Book, Part, Chapter, Section, Block, Note
)
from .request_models import (
    BookCreate, BookUpdate, PartCreate, PartUpdate,
    ChapterCreate, ChapterUpdate, SectionCreate, SectionUpdate,
    BlockCreate, BlockUpdate, NoteCreate, NoteUpdate,
    ScaffoldItem, MoveRequest, ReorderRequest
)
from .view_models import BookView, PartView, ChapterView, SectionView
from .ai_models import (
    GenerateRequest, GenerateResponse,
    AnalyzeRequest, AnalyzeResponse, TightnessAnalysis,
    ScaffoldRequest, ScaffoldResponse
)

__all__ = [
    "Level", "BookStatus", "NotePriority", "ChapterState",
    "TreeEntity", "Book", "Part", "Chapter", "Section", "Block", "Note",
    "BookCreate", "BookUpdate", "PartCreate", "PartUpdate",
    "ChapterCreate", "ChapterUpdate", "SectionCreate", "SectionUpdate",
    "BlockCreate", "BlockUpdate", "NoteCreate", "NoteUpdate",
    "ScaffoldItem", "MoveRequest", "ReorderRequest",
    "BookView", "PartView", "ChapterView", "SectionView",
    "GenerateRequest", "GenerateResponse",
    "AnalyzeRequest", "AnalyzeResponse", "TightnessAnalysis",
    "ScaffoldRequest", "ScaffoldResponse"
]
