"""
Read side of the structure core.

Resolves entities by their ancestor path and composes views of a node with
its children, always ordered by sort key ascending. Every call reads fresh
from the store; a book view with N parts costs 1 + N queries.
"""

from typing import List, Optional, Sequence, Union

from errors import NotFoundError
from logger import get_logger
from models.book_models import Level, Note, TreeEntity
from models.view_models import BookView, ChapterView, PartView, SectionView
from store.base import DocumentStore, join_path
from structure.numbering import LEVEL_NUMBER_STYLES, NumberStyle, format_ordinal
from structure.paths import NOTE_SPEC, TreePath, spec_for

logger = get_logger(__name__)


class TreeNavigator:
    """Path resolution and composed reads over an injected document store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_entity(self, level: Level, path: TreePath, entity_id: Optional[str] = None) -> TreeEntity:
        """
        Load one entity.

        Args:
            level: Entity kind
            path: Ancestor path; when entity_id is omitted the path's own id for
                ``level`` is used (e.g. path.chapter_id for a chapter)
            entity_id: Explicit id, required for blocks

        Raises:
            NotFoundError: If the document does not exist
            InvalidArgumentError: If the path lacks a required id
        """
        spec = spec_for(level)
        doc_path = path.document_path(level, entity_id) if entity_id else path.node_path(level)
        snapshot = self.store.get(doc_path)
        if not snapshot.exists:
            raise NotFoundError(f"{spec.level.value.capitalize()} not found", path=doc_path)
        return spec.model.from_snapshot(snapshot)

    def list_siblings(self, level: Level, parent_path: TreePath) -> List[TreeEntity]:
        """Children of one kind under a parent, in display order."""
        spec = spec_for(level)
        snapshots = self.store.query(parent_path.collection_path(level), order_by="sort_key")
        return [spec.model.from_snapshot(snap) for snap in snapshots]

    def list_books(self, uid: str) -> List[TreeEntity]:
        return self.list_siblings(Level.BOOK, TreePath(uid))

    def last_sort_key(self, collection_path: str) -> Optional[int]:
        """Highest sort key in a collection, or None when it is empty."""
        snapshots = self.store.query(collection_path, order_by="sort_key", descending=True, limit=1)
        if not snapshots:
            return None
        return snapshots[0].data.get("sort_key")

    def get_book_view(self, uid: str, book_id: str, include_sections: bool = False) -> BookView:
        """Book with its parts and each part's chapters (and sections if asked)."""
        path = TreePath(uid, book_id=book_id)
        book = self.get_entity(Level.BOOK, path)
        parts = self.list_siblings(Level.PART, path)
        logger.debug("Composing book view", book_id=book_id, parts=len(parts), include_sections=include_sections)
        return BookView(
            book=book,
            parts=[self._part_view(path.child(Level.PART, part.id), part, include_sections) for part in parts]
        )

    def get_part_view(self, path: TreePath, include_sections: bool = False) -> PartView:
        part = self.get_entity(Level.PART, path)
        return self._part_view(path, part, include_sections)

    def _part_view(self, path: TreePath, part, include_sections: bool) -> PartView:
        chapters = self.list_siblings(Level.CHAPTER, path)
        sections = None
        if include_sections:
            sections = {
                chapter.id: self.list_siblings(Level.SECTION, path.child(Level.CHAPTER, chapter.id))
                for chapter in chapters
            }
        return PartView(part=part, chapters=chapters, sections=sections)

    def get_chapter_view(self, path: TreePath) -> ChapterView:
        chapter = self.get_entity(Level.CHAPTER, path)
        return ChapterView(chapter=chapter, sections=self.list_siblings(Level.SECTION, path))

    def get_section_view(self, path: TreePath) -> SectionView:
        section = self.get_entity(Level.SECTION, path)
        blocks = self.list_siblings(Level.BLOCK, path)
        return SectionView(
            section=section,
            blocks=blocks,
            content_text="\n\n".join(block.text for block in blocks)
        )

    @staticmethod
    def resolve_sibling_position(entity_id: str, siblings: Sequence[Union[TreeEntity, str]]) -> int:
        """1-based position of entity_id in an ordered sibling list."""
        for position, sibling in enumerate(siblings, start=1):
            sibling_id = sibling if isinstance(sibling, str) else sibling.id
            if sibling_id == entity_id:
                return position
        raise NotFoundError(f"{entity_id} is not among the given siblings")

    def sibling_label(self, level: Level, entity_id: str, siblings: Sequence[Union[TreeEntity, str]]) -> str:
        """Ordinal label for display: roman for parts, numbers for chapters, letters for sections."""
        position = self.resolve_sibling_position(entity_id, siblings)
        return format_ordinal(position, LEVEL_NUMBER_STYLES.get(Level(level), NumberStyle.NUMERIC))

    def list_notes(self, owner_level: Level, path: TreePath, include_archived: bool = True) -> List[Note]:
        model = NOTE_SPEC[0]
        snapshots = self.store.query(path.notes_path(owner_level), order_by="sort_key")
        notes = [model.from_snapshot(snap) for snap in snapshots]
        if not include_archived:
            notes = [note for note in notes if not note.archived]
        return notes

    def get_note(self, owner_level: Level, path: TreePath, note_id: str) -> Note:
        doc_path = join_path(path.notes_path(owner_level), note_id)
        snapshot = self.store.get(doc_path)
        if not snapshot.exists:
            raise NotFoundError("Note not found", path=doc_path)
        return NOTE_SPEC[0].from_snapshot(snapshot)
