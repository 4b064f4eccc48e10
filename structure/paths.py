"""
Ancestor paths and the per-level registry of the book tree.

A TreePath holds the chain of ids that addresses a node:

    users/{uid}/books/{book_id}/parts/{part_id}/chapters/{chapter_id}/sections/{section_id}/blocks/{block_id}

Notes hang off any book, part, chapter or section in a ``notes`` sub-collection.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, Type

from errors import InvalidArgumentError
from models.book_models import Block, Book, Chapter, Level, Note, Part, Section, TreeEntity
from models.request_models import (
    BlockCreate, BlockUpdate, BookCreate, BookUpdate,
    ChapterCreate, ChapterUpdate, NoteCreate, NoteUpdate,
    PartCreate, PartUpdate, SectionCreate, SectionUpdate,
    WritePayload,
)
from store.base import join_path


def _check_id(name: str, value: str) -> None:
    # Ids are single path segments.
    if "/" in value:
        raise InvalidArgumentError(f"{name} cannot contain '/': {value!r}")


@dataclass(frozen=True)
class LevelSpec:
    level: Level
    collection: str
    model: Type[TreeEntity]
    create_model: Type[WritePayload]
    update_model: Type[WritePayload]
    parent: Optional[Level]
    ancestors: Tuple[str, ...]


LEVEL_SPECS: Dict[Level, LevelSpec] = {
    Level.BOOK: LevelSpec(Level.BOOK, "books", Book, BookCreate, BookUpdate, None, ()),
    Level.PART: LevelSpec(Level.PART, "parts", Part, PartCreate, PartUpdate, Level.BOOK, ("book_id",)),
    Level.CHAPTER: LevelSpec(
        Level.CHAPTER, "chapters", Chapter, ChapterCreate, ChapterUpdate, Level.PART, ("book_id", "part_id")
    ),
    Level.SECTION: LevelSpec(
        Level.SECTION, "sections", Section, SectionCreate, SectionUpdate, Level.CHAPTER,
        ("book_id", "part_id", "chapter_id")
    ),
    Level.BLOCK: LevelSpec(
        Level.BLOCK, "blocks", Block, BlockCreate, BlockUpdate, Level.SECTION,
        ("book_id", "part_id", "chapter_id", "section_id")
    ),
}

NOTE_COLLECTION = "notes"
NOTE_SPEC = (Note, NoteCreate, NoteUpdate)

# Levels that have an id slot in TreePath, and can therefore own notes.
ID_FIELDS: Dict[Level, str] = {
    Level.BOOK: "book_id",
    Level.PART: "part_id",
    Level.CHAPTER: "chapter_id",
    Level.SECTION: "section_id",
}
NOTE_OWNERS = tuple(ID_FIELDS)


def spec_for(level: Level) -> LevelSpec:
    try:
        return LEVEL_SPECS[Level(level)]
    except (KeyError, ValueError):
        raise InvalidArgumentError(f"'{level}' is not a tree level")


def child_level(level: Level) -> Optional[Level]:
    for spec in LEVEL_SPECS.values():
        if spec.parent == level:
            return spec.level
    return None


@dataclass(frozen=True)
class TreePath:
    """Owner uid plus the ancestor ids needed to reach a node."""
    uid: str
    book_id: Optional[str] = None
    part_id: Optional[str] = None
    chapter_id: Optional[str] = None
    section_id: Optional[str] = None

    def require(self, *fields: str) -> None:
        if not self.uid:
            raise InvalidArgumentError("uid is required")
        _check_id("uid", self.uid)
        for field in fields:
            if not getattr(self, field):
                raise InvalidArgumentError(f"{field} is required for this operation")
            _check_id(field, getattr(self, field))

    def collection_path(self, level: Level) -> str:
        """Path of the sibling collection holding entities of ``level``."""
        spec = spec_for(level)
        self.require(*spec.ancestors)
        segments = ["users", self.uid]
        for field in spec.ancestors:
            owner = next(lvl for lvl, name in ID_FIELDS.items() if name == field)
            segments += [LEVEL_SPECS[owner].collection, getattr(self, field)]
        segments.append(spec.collection)
        return join_path(*segments)

    def document_path(self, level: Level, entity_id: str) -> str:
        if not entity_id:
            raise InvalidArgumentError(f"{Level(level).value} id is required")
        _check_id(f"{Level(level).value} id", entity_id)
        return join_path(self.collection_path(level), entity_id)

    def node_path(self, level: Level) -> str:
        """Document path of the node this path identifies at ``level``."""
        field = ID_FIELDS.get(Level(level))
        if field is None:
            raise InvalidArgumentError(f"A {Level(level).value} cannot be addressed by a tree path alone")
        self.require(field)
        return self.document_path(level, getattr(self, field))

    def notes_path(self, owner_level: Level) -> str:
        if Level(owner_level) not in NOTE_OWNERS:
            raise InvalidArgumentError(f"Notes cannot be attached to a {Level(owner_level).value}")
        return join_path(self.node_path(owner_level), NOTE_COLLECTION)

    def ancestor_fields(self, level: Level) -> Dict[str, str]:
        """Denormalized fields stored on a new entity of ``level`` under this path."""
        spec = spec_for(level)
        self.require(*spec.ancestors)
        fields = {"uid": self.uid}
        for field in spec.ancestors:
            fields[field] = getattr(self, field)
        return fields

    def note_owner_fields(self, owner_level: Level) -> Dict[str, str]:
        """Denormalized fields stored on a note attached at ``owner_level``."""
        owner_level = Level(owner_level)
        fields = self.ancestor_fields(owner_level)
        id_field = ID_FIELDS[owner_level]
        self.require(id_field)
        fields[id_field] = getattr(self, id_field)
        fields["owner_level"] = owner_level.value
        return fields

    def parent_path(self, level: Level) -> "TreePath":
        """Only the ids that address the parent of an entity of ``level``."""
        keep = spec_for(level).ancestors
        return TreePath(self.uid, **{field: getattr(self, field) for field in keep})

    def with_ids(self, **ids: Optional[str]) -> "TreePath":
        return replace(self, **ids)

    def child(self, level: Level, entity_id: str) -> "TreePath":
        """This path extended with the id of a node at ``level``."""
        field = ID_FIELDS.get(Level(level))
        if field is None:
            return self
        return replace(self, **{field: entity_id})
