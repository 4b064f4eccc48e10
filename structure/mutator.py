"""
Write side of the structure core.

Creates, updates, deletes, moves and reorders entities of the book tree.
Multi-document changes (move, reorder, cascading delete) are staged into one
WriteBatch and committed atomically, so a concurrent reader sees either the
state before or the state after, never a mix. Errors from the store propagate
unchanged and nothing is retried.

Sort keys for new entities are read-then-written outside any transaction:
two concurrent creates in the same collection can receive the same key. The
resulting tie is broken by document id until the next reorder.
"""

from typing import Any, Dict, List, Optional, Sequence, Type, Union

from pydantic import BaseModel, ValidationError

from errors import InvalidArgumentError, NotFoundError
from logger import get_logger, log_function_call
from models.book_models import ChapterState, Level
from models.request_models import ScaffoldItem, WritePayload
from store.base import SERVER_TIMESTAMP, DocumentSnapshot, DocumentStore, WriteBatch, join_path
from structure.navigator import TreeNavigator
from structure.paths import NOTE_OWNERS, NOTE_SPEC, TreePath, child_level, spec_for
from structure.sort_keys import next_sort_key, reorder_keys

logger = get_logger(__name__)

Payload = Union[WritePayload, Dict[str, Any]]

MOVABLE_LEVELS = (Level.PART, Level.CHAPTER, Level.SECTION, Level.BLOCK)
SCAFFOLD_LEVELS = (Level.PART, Level.CHAPTER, Level.SECTION)


def _parse_payload(model: Type[WritePayload], payload: Payload) -> WritePayload:
    """Accept the exact payload model or a plain dict; anything else is rejected."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        raise InvalidArgumentError(
            f"Expected {model.__name__}, got {type(payload).__name__}"
        )
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid {model.__name__}: {e}") from e


class StructuralMutator:
    """Create/update/delete/move/reorder over an injected document store."""

    def __init__(self, store: DocumentStore, navigator: Optional[TreeNavigator] = None):
        self.store = store
        self.navigator = navigator or TreeNavigator(store)

    # ------------------------------------------------------------------
    # create / update / delete
    # ------------------------------------------------------------------

    def create(self, level: Level, parent_path: TreePath, payload: Payload) -> str:
        """
        Append a new entity at the end of its sibling collection.

        Args:
            level: Kind of entity to create
            parent_path: Ancestor ids of the new entity (uid only for books)
            payload: The level's create model, or a dict validated against it

        Returns:
            The new entity's id

        Raises:
            InvalidArgumentError: Bad payload or missing ancestor id
            NotFoundError: The parent does not exist
        """
        spec = spec_for(level)
        data = _parse_payload(spec.create_model, payload)
        parent_path = parent_path.parent_path(spec.level)
        collection = parent_path.collection_path(spec.level)
        if spec.parent is not None:
            self.navigator.get_entity(spec.parent, parent_path)

        sort_key = next_sort_key(self.navigator.last_sort_key(collection))
        document = {
            **data.to_fields(),
            **parent_path.ancestor_fields(spec.level),
            "sort_key": sort_key,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }
        if spec.level == Level.CHAPTER:
            document["deletion_state"] = ChapterState.ACTIVE.value

        new_id = self.store.add(collection, document)
        logger.structure_change("create", spec.level.value, new_id, sort_key=sort_key)
        return new_id

    def update(self, level: Level, path: TreePath, payload: Payload, entity_id: Optional[str] = None) -> None:
        """Merge the provided fields into an entity and refresh updated_at."""
        spec = spec_for(level)
        data = _parse_payload(spec.update_model, payload)
        doc_path = path.document_path(level, entity_id) if entity_id else path.node_path(level)
        self.store.update(doc_path, {**data.to_fields(), "updated_at": SERVER_TIMESTAMP})
        logger.structure_change("update", spec.level.value, doc_path.rsplit("/", 1)[-1])

    def delete(self, level: Level, path: TreePath, entity_id: Optional[str] = None) -> None:
        """
        Remove one entity document.

        Descendants and attached notes are left in storage; use
        delete_with_descendants to remove the whole subtree.
        """
        spec = spec_for(level)
        doc_path = path.document_path(level, entity_id) if entity_id else path.node_path(level)
        if not self.store.get(doc_path).exists:
            raise NotFoundError(f"{spec.level.value.capitalize()} not found", path=doc_path)
        self.store.delete(doc_path)
        logger.structure_change("delete", spec.level.value, doc_path.rsplit("/", 1)[-1], cascade=False)

    @log_function_call(logger)
    def delete_with_descendants(self, level: Level, path: TreePath, entity_id: Optional[str] = None) -> int:
        """
        Remove an entity, every descendant and every attached note in one batch.

        Returns:
            Number of documents deleted
        """
        spec = spec_for(level)
        entity = self.navigator.get_entity(level, path, entity_id)
        parent_path = path.parent_path(spec.level)

        batch = self.store.batch()
        for snapshot in self._collect_subtree(spec.level, parent_path, entity.id):
            batch.delete(snapshot.path)
        batch.delete(parent_path.document_path(spec.level, entity.id))
        deleted = len(batch)
        batch.commit()

        logger.structure_change("delete", spec.level.value, entity.id, cascade=True, documents=deleted)
        return deleted

    # ------------------------------------------------------------------
    # move
    # ------------------------------------------------------------------

    @log_function_call(logger)
    def move(self, level: Level, entity_id: str, from_path: TreePath, to_path: TreePath) -> bool:
        """
        Move an entity, with its subtree, to the end of another parent's children.

        The copy at the target and the delete at the source are committed in
        one batch. Descendants and notes keep their ids and sort keys; their
        ancestor ids are rewritten.

        Returns:
            False when source and target parents are the same (nothing written)

        Raises:
            InvalidArgumentError: Books and notes cannot be moved
            NotFoundError: Entity or target parent does not exist
        """
        source_parent, target_parent = self._move_endpoints(level, from_path, to_path)
        level = Level(level)
        if source_parent == target_parent:
            logger.debug("Move skipped: source and target are the same", entity_level=level.value, entity_id=entity_id)
            return False

        source, sort_key = self._prepare_relocation(level, entity_id, source_parent, target_parent)
        batch = self.store.batch()
        self._stage_copy(batch, level, source, source_parent, target_parent, sort_key, delete_source=True)
        batch.commit()

        logger.structure_change("move", level.value, entity_id, sort_key=sort_key, operations=len(batch))
        return True

    def stage_chapter_move(self, chapter_id: str, from_path: TreePath, to_path: TreePath) -> bool:
        """
        Safeguarded chapter move: copy the chapter subtree to the target part
        and mark the original PENDING_DELETION instead of deleting it.

        The original stays visible until confirm_deletion() is called on it.
        """
        source_parent, target_parent = self._move_endpoints(Level.CHAPTER, from_path, to_path)
        if source_parent == target_parent:
            return False

        source, sort_key = self._prepare_relocation(Level.CHAPTER, chapter_id, source_parent, target_parent)
        if source.data.get("deletion_state") == ChapterState.PENDING_DELETION.value:
            raise InvalidArgumentError(f"Chapter {chapter_id} is already pending deletion")

        batch = self.store.batch()
        self._stage_copy(batch, Level.CHAPTER, source, source_parent, target_parent, sort_key, delete_source=False)
        batch.update(source.path, {
            "deletion_state": ChapterState.PENDING_DELETION.value,
            "updated_at": SERVER_TIMESTAMP,
        })
        batch.commit()

        logger.structure_change("stage_move", Level.CHAPTER.value, chapter_id, target_part=target_parent.part_id)
        return True

    def confirm_deletion(self, path: TreePath) -> int:
        """Permanently remove a chapter left PENDING_DELETION by a safeguarded move."""
        chapter = self.navigator.get_entity(Level.CHAPTER, path)
        if chapter.deletion_state != ChapterState.PENDING_DELETION:
            raise InvalidArgumentError(f"Chapter {chapter.id} is not pending deletion")
        return self.delete_with_descendants(Level.CHAPTER, path)

    def _move_endpoints(self, level: Level, from_path: TreePath, to_path: TreePath):
        level = spec_for(level).level
        if level not in MOVABLE_LEVELS:
            raise InvalidArgumentError(f"A {level.value} cannot be moved")
        return from_path.parent_path(level), to_path.parent_path(level)

    def _prepare_relocation(self, level: Level, entity_id: str, source_parent: TreePath, target_parent: TreePath):
        """Read everything a relocation needs before anything is staged."""
        spec = spec_for(level)
        source_path = source_parent.document_path(level, entity_id)
        source = self.store.get(source_path)
        if not source.exists:
            raise NotFoundError(f"{level.value.capitalize()} not found", path=source_path)
        self.navigator.get_entity(spec.parent, target_parent)

        target_path = target_parent.document_path(level, entity_id)
        if self.store.get(target_path).exists:
            raise InvalidArgumentError(
                f"{level.value.capitalize()} {entity_id} already exists under the target parent"
            )

        target_collection = target_parent.collection_path(level)
        sort_key = next_sort_key(self.navigator.last_sort_key(target_collection))
        return source, sort_key

    def _stage_copy(
        self,
        batch: WriteBatch,
        level: Level,
        source: DocumentSnapshot,
        source_parent: TreePath,
        target_parent: TreePath,
        sort_key: int,
        delete_source: bool
    ) -> None:
        spec = spec_for(level)
        target_path = target_parent.document_path(level, source.id)
        rewritten = {field: getattr(target_parent, field) for field in spec.ancestors}

        document = {**source.data, **rewritten, "sort_key": sort_key, "updated_at": SERVER_TIMESTAMP}
        if level == Level.CHAPTER and not delete_source:
            document["deletion_state"] = ChapterState.ACTIVE.value
        batch.set(target_path, document)

        for descendant in self._collect_subtree(level, source_parent, source.id):
            relocated = target_path + descendant.path[len(source.path):]
            batch.set(relocated, {**descendant.data, **rewritten})
            if delete_source:
                batch.delete(descendant.path)

        if delete_source:
            batch.delete(source.path)

    def _collect_subtree(self, level: Level, parent_path: TreePath, entity_id: str) -> List[DocumentSnapshot]:
        """Every descendant document and attached note below one node, depth first."""
        node_path = parent_path.child(level, entity_id)
        found: List[DocumentSnapshot] = []
        if level in NOTE_OWNERS:
            found.extend(self.store.query(node_path.notes_path(level)))
        below = child_level(level)
        if below is not None:
            for child in self.store.query(node_path.collection_path(below)):
                found.append(child)
                found.extend(self._collect_subtree(below, node_path, child.id))
        return found

    # ------------------------------------------------------------------
    # ordering
    # ------------------------------------------------------------------

    def reorder_siblings(self, level: Level, parent_path: TreePath, ordered_ids: Sequence[str]) -> None:
        """
        Rewrite sort keys to 0, 1000, 2000, ... following ordered_ids.

        ordered_ids must list every current sibling exactly once. All updates
        go out in one batch; an empty collection writes nothing.
        """
        spec = spec_for(level)
        parent_path = parent_path.parent_path(spec.level)
        collection = parent_path.collection_path(spec.level)
        keys = reorder_keys(ordered_ids)

        current = [snapshot.id for snapshot in self.store.query(collection)]
        if sorted(current) != sorted(entity_id for entity_id, _ in keys):
            raise InvalidArgumentError(
                f"Reorder must list every {spec.level.value} of the collection exactly once"
            )
        if not keys:
            return

        batch = self.store.batch()
        for entity_id, sort_key in keys:
            batch.update(join_path(collection, entity_id), {"sort_key": sort_key, "updated_at": SERVER_TIMESTAMP})
        batch.commit()
        logger.structure_change("reorder", spec.level.value, collection, count=len(keys))

    def scaffold_children(self, level: Level, parent_path: TreePath, items: Sequence[ScaffoldItem]) -> List[str]:
        """Create one child per scaffold item, in order, and return their ids."""
        spec = spec_for(level)
        if spec.level not in SCAFFOLD_LEVELS:
            raise InvalidArgumentError(f"Cannot scaffold {spec.level.value}s")
        return [
            self.create(spec.level, parent_path, spec.create_model(title=item.title, summary=item.summary))
            for item in items
        ]

    # ------------------------------------------------------------------
    # notes
    # ------------------------------------------------------------------

    def create_note(self, owner_level: Level, path: TreePath, payload: Payload) -> str:
        """Attach a note to a book, part, chapter or section."""
        data = _parse_payload(NOTE_SPEC[1], payload)
        collection = path.notes_path(owner_level)
        self.navigator.get_entity(owner_level, path)

        sort_key = next_sort_key(self.navigator.last_sort_key(collection))
        document = {
            **data.to_fields(),
            **path.note_owner_fields(owner_level),
            "sort_key": sort_key,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }
        note_id = self.store.add(collection, document)
        logger.structure_change("create", Level.NOTE.value, note_id, owner=Level(owner_level).value)
        return note_id

    def update_note(self, owner_level: Level, path: TreePath, note_id: str, payload: Payload) -> None:
        data = _parse_payload(NOTE_SPEC[2], payload)
        doc_path = join_path(path.notes_path(owner_level), note_id)
        self.store.update(doc_path, {**data.to_fields(), "updated_at": SERVER_TIMESTAMP})

    def delete_note(self, owner_level: Level, path: TreePath, note_id: str) -> None:
        doc_path = join_path(path.notes_path(owner_level), note_id)
        if not self.store.get(doc_path).exists:
            raise NotFoundError("Note not found", path=doc_path)
        self.store.delete(doc_path)
        logger.structure_change("delete", Level.NOTE.value, note_id)
