"""
Gap-based sort keys for sibling collections.

Appends land 100 past the current last key, leaving room for later
insertions without renumbering. A drag-reorder rewrites the whole collection
to evenly spaced keys 0, 1000, 2000, ...
"""

from typing import Iterable, List, Optional, Tuple

from errors import InvalidArgumentError

SORT_KEY_STEP = 100
REORDER_STEP = 1000


def next_sort_key(last: Optional[int] = None) -> int:
    """Key for an item appended after ``last`` (an empty collection counts as 0)."""
    return (last if last is not None else 0) + SORT_KEY_STEP


def reorder_keys(ordered_ids: Iterable[str]) -> List[Tuple[str, int]]:
    """Assign index * REORDER_STEP to each id, in the given order."""
    ordered_ids = list(ordered_ids)
    seen = set()
    for entity_id in ordered_ids:
        if entity_id in seen:
            raise InvalidArgumentError(f"Duplicate id in reorder: {entity_id}")
        seen.add(entity_id)
    return [(entity_id, index * REORDER_STEP) for index, entity_id in enumerate(ordered_ids)]
