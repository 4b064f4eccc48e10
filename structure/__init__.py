"""Hierarchical ordering and structure management for the book tree."""

from .paths import TreePath, LEVEL_SPECS, spec_for, child_level
from .sort_keys import next_sort_key, reorder_keys, SORT_KEY_STEP, REORDER_STEP
from .navigator import TreeNavigator
from .mutator import StructuralMutator

__all__ = [
    "TreePath", "LEVEL_SPECS", "spec_for", "child_level",
    "next_sort_key", "reorder_keys", "SORT_KEY_STEP", "REORDER_STEP",
    "TreeNavigator", "StructuralMutator"
]
