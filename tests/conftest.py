"""
Shared fixtures: an in-memory store with a deterministic clock and the
structure core bound to it.
"""

import itertools
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Level
from store import InMemoryDocumentStore
from structure import StructuralMutator, TreeNavigator, TreePath

UID = "u1"


def ticking_clock(start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
    """Clock that advances one second per call."""
    counter = itertools.count()
    return lambda: start + timedelta(seconds=next(counter))


@pytest.fixture
def store():
    return InMemoryDocumentStore(clock=ticking_clock())


@pytest.fixture
def navigator(store):
    return TreeNavigator(store)


@pytest.fixture
def mutator(store, navigator):
    return StructuralMutator(store, navigator)


@pytest.fixture
def tree(mutator):
    """
    Book B with parts P1, P2; P1 holds chapter C1 with section S1, two blocks
    and a note on the chapter.
    """
    book = mutator.create(Level.BOOK, TreePath(UID), {"title": "B"})
    p1 = mutator.create(Level.PART, TreePath(UID, book), {"title": "P1"})
    p2 = mutator.create(Level.PART, TreePath(UID, book), {"title": "P2"})
    c1 = mutator.create(Level.CHAPTER, TreePath(UID, book, p1), {"title": "C1"})
    s1 = mutator.create(Level.SECTION, TreePath(UID, book, p1, c1), {"title": "S1"})
    x1 = mutator.create(Level.BLOCK, TreePath(UID, book, p1, c1, s1), {"text": "First."})
    x2 = mutator.create(Level.BLOCK, TreePath(UID, book, p1, c1, s1), {"text": "Second."})
    note = mutator.create_note(Level.CHAPTER, TreePath(UID, book, p1, c1), {"title": "Check dates"})
    return {
        "book": book, "p1": p1, "p2": p2, "c1": c1, "s1": s1,
        "x1": x1, "x2": x2, "note": note,
    }
