# src/attachgc/core/index/__init__.py
"""Index: attachment reference counts and the trigger journal."""

from attachgc.core.index.database import IndexDB
from attachgc.core.index.journal import EventJournal, JournalStats
from attachgc.core.index.schema import metadata
from attachgc.core.index.store import IndexStore

__all__ = [
    "EventJournal",
    "IndexDB",
    "IndexStore",
    "JournalStats",
    "metadata",
]
